"""Tests for the llm-file-ops command-line interface."""

import json
import os
from pathlib import Path

import pytest
from click.testing import CliRunner

from llm_file_ops.cli.main import batch_to_dict, cli
from llm_file_ops.core.models import OperationBatch

UPDATE_RESPONSE = (
    "Update the helper:\n"
    "\n"
    "```ts src/utils.ts\n"
    "export function helper() {\n"
    "  return 2;\n"
    "}\n"
    "```\n"
)

CREATE_RESPONSE = "```md docs/guide.md new file\n# Guide\n```\n"


@pytest.fixture(autouse=True)
def _clear_lfo_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("LFO_"):
            monkeypatch.delenv(name)


@pytest.fixture
def runner() -> CliRunner:
    """Provide a Click test runner."""
    return CliRunner()


def _write(directory: Path, name: str, content: str) -> str:
    path = directory / name
    path.write_text(content, encoding="utf-8")
    return str(path)


class TestAnalyzeCommand:
    """Tests for the analyze command."""

    def test_table_output(self, runner: CliRunner, workspace: Path, tmp_path: Path) -> None:
        """Test table output."""
        response = _write(tmp_path, "response.md", UPDATE_RESPONSE)
        result = runner.invoke(
            cli, ["analyze", response, "--workspace", str(workspace), "--log-level", "ERROR"]
        )

        assert result.exit_code == 0, result.output
        assert "File Operations" in result.output
        assert "src/utils.ts" in result.output
        assert "1 operations, 0 conflicts" in result.output
        assert "Conflict checks: same_target, move_of_deleted_file" in result.output

    def test_json_output(self, runner: CliRunner, workspace: Path, tmp_path: Path) -> None:
        """Test JSON output."""
        response = _write(tmp_path, "response.md", UPDATE_RESPONSE)
        result = runner.invoke(
            cli,
            ["analyze", response, "-w", str(workspace), "--json", "--log-level", "ERROR"],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [op["target_path"] for op in data["operations"]] == ["src/utils.ts"]
        operation_id = data["operations"][0]["id"]
        assert data["analyses"][operation_id]["risk"] == "high"
        assert data["requires_review"] is True
        assert data["conflict_checks"] == ["same_target", "move_of_deleted_file"]

    def test_chunked_json_matches_complete(
        self, runner: CliRunner, workspace: Path, tmp_path: Path
    ) -> None:
        """Test chunked JSON matches complete."""
        response = _write(tmp_path, "response.md", UPDATE_RESPONSE)
        args = ["analyze", response, "-w", str(workspace), "--json", "--log-level", "ERROR"]

        complete = json.loads(runner.invoke(cli, args).output)
        chunked = json.loads(runner.invoke(cli, [*args, "--chunk-size", "3"]).output)

        def strip_ids(data: dict) -> list[dict]:
            return [
                {k: v for k, v in op.items() if k not in ("id", "metadata")}
                for op in data["operations"]
            ]

        assert strip_ids(chunked) == strip_ids(complete)

    def test_no_operations(self, runner: CliRunner, workspace: Path, tmp_path: Path) -> None:
        """Test no operations."""
        response = _write(tmp_path, "response.md", "Nothing to change here.\n")
        result = runner.invoke(
            cli, ["analyze", response, "-w", str(workspace), "--log-level", "ERROR"]
        )

        assert result.exit_code == 0
        assert "No file operations found" in result.output

    def test_fail_on_review(self, runner: CliRunner, workspace: Path, tmp_path: Path) -> None:
        """Test fail on review."""
        response = _write(tmp_path, "response.md", UPDATE_RESPONSE)
        result = runner.invoke(
            cli,
            ["analyze", response, "-w", str(workspace), "--fail-on-review", "--log-level", "ERROR"],
        )

        assert result.exit_code == 1

    def test_fail_on_review_passes_low_risk(
        self, runner: CliRunner, workspace: Path, tmp_path: Path
    ) -> None:
        """Test fail on review passes low risk."""
        response = _write(tmp_path, "response.md", CREATE_RESPONSE)
        result = runner.invoke(
            cli,
            ["analyze", response, "-w", str(workspace), "--fail-on-review", "--log-level", "ERROR"],
        )

        assert result.exit_code == 0, result.output

    def test_invalid_config_aborts(
        self, runner: CliRunner, workspace: Path, tmp_path: Path
    ) -> None:
        """Test invalid config aborts."""
        response = _write(tmp_path, "response.md", UPDATE_RESPONSE)
        config = _write(tmp_path, "config.yaml", "analysis:\n  todo_threshold: -2\n")
        result = runner.invoke(
            cli, ["analyze", response, "-w", str(workspace), "--config", config]
        )

        assert result.exit_code != 0
        assert "Configuration error" in result.output

    def test_invalid_env_aborts(
        self,
        runner: CliRunner,
        workspace: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test an invalid environment variable aborts."""
        monkeypatch.setenv("LFO_DERIVE_MOVES", "sometimes")
        response = _write(tmp_path, "response.md", UPDATE_RESPONSE)
        result = runner.invoke(cli, ["analyze", response, "-w", str(workspace)])

        assert result.exit_code != 0
        assert "Configuration error" in result.output

    def test_derive_moves_flag(self, runner: CliRunner, workspace: Path, tmp_path: Path) -> None:
        """Test derive moves flag."""
        response = _write(tmp_path, "response.md", "Rename src/utils.ts to src/helpers.ts\n")
        base = ["analyze", response, "-w", str(workspace), "--json", "--log-level", "ERROR"]

        disabled = json.loads(runner.invoke(cli, base).output)
        enabled = json.loads(runner.invoke(cli, [*base, "--derive-moves"]).output)

        assert disabled["operations"] == []
        moves = [(op["type"], op["source_path"], op["target_path"]) for op in enabled["operations"]]
        assert moves == [("move", "src/utils.ts", "src/helpers.ts")]

    def test_missing_workspace(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test missing workspace."""
        response = _write(tmp_path, "response.md", UPDATE_RESPONSE)
        result = runner.invoke(cli, ["analyze", response, "-w", str(tmp_path / "missing")])

        assert result.exit_code == 2


class TestBlocksCommand:
    """Tests for the blocks command."""

    def test_lists_blocks(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test lists blocks."""
        response = _write(tmp_path, "response.md", UPDATE_RESPONSE + CREATE_RESPONSE)
        result = runner.invoke(cli, ["blocks", response])

        assert result.exit_code == 0
        assert "Code Blocks" in result.output
        assert "src/utils.ts" in result.output
        assert "docs/guide.md" in result.output

    def test_no_blocks(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test no blocks."""
        response = _write(tmp_path, "response.md", "Just prose.\n")
        result = runner.invoke(cli, ["blocks", response])

        assert result.exit_code == 0
        assert "No code blocks found" in result.output

    def test_unterminated_block_warns(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test unterminated block warns."""
        response = _write(tmp_path, "response.md", "```ts src/a.ts\nconst a = 1;\n")
        result = runner.invoke(cli, ["blocks", response])

        assert result.exit_code == 0
        assert "Unterminated code block" in result.output


class TestBatchToDict:
    """Tests for JSON conversion of batches."""

    def test_empty_batch(self) -> None:
        """Test empty batch."""
        data = batch_to_dict(OperationBatch(operations=()))
        assert data == {
            "operations": [],
            "conflicts": [],
            "analyses": {},
            "diagnostics": [],
            "conflict_checks": [],
            "requires_review": False,
        }
