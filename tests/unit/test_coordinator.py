"""Tests for PipelineCoordinator: streaming, listener order and cancellation."""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from llm_file_ops.config.runtime_config import RuntimeConfig
from llm_file_ops.core.models import (
    CodeBlock,
    ConflictType,
    Diagnostic,
    DiagnosticKind,
    FileOperation,
    OperationBatch,
    OperationType,
    RiskLevel,
)
from llm_file_ops.exceptions import FileOpsError, PipelineCancelledError, WorkspaceError
from llm_file_ops.pipeline.coordinator import PipelineCoordinator
from llm_file_ops.pipeline.events import BasePipelineListener, PipelineListener

RESPONSE = (
    "Here is the change:\n"
    "\n"
    "```ts src/utils.ts\n"
    "export function helper() {\n"
    "  return 2;\n"
    "}\n"
    "```\n"
    "\n"
    "And a new module:\n"
    "\n"
    "```ts src/format/parse.ts new file\n"
    "export const parse = (s: string) => s.trim();\n"
    "```\n"
)


class RecordingListener(BasePipelineListener):
    """Listener that records every event name and payload."""

    def __init__(self) -> None:
        """Start with no events."""
        self.events: list[tuple[str, object]] = []

    def on_code_block(self, block: CodeBlock) -> None:
        self.events.append(("block", block))

    def on_text(self, line: str) -> None:
        self.events.append(("text", line))

    def on_operation_queued(self, operation: FileOperation) -> None:
        self.events.append(("queued", operation))

    def on_batch_ready(self, batch: OperationBatch) -> None:
        self.events.append(("batch", batch))

    def on_diagnostic(self, diagnostic: Diagnostic) -> None:
        self.events.append(("diagnostic", diagnostic))

    def names(self, *wanted: str) -> list[str]:
        return [name for name, _ in self.events if not wanted or name in wanted]


class BlockingOracle:
    """Oracle whose lookups wait until released."""

    def __init__(self) -> None:
        """Create the release event."""
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def _wait(self) -> None:
        self.started.set()
        await self.release.wait()

    async def exists(self, path: str) -> bool:
        await self._wait()
        return True

    async def find_dependents(self, path: str) -> list[str]:
        await self._wait()
        return []

    async def find_similar_files(self, path: str, limit: int = 10) -> list[str]:
        await self._wait()
        return []

    async def find_related_tests(self, path: str) -> list[str]:
        await self._wait()
        return []


def _chunks(text: str, size: int) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


class TestConstruction:
    """Test coordinator construction."""

    def test_requires_root_or_oracle(self) -> None:
        """Test requires root or oracle."""
        with pytest.raises(ValueError, match="workspace_root or oracle"):
            PipelineCoordinator()

    def test_invalid_workspace_root(self, tmp_path: Path) -> None:
        """Test invalid workspace root."""
        with pytest.raises(WorkspaceError):
            PipelineCoordinator(tmp_path / "missing")

    def test_default_listener_satisfies_protocol(self, fake_oracle) -> None:
        """Test default listener satisfies protocol."""
        coordinator = PipelineCoordinator(oracle=fake_oracle)
        assert isinstance(coordinator.listener, PipelineListener)


class TestStreamingConvergence:
    """Streaming and complete processing must produce equal batches."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [1, 3, 7, 16, 64])
    async def test_chunked_matches_complete(self, workspace: Path, size: int) -> None:
        """Test chunked matches complete."""
        complete = await PipelineCoordinator(workspace).run_complete(RESPONSE)
        streamed = await PipelineCoordinator(workspace).run_stream(_chunks(RESPONSE, size))

        assert streamed.operations == complete.operations
        assert streamed.conflicts == complete.conflicts
        assert streamed.diagnostics == complete.diagnostics
        assert [streamed.analyses[op.id].risk for op in streamed.operations] == [
            complete.analyses[op.id].risk for op in complete.operations
        ]

    @pytest.mark.asyncio
    async def test_async_iterable(self, workspace: Path) -> None:
        """Test async iterable."""
        async def produce() -> AsyncIterator[str]:
            for chunk in _chunks(RESPONSE, 5):
                await asyncio.sleep(0)
                yield chunk

        streamed = await PipelineCoordinator(workspace).run_stream(produce())
        complete = await PipelineCoordinator(workspace).run_complete(RESPONSE)
        assert streamed.operations == complete.operations

    @pytest.mark.asyncio
    async def test_batch_contents(self, workspace: Path) -> None:
        """Test batch contents."""
        batch = await PipelineCoordinator(workspace).run_complete(RESPONSE)

        assert [(op.type, op.target_path) for op in batch.operations] == [
            (OperationType.CREATE, "src/format/parse.ts"),
            (OperationType.UPDATE, "src/utils.ts"),
        ]
        assert set(batch.analyses) == {op.id for op in batch.operations}
        for operation in batch.operations:
            assert operation.risk is batch.analyses[operation.id].risk
            assert operation.validation is not None
        assert batch.conflict_checks == ("same_target", "move_of_deleted_file")


class TestListenerOrder:
    """Test the order in which listener events fire."""

    @pytest.mark.asyncio
    async def test_block_then_queued_then_batch(self, fake_oracle) -> None:
        """Test block then queued then batch."""
        listener = RecordingListener()
        coordinator = PipelineCoordinator(oracle=fake_oracle, listener=listener)
        for chunk in _chunks(RESPONSE, 4):
            coordinator.feed(chunk)

        assert listener.names("block", "queued") == ["block", "queued", "block", "queued"]
        assert [op.target_path for op in coordinator.queued_operations] == [
            "src/utils.ts",
            "src/format/parse.ts",
        ]

        batch = await coordinator.finish()
        assert listener.names()[-1] == "batch"
        assert listener.events[-1][1] is batch
        assert listener.names().count("batch") == 1

    @pytest.mark.asyncio
    async def test_text_lines_reported(self, fake_oracle) -> None:
        """Test text lines reported."""
        listener = RecordingListener()
        await PipelineCoordinator(oracle=fake_oracle, listener=listener).run_complete(RESPONSE)
        texts = [payload for name, payload in listener.events if name == "text"]
        assert "Here is the change:" in texts
        assert "And a new module:" in texts

    @pytest.mark.asyncio
    async def test_diagnostics_reach_listener_and_batch(self, fake_oracle) -> None:
        """Test diagnostics reach listener and batch."""
        listener = RecordingListener()
        coordinator = PipelineCoordinator(oracle=fake_oracle, listener=listener)
        batch = await coordinator.run_complete("```ts src/a.ts\nexport const x = 1;\n")

        assert [op.target_path for op in batch.operations] == ["src/a.ts"]
        kinds = [diagnostic.kind for diagnostic in batch.diagnostics]
        assert DiagnosticKind.PARSE_ANOMALY in kinds
        assert listener.names("diagnostic")
        assert coordinator.diagnostics == batch.diagnostics

    @pytest.mark.asyncio
    async def test_provisional_synthesis_does_not_duplicate_diagnostics(self, fake_oracle) -> None:
        """Test provisional synthesis does not duplicate diagnostics."""
        listener = RecordingListener()
        coordinator = PipelineCoordinator(oracle=fake_oracle, listener=listener)
        batch = await coordinator.run_complete("```python\nprint('hi')\n```\n")

        assert batch.operations == ()
        synthesis = [
            d for d in batch.diagnostics if d.kind is DiagnosticKind.SYNTHESIS_AMBIGUITY
        ]
        assert len(synthesis) == 1
        assert listener.names("queued") == []


class TestScenarios:
    """End-to-end behavior through the coordinator."""

    @pytest.mark.asyncio
    async def test_delete_block_is_high_risk(self, fake_oracle) -> None:
        """Test delete block is high risk."""
        fake_oracle.existing.add("src/old.ts")
        batch = await PipelineCoordinator(oracle=fake_oracle).run_complete(
            "```ts src/old.ts delete\n```\n"
        )

        assert len(batch.operations) == 1
        operation = batch.operations[0]
        assert operation.type is OperationType.DELETE
        assert operation.content is None
        assert batch.analyses[operation.id].risk is RiskLevel.HIGH
        assert batch.requires_review is True

    @pytest.mark.asyncio
    async def test_move_and_update_of_same_file_conflict(self, fake_oracle) -> None:
        """Test move and update of same file conflict."""
        fake_oracle.existing.update({"config/base.json", "package.json"})
        text = (
            "Rename config/base.json to package.json\n"
            "\n"
            "```json package.json\n"
            '{"name": "demo"}\n'
            "```\n"
        )
        coordinator = PipelineCoordinator(
            oracle=fake_oracle, config=RuntimeConfig(derive_move_instructions=True)
        )
        batch = await coordinator.run_complete(text)

        assert [op.type for op in batch.operations] == [OperationType.MOVE, OperationType.UPDATE]
        assert len(batch.conflicts) == 1
        conflict = batch.conflicts[0]
        assert conflict.type is ConflictType.FILE
        assert set(conflict.operation_ids) == {op.id for op in batch.operations}

    @pytest.mark.asyncio
    async def test_deeply_nested_json_still_produces_batch(self, fake_oracle) -> None:
        """Test deeply nested JSON still produces batch."""
        depth = 50000
        text = "```json data.json\n" + "[" * depth + "]" * depth + "\n```\n"
        batch = await PipelineCoordinator(oracle=fake_oracle).run_complete(text)

        assert len(batch.operations) == 1
        validation = batch.operations[0].validation
        assert validation is not None
        assert "JSON structure too deeply nested" in validation.errors

    @pytest.mark.asyncio
    async def test_file_lookup_runs_once_per_turn(self, fake_oracle) -> None:
        """Test pathless blocks look up their file once across feed and finish."""
        calls: list[tuple[str, str]] = []

        def locator(name: str, extension: str) -> str | None:
            calls.append((name, extension))
            return f"src/utils/{name}{extension}"

        coordinator = PipelineCoordinator(oracle=fake_oracle, file_locator=locator)
        text = "```ts\nexport function formatDate() {}\n```\n"
        batch = await coordinator.run_complete(text)

        assert [op.target_path for op in batch.operations] == ["src/utils/formatDate.ts"]
        assert calls == [("formatDate", ".ts")]

        coordinator.reset()
        await coordinator.run_complete(text)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_prose_moves_ignored_by_default(self, fake_oracle) -> None:
        """Test prose moves ignored by default."""
        batch = await PipelineCoordinator(oracle=fake_oracle).run_complete(
            "Rename src/a.ts to src/b.ts\n"
        )
        assert batch.operations == ()

    @pytest.mark.asyncio
    async def test_oracle_failure_is_inconclusive(self, failing_oracle) -> None:
        """Test oracle failure is inconclusive."""
        batch = await PipelineCoordinator(oracle=failing_oracle).run_complete(
            "```ts src/a.ts\nexport const x = 1;\n```\n"
        )
        result = batch.analyses[batch.operations[0].id]
        assert result.inconclusive is True
        assert result.risk.rank >= RiskLevel.MEDIUM.rank
        assert any(d.kind is DiagnosticKind.ANALYSIS_FAILURE for d in batch.diagnostics)


class TestLifecycle:
    """Test cancel, reset and finish semantics."""

    @pytest.mark.asyncio
    async def test_cancel_discards_and_rejects_input(self, fake_oracle) -> None:
        """Test cancel discards and rejects input."""
        listener = RecordingListener()
        coordinator = PipelineCoordinator(oracle=fake_oracle, listener=listener)
        coordinator.feed("```ts src/a.ts\nexport const x = 1;\n```\n")
        coordinator.cancel()

        assert coordinator.cancelled is True
        assert coordinator.queued_operations == ()
        with pytest.raises(PipelineCancelledError):
            coordinator.feed("more")
        with pytest.raises(PipelineCancelledError):
            await coordinator.finish()
        assert "batch" not in listener.names()

    @pytest.mark.asyncio
    async def test_cancel_during_analysis(self) -> None:
        """Test cancel during analysis."""
        oracle = BlockingOracle()
        listener = RecordingListener()
        coordinator = PipelineCoordinator(oracle=oracle, listener=listener)
        coordinator.feed("```ts src/a.ts\nexport const x = 1;\n```\n")

        finishing = asyncio.ensure_future(coordinator.finish())
        await oracle.started.wait()
        coordinator.cancel()

        with pytest.raises(PipelineCancelledError):
            await finishing
        assert "batch" not in listener.names()

    @pytest.mark.asyncio
    async def test_reset_allows_new_turn(self, fake_oracle) -> None:
        """Test reset allows new turn."""
        coordinator = PipelineCoordinator(oracle=fake_oracle)
        coordinator.feed("```ts src/a.ts\nexport const x = 1;\n")
        coordinator.cancel()
        coordinator.reset()

        batch = await coordinator.run_complete("```py b.py\nb = 2\n```\n")
        assert [op.target_path for op in batch.operations] == ["b.py"]
        assert batch.diagnostics == ()
        assert coordinator.cancelled is False

    @pytest.mark.asyncio
    async def test_feed_after_finish_raises(self, fake_oracle) -> None:
        """Test feed after finish raises."""
        coordinator = PipelineCoordinator(oracle=fake_oracle)
        await coordinator.run_complete("```ts src/a.ts\nexport const x = 1;\n```\n")
        with pytest.raises(FileOpsError, match="already finished"):
            coordinator.feed("x")
        with pytest.raises(FileOpsError, match="already finished"):
            await coordinator.finish()

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, fake_oracle) -> None:
        """Test cancel is idempotent."""
        coordinator = PipelineCoordinator(oracle=fake_oracle)
        coordinator.cancel()
        coordinator.cancel()
        assert coordinator.cancelled is True
