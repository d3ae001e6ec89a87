"""Unit tests for FilesystemOracle."""

from pathlib import Path

import pytest

from llm_file_ops.analysis.oracles import FilesystemOracle, WorkspaceOracle
from llm_file_ops.exceptions import OracleError, WorkspaceError


class TestFilesystemOracleInit:
    """Test workspace root validation."""

    def test_missing_root(self, tmp_path: Path) -> None:
        """Test missing root."""
        with pytest.raises(WorkspaceError, match="does not exist"):
            FilesystemOracle(tmp_path / "missing")

    def test_file_root(self, tmp_path: Path) -> None:
        """Test file root."""
        file_path = tmp_path / "file.txt"
        file_path.write_text("x")
        with pytest.raises(WorkspaceError, match="not a directory"):
            FilesystemOracle(file_path)

    def test_satisfies_protocol(self, workspace: Path) -> None:
        """Test satisfies protocol."""
        assert isinstance(FilesystemOracle(workspace), WorkspaceOracle)


class TestFilesystemOracleQueries:
    """Test oracle lookups against a temporary project."""

    @pytest.mark.asyncio
    async def test_exists(self, workspace: Path) -> None:
        """Test exists."""
        oracle = FilesystemOracle(workspace)
        assert await oracle.exists("package.json") is True
        assert await oracle.exists("src/missing.ts") is False

    @pytest.mark.asyncio
    async def test_path_outside_workspace_raises(self, workspace: Path) -> None:
        """Test path outside workspace raises."""
        with pytest.raises(OracleError):
            await FilesystemOracle(workspace).exists("../outside.ts")

    @pytest.mark.asyncio
    async def test_find_dependents(self, workspace: Path) -> None:
        """Test find dependents."""
        dependents = await FilesystemOracle(workspace).find_dependents("src/utils.ts")
        assert dependents == ["src/app.ts", "src/utils.test.ts"]

    @pytest.mark.asyncio
    async def test_dependents_match_whole_names(self, workspace: Path) -> None:
        """Test dependents match whole names."""
        (workspace / "src" / "myutils.ts").write_text('import { x } from "./myutils2";\n')
        dependents = await FilesystemOracle(workspace).find_dependents("src/utils.ts")
        assert "src/myutils.ts" not in dependents

    @pytest.mark.asyncio
    async def test_python_dependents(self, tmp_path: Path) -> None:
        """Test Python dependents."""
        (tmp_path / "pkg").mkdir()
        (tmp_path / "pkg" / "loader.py").write_text("def load():\n    pass\n")
        (tmp_path / "pkg" / "cli.py").write_text("from pkg.loader import load\n")
        dependents = await FilesystemOracle(tmp_path).find_dependents("pkg/loader.py")
        assert dependents == ["pkg/cli.py"]

    @pytest.mark.asyncio
    async def test_find_similar_files(self, workspace: Path) -> None:
        """Test find similar files."""
        oracle = FilesystemOracle(workspace)
        assert await oracle.find_similar_files("src/utils.ts") == ["src/utils.test.ts"]
        assert await oracle.find_similar_files("src/utils.ts", limit=0) == []

    @pytest.mark.asyncio
    async def test_find_related_tests(self, workspace: Path) -> None:
        """Test find related tests."""
        tests = await FilesystemOracle(workspace).find_related_tests("src/utils.ts")
        assert tests == ["src/utils.test.ts"]

    @pytest.mark.asyncio
    async def test_python_test_naming(self, tmp_path: Path) -> None:
        """Test Python test naming."""
        (tmp_path / "tests").mkdir()
        (tmp_path / "tests" / "test_loader.py").write_text("")
        tests = await FilesystemOracle(tmp_path).find_related_tests("pkg/loader.py")
        assert tests == ["tests/test_loader.py"]

    def test_locate_file(self, workspace: Path) -> None:
        """Test locate file."""
        oracle = FilesystemOracle(workspace)
        assert oracle.locate_file("formatDate", ".ts") == "src/format/formatDate.ts"
        assert oracle.locate_file("nothing", ".ts") is None

    def test_skipped_directories(self, workspace: Path) -> None:
        """Test skipped directories."""
        assert FilesystemOracle(workspace).locate_file("index", ".ts") is None
