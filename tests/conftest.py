"""Test configuration and fixtures."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from llm_file_ops.core.models import (
    FileOperation,
    LineRange,
    OperationMetadata,
    OperationType,
)
from llm_file_ops.exceptions import OracleError


class FakeOracle:
    """In-memory workspace oracle that records every call."""

    def __init__(self) -> None:
        """Start with an empty workspace."""
        self.existing: set[str] = set()
        self.dependents: dict[str, list[str]] = {}
        self.similar: dict[str, list[str]] = {}
        self.tests: dict[str, list[str]] = {}
        self.calls: list[tuple[str, str]] = []

    async def exists(self, path: str) -> bool:
        self.calls.append(("exists", path))
        return path in self.existing

    async def find_dependents(self, path: str) -> list[str]:
        self.calls.append(("find_dependents", path))
        return list(self.dependents.get(path, []))

    async def find_similar_files(self, path: str, limit: int = 10) -> list[str]:
        self.calls.append(("find_similar_files", path))
        return list(self.similar.get(path, []))[:limit]

    async def find_related_tests(self, path: str) -> list[str]:
        self.calls.append(("find_related_tests", path))
        return list(self.tests.get(path, []))


class FailingOracle(FakeOracle):
    """Oracle whose every lookup fails with the configured exception."""

    def __init__(self, error: Exception | None = None) -> None:
        """Fail with ``error``, an OracleError by default."""
        super().__init__()
        self.error = error or OracleError("workspace index unavailable")

    async def exists(self, path: str) -> bool:
        self.calls.append(("exists", path))
        raise self.error

    async def find_dependents(self, path: str) -> list[str]:
        self.calls.append(("find_dependents", path))
        raise self.error

    async def find_similar_files(self, path: str, limit: int = 10) -> list[str]:
        self.calls.append(("find_similar_files", path))
        raise self.error

    async def find_related_tests(self, path: str) -> list[str]:
        self.calls.append(("find_related_tests", path))
        raise self.error


@pytest.fixture
def fake_oracle() -> FakeOracle:
    """Provide an empty in-memory oracle; tests populate it as needed."""
    return FakeOracle()


@pytest.fixture
def failing_oracle() -> FailingOracle:
    """Provide an oracle whose lookups raise OracleError."""
    return FailingOracle()


@pytest.fixture
def broken_oracle() -> FailingOracle:
    """Provide an oracle whose lookups raise a non-oracle exception."""
    return FailingOracle(RuntimeError("connection reset"))


@pytest.fixture
def make_operation() -> Callable[..., FileOperation]:
    """Return a factory for FileOperation instances with sensible defaults.

    Example:
        >>> def test_something(make_operation):
        ...     op = make_operation(OperationType.DELETE, "src/old.ts", content=None)
    """
    counter = iter(range(1, 10_000))

    def factory(
        op_type: OperationType = OperationType.UPDATE,
        target_path: str = "src/a.ts",
        content: str | None = "export const x = 1;",
        source_path: str | None = None,
        line_range: LineRange | None = None,
        language: str | None = "ts",
        **metadata: Any,
    ) -> FileOperation:
        return FileOperation(
            id=f"op_{next(counter)}",
            type=op_type,
            target_path=target_path,
            source_path=source_path,
            content=content,
            line_range=line_range,
            metadata=OperationMetadata(language=language, **metadata),
        )

    return factory


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a small TypeScript project in a temporary directory.

    Layout::

        package.json
        README.md
        src/utils.ts          exports helper()
        src/app.ts            imports ./utils
        src/utils.test.ts     tests utils
        src/format/formatDate.ts
        node_modules/lib/index.ts (skipped by scans)
    """
    (tmp_path / "src" / "format").mkdir(parents=True)
    (tmp_path / "node_modules" / "lib").mkdir(parents=True)
    (tmp_path / "package.json").write_text('{\n  "name": "demo"\n}\n')
    (tmp_path / "README.md").write_text("# Demo\n")
    (tmp_path / "src" / "utils.ts").write_text("export function helper() {\n  return 1;\n}\n")
    (tmp_path / "src" / "app.ts").write_text(
        'import { helper } from "./utils";\n\nconsole.log(helper());\n'
    )
    (tmp_path / "src" / "utils.test.ts").write_text(
        'import { helper } from "./utils";\n\ntest("helper", () => {});\n'
    )
    (tmp_path / "src" / "format" / "formatDate.ts").write_text(
        "export function formatDate() {}\n"
    )
    (tmp_path / "node_modules" / "lib" / "index.ts").write_text(
        'import { helper } from "../../src/utils";\n'
    )
    return tmp_path
