"""Risk and impact analysis of synthesized file operations.

The analyzer looks at each operation, asks the workspace oracle what the
operation would touch, and assigns a risk level using a fixed policy (first
match wins):

1. Delete operations are High.
2. Critical targets (manifests, type configs, env files, or paths containing
   "config", "security" or "auth") are High.
3. Any High impact makes the operation High.
4. More than one Medium impact makes it Medium.
5. Content that looks like a breaking change makes it Medium.
6. Everything else is Low.

If an oracle call fails, the analysis is marked inconclusive and the risk is
raised to at least Medium. The analyzer never applies anything; the only
fields it sets on an operation are ``risk`` and ``validation``.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from typing import TypeVar

from llm_file_ops.analysis.conflict_detector import ConflictDetector
from llm_file_ops.analysis.oracles import WorkspaceOracle
from llm_file_ops.analysis.validation import CodeValidator, SecretScanner, is_safe_target_path
from llm_file_ops.config.runtime_config import RuntimeConfig
from llm_file_ops.core.models import (
    Alternative,
    AnalysisResult,
    Conflict,
    Diagnostic,
    DiagnosticKind,
    FileOperation,
    Impact,
    ImpactType,
    OperationType,
    RiskLevel,
    Severity,
)
from llm_file_ops.exceptions import OracleError
from llm_file_ops.parsing.metadata import JS_LANGUAGES, PY_LANGUAGES, analyze_code

logger = logging.getLogger(__name__)

T = TypeVar("T")

CRITICAL_FILE_NAMES: frozenset[str] = frozenset(
    {
        "package.json",
        "tsconfig.json",
        "jsconfig.json",
        "pyproject.toml",
        "setup.py",
        "setup.cfg",
        "cargo.toml",
        "go.mod",
    }
)
CRITICAL_PATH_FRAGMENTS: tuple[str, ...] = ("config", "security", "auth")

_BREAKING_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"export\s+(?:class|interface|type)\s+\w+"),
    re.compile(r"function\s+\w+\s*\([^)]*\)"),
    re.compile(r"^\s*(?:async\s+)?def\s+[A-Za-z]\w*\s*\(", re.MULTILINE),
    re.compile(r"@deprecated", re.IGNORECASE),
    re.compile(r"BREAKING\s*CHANGE", re.IGNORECASE),
)

_PY_PUBLIC_API = re.compile(r"^(?:(?:async\s+)?def|class)\s+[A-Za-z]\w*", re.MULTILINE)
_TS_ANY = re.compile(r"(?::\s*any\b|\bas\s+any\b|<any>)")
_PY_TYPE_IGNORE = re.compile(r"#\s*type:\s*ignore")
_TODO = re.compile(r"\bTODO\b", re.IGNORECASE)

_TS_LANGUAGES = frozenset({"typescript", "ts", "tsx"})

DiagnosticCallback = Callable[[Diagnostic], None]


def is_critical_path(path: str, extra_fragments: Sequence[str] = ()) -> bool:
    """Return True for manifests, type configs, env files and sensitive paths.

    Example:
        >>> is_critical_path("src/auth/session.ts")
        True
        >>> is_critical_path("src/a.ts")
        False
    """
    lowered = path.lower()
    name = posixpath.basename(lowered)
    if name in CRITICAL_FILE_NAMES or name.startswith(".env"):
        return True
    fragments = CRITICAL_PATH_FRAGMENTS + tuple(fragment.lower() for fragment in extra_fragments)
    return any(fragment in lowered for fragment in fragments)


def has_breaking_changes(content: str) -> bool:
    """Return True if content matches a breaking-change pattern."""
    return any(pattern.search(content) for pattern in _BREAKING_PATTERNS)


def has_api_changes(content: str, language: str | None = None) -> bool:
    """Return True if content appears to change an exported symbol's shape.

    Python counts any top-level public ``def`` or ``class``. Everything else is
    scanned as JS/TS: an exported function, class or interface counts, an
    exported constant does not.
    """
    lang = (language or "").lower()
    if lang in PY_LANGUAGES:
        return bool(_PY_PUBLIC_API.search(content))
    analysis = analyze_code(content, lang if lang in JS_LANGUAGES else "typescript")
    if not analysis.exports:
        return False
    declared = set(analysis.functions) | set(analysis.classes)
    return bool(declared.intersection(analysis.exports)) or "interface" in content


class SafetyAnalyzer:
    """Attach risk, impacts and validation to file operations.

    Args:
        oracle: Read-only workspace oracle used for existence and dependency checks.
        config: Thresholds and extra critical paths. Defaults apply when None.
        on_diagnostic: Called with an ``analysis_failure`` diagnostic for each
            failed oracle call.
        validator: Content validator; a fresh CodeValidator when None.
        conflict_detector: Pairwise conflict detector; a fresh one when None.
    """

    def __init__(
        self,
        oracle: WorkspaceOracle,
        config: RuntimeConfig | None = None,
        on_diagnostic: DiagnosticCallback | None = None,
        validator: CodeValidator | None = None,
        conflict_detector: ConflictDetector | None = None,
    ) -> None:
        """Initialize the analyzer with its collaborators."""
        self.oracle = oracle
        self.config = config or RuntimeConfig.from_defaults()
        self.on_diagnostic = on_diagnostic
        self.validator = validator or CodeValidator()
        self.conflict_detector = conflict_detector or ConflictDetector()

    async def analyze_operation(self, operation: FileOperation) -> AnalysisResult:
        """Analyze one operation.

        Returns:
            AnalysisResult whose ``operation`` is a copy of the input with only
            ``risk`` and ``validation`` set.
        """
        impacts: list[Impact] = []
        inconclusive = False

        paths = [path for path in (operation.target_path, operation.source_path) if path]
        if not all(is_safe_target_path(path) for path in paths):
            impacts.append(
                Impact(
                    type=ImpactType.SECURITY,
                    severity=Severity.HIGH,
                    description="Target path escapes the workspace",
                    affected_files=(operation.target_path,),
                )
            )
        else:
            try:
                impacts.extend(await self._impacts_for_type(operation))
            except OracleError as e:
                inconclusive = True
                impacts.append(
                    Impact(
                        type=ImpactType.ANALYSIS,
                        severity=Severity.MEDIUM,
                        description=f"Workspace checks could not complete: {e}",
                        affected_files=(operation.target_path,),
                    )
                )
                self._report(f"Oracle failure for {operation.target_path}: {e}", operation.id)

        if operation.content:
            impacts.extend(self._quality_impacts(operation))
            impacts.extend(self._security_impacts(operation))

        risk = self.estimate_risk(operation, impacts, inconclusive=inconclusive)
        validation = self.validator.validate(operation)
        annotated = replace(operation, risk=risk, validation=validation)

        suggestions = self.generate_suggestions(annotated, impacts)
        if not validation.is_valid:
            suggestions.append("Fix validation errors before applying this change")

        result = AnalysisResult(
            operation=annotated,
            risk=risk,
            impacts=tuple(impacts),
            suggestions=tuple(suggestions),
            alternatives=tuple(self.suggest_alternatives(annotated)),
            requires_review=risk is not RiskLevel.LOW
            or any(impact.severity is Severity.HIGH for impact in impacts),
            inconclusive=inconclusive,
        )
        logger.debug(
            "Analyzed operation %s: risk=%s, impacts=%d", operation.id, risk, len(impacts)
        )
        return result

    async def analyze_batch(self, operations: Sequence[FileOperation]) -> dict[str, AnalysisResult]:
        """Analyze operations concurrently.

        Returns:
            Results keyed by operation id, in the order of ``operations``.
        """
        results = await asyncio.gather(
            *(self.analyze_operation(operation) for operation in operations)
        )
        return {result.operation.id: result for result in results}

    def detect_conflicts(self, operations: Sequence[FileOperation]) -> list[Conflict]:
        """Return pairwise conflicts between operations."""
        return self.conflict_detector.detect_conflicts(list(operations))

    @property
    def conflict_checks(self) -> tuple[str, ...]:
        """Names of the conflict checks :meth:`detect_conflicts` runs."""
        return self.conflict_detector.CHECKS

    def estimate_risk(
        self,
        operation: FileOperation,
        impacts: Sequence[Impact] = (),
        inconclusive: bool = False,
    ) -> RiskLevel:
        """Assign a risk level by the first matching rule of the policy."""
        if operation.type is OperationType.DELETE:
            return RiskLevel.HIGH

        if is_critical_path(operation.target_path, self.config.extra_critical_paths):
            risk = RiskLevel.HIGH
        elif any(impact.severity is Severity.HIGH for impact in impacts):
            risk = RiskLevel.HIGH
        elif sum(impact.severity is Severity.MEDIUM for impact in impacts) > 1:
            risk = RiskLevel.MEDIUM
        elif operation.content and has_breaking_changes(operation.content):
            risk = RiskLevel.MEDIUM
        else:
            risk = RiskLevel.LOW

        if inconclusive and risk.rank < RiskLevel.MEDIUM.rank:
            return RiskLevel.MEDIUM
        return risk

    def generate_suggestions(
        self, operation: FileOperation, impacts: Sequence[Impact]
    ) -> list[str]:
        """Return review suggestions for the impacts found."""
        suggestions = []
        types = {impact.type for impact in impacts}

        if any(impact.severity is Severity.HIGH for impact in impacts):
            suggestions.append("Review this change carefully before applying")
            suggestions.append("Consider creating a backup before proceeding")
        if ImpactType.TEST in types:
            suggestions.append("Run related tests after applying this change")
            suggestions.append("Update test files to match the changes")
        if ImpactType.API in types:
            suggestions.append("Update all dependent files to match API changes")
            suggestions.append("Consider adding deprecation notices for gradual migration")
        if ImpactType.DEPENDENCY in types and operation.type is OperationType.MOVE:
            suggestions.append("Update import paths in dependent files")
        if ImpactType.ANALYSIS in types:
            suggestions.append("Verify the target manually; workspace checks did not complete")
        if ImpactType.SECURITY in types:
            suggestions.append(
                "Remove credentials from the content and load them from the environment"
            )
        return suggestions

    def suggest_alternatives(self, operation: FileOperation) -> list[Alternative]:
        """Return safer approaches for risky operations."""
        alternatives = []
        if operation.type is OperationType.DELETE:
            alternatives.append(
                Alternative(
                    description="Archive the file instead of deleting",
                    benefits=("Preserves history", "Allows recovery"),
                    drawbacks=("Requires cleanup later",),
                    implementation=f"mv {operation.target_path} {operation.target_path}.archived",
                )
            )
        if operation.type is OperationType.UPDATE and operation.content:
            line_count = len(operation.content.split("\n"))
            if line_count > self.config.large_update_lines:
                alternatives.append(
                    Alternative(
                        description="Split into smaller, focused updates",
                        benefits=("Easier to review", "Lower risk"),
                        drawbacks=("More operations to manage", "Might miss context"),
                    )
                )
        return alternatives

    async def _impacts_for_type(self, operation: FileOperation) -> list[Impact]:
        if operation.type is OperationType.CREATE:
            return await self._create_impacts(operation)
        if operation.type is OperationType.UPDATE:
            return await self._update_impacts(operation)
        if operation.type is OperationType.DELETE:
            return await self._delete_impacts(operation)
        if operation.type is OperationType.MOVE:
            return await self._move_impacts(operation)
        return []

    async def _create_impacts(self, operation: FileOperation) -> list[Impact]:
        target = operation.target_path
        impacts = []
        if await self._ask(self.oracle.exists, target):
            impacts.append(
                Impact(
                    type=ImpactType.STRUCTURE,
                    severity=Severity.HIGH,
                    description="File already exists and will be overwritten",
                    affected_files=(target,),
                )
            )
        similar = await self._ask(self.oracle.find_similar_files, target)
        if similar:
            impacts.append(
                Impact(
                    type=ImpactType.STRUCTURE,
                    severity=Severity.MEDIUM,
                    description=f"Similar files exist: {', '.join(similar)}",
                    affected_files=tuple(similar),
                )
            )
        return impacts

    async def _update_impacts(self, operation: FileOperation) -> list[Impact]:
        target = operation.target_path
        if not await self._ask(self.oracle.exists, target):
            return [
                Impact(
                    type=ImpactType.STRUCTURE,
                    severity=Severity.HIGH,
                    description="Target file does not exist",
                    affected_files=(target,),
                )
            ]

        impacts = []
        if operation.content and has_api_changes(operation.content, operation.metadata.language):
            dependents = await self._ask(self.oracle.find_dependents, target)
            if dependents:
                impacts.append(
                    Impact(
                        type=ImpactType.API,
                        severity=Severity.HIGH,
                        description="API changes detected that may break dependent code",
                        affected_files=tuple(dependents),
                    )
                )

        tests = await self._ask(self.oracle.find_related_tests, target)
        if tests:
            impacts.append(
                Impact(
                    type=ImpactType.TEST,
                    severity=Severity.MEDIUM,
                    description="Related test files may need updates",
                    affected_files=tuple(tests),
                )
            )
        return impacts

    async def _delete_impacts(self, operation: FileOperation) -> list[Impact]:
        target = operation.target_path
        impacts = []
        dependents = await self._ask(self.oracle.find_dependents, target)
        if dependents:
            impacts.append(
                Impact(
                    type=ImpactType.DEPENDENCY,
                    severity=Severity.HIGH,
                    description=f"{len(dependents)} files depend on this file",
                    affected_files=tuple(dependents),
                )
            )
        if is_critical_path(target, self.config.extra_critical_paths):
            impacts.append(
                Impact(
                    type=ImpactType.STRUCTURE,
                    severity=Severity.HIGH,
                    description="This is a critical system file",
                    affected_files=(target,),
                )
            )
        return impacts

    async def _move_impacts(self, operation: FileOperation) -> list[Impact]:
        dependents = await self._ask(
            self.oracle.find_dependents, operation.source_path or operation.target_path
        )
        if not dependents:
            return []
        return [
            Impact(
                type=ImpactType.DEPENDENCY,
                severity=Severity.MEDIUM,
                description=f"{len(dependents)} imports need to be updated",
                affected_files=tuple(dependents),
            )
        ]

    def _quality_impacts(self, operation: FileOperation) -> list[Impact]:
        content = operation.content or ""
        language = (operation.metadata.language or "").lower()
        target = (operation.target_path,)
        impacts = []

        if language in _TS_LANGUAGES and _TS_ANY.search(content):
            impacts.append(
                Impact(
                    type=ImpactType.STYLE,
                    severity=Severity.LOW,
                    description='Usage of "any" type detected in TypeScript',
                    affected_files=target,
                )
            )
        elif language in PY_LANGUAGES and _PY_TYPE_IGNORE.search(content):
            impacts.append(
                Impact(
                    type=ImpactType.STYLE,
                    severity=Severity.LOW,
                    description='"type: ignore" comments detected',
                    affected_files=target,
                )
            )

        todo_count = len(_TODO.findall(content))
        if todo_count > self.config.todo_threshold:
            impacts.append(
                Impact(
                    type=ImpactType.STYLE,
                    severity=Severity.LOW,
                    description=f"{todo_count} TODO comments found",
                    affected_files=target,
                )
            )
        return impacts

    def _security_impacts(self, operation: FileOperation) -> list[Impact]:
        findings = SecretScanner.scan_content(operation.content or "")
        high = sorted({finding.secret_type for finding in findings if finding.severity == "high"})
        if not high:
            return []
        return [
            Impact(
                type=ImpactType.SECURITY,
                severity=Severity.HIGH,
                description=f"Possible hardcoded secrets: {', '.join(high)}",
                affected_files=(operation.target_path,),
            )
        ]

    async def _ask(self, call: Callable[[str], Awaitable[T]], path: str) -> T:
        """Await an oracle call, converting any failure into OracleError."""
        try:
            return await call(path)
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(f"{type(e).__name__}: {e}", {"path": path}) from e

    def _report(self, message: str, operation_id: str) -> None:
        logger.warning("Analysis failure: %s", message)
        if self.on_diagnostic is not None:
            self.on_diagnostic(
                Diagnostic(
                    kind=DiagnosticKind.ANALYSIS_FAILURE,
                    stage="analyze",
                    message=message,
                    operation_id=operation_id,
                )
            )
