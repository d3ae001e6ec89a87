"""Data models for the response-to-operations pipeline.

This module contains the core data classes used throughout the system to
represent parsed code blocks, synthesized file operations, and the results
of safety analysis.

All records are frozen. The only field that changes after an operation is
synthesized is its risk/validation annotation, which the analyzer attaches by
producing a copy:

    >>> from dataclasses import replace
    >>> op = FileOperation(
    ...     id="op_1",
    ...     type=OperationType.UPDATE,
    ...     target_path="src/a.ts",
    ...     content="export const x = 1;",
    ...     metadata=OperationMetadata(language="typescript"),
    ... )
    >>> annotated = replace(op, risk=RiskLevel.LOW)
    >>> annotated.target_path == op.target_path
    True
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class BlockOperation(str, Enum):
    """Operation hint carried by a parsed code block."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        """Return string representation of the hint."""
        return self.value


class OperationType(str, Enum):
    """Types of file operations, in safe application order."""

    CREATE = "create"
    MOVE = "move"
    UPDATE = "update"
    APPEND = "append"
    DELETE = "delete"

    @property
    def priority(self) -> int:
        """Application priority; lower values are applied first."""
        return _OPERATION_PRIORITY[self]

    def __str__(self) -> str:
        """Return string representation of the operation type."""
        return self.value


_OPERATION_PRIORITY: dict[OperationType, int] = {
    OperationType.CREATE: 1,
    OperationType.MOVE: 2,
    OperationType.UPDATE: 3,
    OperationType.APPEND: 4,
    OperationType.DELETE: 5,
}


class RiskLevel(str, Enum):
    """Risk classification gating whether human confirmation is required."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Numeric rank used to compare risk levels."""
        return ("low", "medium", "high").index(self.value)

    def __str__(self) -> str:
        """Return string representation of the risk level."""
        return self.value


class Severity(str, Enum):
    """Severity of a single impact."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        """Return string representation of the severity."""
        return self.value


class ImpactType(str, Enum):
    """Category of an impact found by the safety analyzer."""

    DEPENDENCY = "dependency"
    API = "api"
    TEST = "test"
    STYLE = "style"
    STRUCTURE = "structure"
    SECURITY = "security"
    ANALYSIS = "analysis"

    def __str__(self) -> str:
        """Return string representation of the impact type."""
        return self.value


class ConflictType(str, Enum):
    """Category of a conflict between operations in one batch."""

    FILE = "file"

    def __str__(self) -> str:
        """Return string representation of the conflict type."""
        return self.value


class InstructionType(str, Enum):
    """Verb of a natural-language file instruction."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RENAME = "rename"
    MOVE = "move"

    def __str__(self) -> str:
        """Return string representation of the instruction type."""
        return self.value


class UpdateStrategy(str, Enum):
    """How an update operation is meant to be applied."""

    REPLACE = "replace"
    INSERT = "insert"
    PATCH = "patch"

    def __str__(self) -> str:
        """Return string representation of the strategy."""
        return self.value


class DiagnosticKind(str, Enum):
    """Kinds of recoverable conditions reported by the pipeline."""

    PARSE_ANOMALY = "parse_anomaly"
    SYNTHESIS_AMBIGUITY = "synthesis_ambiguity"
    ANALYSIS_FAILURE = "analysis_failure"

    def __str__(self) -> str:
        """Return string representation of the diagnostic kind."""
        return self.value


@dataclass(frozen=True, slots=True)
class LineRange:
    """Inclusive, 1-indexed line range."""

    start: int
    end: int

    def __post_init__(self) -> None:
        """Validate the range.

        Raises:
            ValueError: If start < 1 or end < start.
        """
        if self.start < 1:
            raise ValueError(f"start must be >= 1, got {self.start}")
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) must be >= start ({self.start})")

    def __str__(self) -> str:
        """Return the range as ``start-end``."""
        return f"{self.start}-{self.end}"


@dataclass(frozen=True, slots=True)
class CodeBlock:
    """A fenced code block completed by the text block parser.

    Attributes:
        language: Block language, "plaintext" when the fence names none.
        code: Block body, lines joined with newlines.
        file_path: Target path declared in the fence header, if any.
        operation_hint: Operation suggested by the header or the body.
        line_range: Line range declared in the header, if any.
        description: Free-text title from the header, if any.
    """

    language: str
    code: str
    file_path: str | None = None
    operation_hint: BlockOperation = BlockOperation.UNKNOWN
    line_range: LineRange | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class BlockMetadata:
    """Metadata resolved from a fence header."""

    language: str = "plaintext"
    file_path: str | None = None
    operation: BlockOperation = BlockOperation.UNKNOWN
    line_range: LineRange | None = None
    title: str | None = None


@dataclass(frozen=True, slots=True)
class FileInstruction:
    """A file instruction found in natural-language text."""

    type: InstructionType
    target_path: str
    source_path: str | None = None
    description: str | None = None
    line_range: LineRange | None = None


@dataclass(slots=True)
class ParserState:
    """Mutable state of one TextBlockParser.

    Owned exclusively by the parser that created it; callers only ever see
    copies returned by ``TextBlockParser.get_current_state()``.
    """

    is_in_block: bool = False
    current_language: str | None = None
    current_file_path: str | None = None
    current_operation_hint: BlockOperation = BlockOperation.UNKNOWN
    current_line_range: LineRange | None = None
    current_title: str | None = None
    current_content: list[str] = field(default_factory=list)
    processed_chars: int = 0
    complete_blocks: list[CodeBlock] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating an operation's content."""

    is_valid: bool = True
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class OperationMetadata:
    """Descriptive metadata attached to a synthesized operation.

    ``timestamp`` is excluded from equality so that synthesizing the same
    blocks twice yields equal operations.
    """

    description: str | None = None
    language: str | None = None
    timestamp: datetime = field(default_factory=_utcnow, compare=False)
    affected_files: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    update_strategy: UpdateStrategy | None = None
    source_block_count: int = 1


@dataclass(frozen=True, slots=True)
class FileOperation:
    """A single file operation proposed to the application step.

    ``id`` is excluded from equality: two operations synthesized from the same
    blocks compare equal even though each batch assigns fresh ids.
    """

    id: str = field(compare=False)
    type: OperationType
    target_path: str
    metadata: OperationMetadata
    source_path: str | None = None
    content: str | None = None
    line_range: LineRange | None = None
    risk: RiskLevel | None = None
    validation: ValidationResult | None = None


@dataclass(frozen=True, slots=True)
class Impact:
    """A consequence of applying an operation."""

    type: ImpactType
    severity: Severity
    description: str
    affected_files: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Conflict:
    """Represents a conflict between two or more operations in a batch."""

    type: ConflictType
    operation_ids: tuple[str, ...]
    description: str
    resolution: str | None = None


@dataclass(frozen=True, slots=True)
class Alternative:
    """A safer approach suggested for a risky operation."""

    description: str
    benefits: tuple[str, ...] = ()
    drawbacks: tuple[str, ...] = ()
    implementation: str | None = None


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Safety analysis of one operation.

    Attributes:
        operation: The analyzed operation, with risk and validation attached.
        risk: Risk level assigned by the policy.
        impacts: Impacts found for the operation.
        suggestions: Human-readable review suggestions.
        alternatives: Safer alternatives, if any.
        requires_review: True when risk is not low or any impact is high.
        inconclusive: True when an oracle call failed during analysis.
    """

    operation: FileOperation
    risk: RiskLevel
    impacts: tuple[Impact, ...]
    suggestions: tuple[str, ...] = ()
    alternatives: tuple[Alternative, ...] = ()
    requires_review: bool = False
    inconclusive: bool = False


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """Structured record of a recoverable condition for host-side logging."""

    kind: DiagnosticKind
    stage: str
    message: str
    operation_id: str | None = None


@dataclass(frozen=True, slots=True)
class OperationBatch:
    """The finalized, ordered, risk-annotated result of one model turn.

    Attributes:
        operations: Operations in safe application order.
        conflicts: Conflicts detected between operations.
        analyses: Per-operation analysis, keyed by operation id.
        diagnostics: Recoverable conditions met while producing the batch.
        conflict_checks: Names of the conflict checks that ran. Conflict
            detection is best-effort; checks not listed were not performed.
    """

    operations: tuple[FileOperation, ...]
    conflicts: tuple[Conflict, ...] = ()
    analyses: dict[str, AnalysisResult] = field(default_factory=dict)
    diagnostics: tuple[Diagnostic, ...] = ()
    conflict_checks: tuple[str, ...] = ()

    @property
    def requires_review(self) -> bool:
        """Whether any operation in the batch needs human confirmation."""
        return any(result.requires_review for result in self.analyses.values()) or bool(
            self.conflicts
        )
