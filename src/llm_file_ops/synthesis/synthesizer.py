"""Turn parsed code blocks into ordered file operations.

Blocks are grouped by target path so that several snippets for one file become
a single operation. Blocks without a path get a best-effort target from a
``file:`` comment or, for JS/TS exports, from an optional file locator; when
neither works the block is dropped with a diagnostic instead of guessing.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable, Iterable, Sequence

from llm_file_ops.config.runtime_config import RuntimeConfig
from llm_file_ops.core.models import (
    BlockOperation,
    CodeBlock,
    Diagnostic,
    DiagnosticKind,
    FileInstruction,
    FileOperation,
    InstructionType,
    OperationMetadata,
    OperationType,
)
from llm_file_ops.parsing.metadata import (
    JS_LANGUAGES,
    extract_file_instructions,
    parse_instruction_line,
)
from llm_file_ops.synthesis.content import (
    clean_block_content,
    determine_update_strategy,
    extract_dependencies,
)
from llm_file_ops.utils.path_utils import normalize_target_path

logger = logging.getLogger(__name__)

FileLocator = Callable[[str, str], str | None]
DiagnosticCallback = Callable[[Diagnostic], None]

_FILE_COMMENT = re.compile(r"(?://|#|/\*)\s*(?:file|File|FILE):\s*([^\s*]+)")
_EXPORT_NAME = re.compile(r"export\s+(?:default\s+)?(?:class|function|const)\s+(\w+)")

_HINT_TO_TYPE: dict[BlockOperation, OperationType] = {
    BlockOperation.CREATE: OperationType.CREATE,
    BlockOperation.UPDATE: OperationType.UPDATE,
    BlockOperation.DELETE: OperationType.DELETE,
}

_TS_LANGUAGES = frozenset({"typescript", "ts", "tsx"})


def new_operation_id() -> str:
    """Return a fresh, unique operation id."""
    return f"op_{uuid.uuid4().hex}"


def sort_operations(operations: Iterable[FileOperation]) -> list[FileOperation]:
    """Stable-sort operations into safe application order."""
    return sorted(operations, key=lambda operation: operation.type.priority)


def determine_operation_type(block: CodeBlock) -> OperationType:
    """Pick the operation type for a block.

    An explicit hint wins. Otherwise the body and title are checked for
    create/delete/rename/append wording; anything else is an Update.
    """
    if block.operation_hint in _HINT_TO_TYPE:
        return _HINT_TO_TYPE[block.operation_hint]

    content = block.code.lower()
    description = (block.description or "").lower()

    if "create new file" in content or "create" in description:
        return OperationType.CREATE
    if "delete file" in content or "delete" in description:
        return OperationType.DELETE
    if "rename" in content or "move" in description:
        return OperationType.MOVE
    if "append" in content or "add to end" in description:
        return OperationType.APPEND
    return OperationType.UPDATE


class OperationSynthesizer:
    """Build FileOperations from completed CodeBlocks.

    The synthesizer is stateless between calls: synthesizing the same blocks
    twice yields operations that compare equal (ids and timestamps are
    excluded from equality).

    Example:
        >>> from llm_file_ops.parsing.stream_parser import parse_code_blocks
        >>> blocks = parse_code_blocks("```ts src/a.ts\\nexport const x = 1;\\n```\\n")
        >>> [op.content for op in OperationSynthesizer().synthesize(blocks)]
        ['export const x = 1;']
    """

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        file_locator: FileLocator | None = None,
        on_diagnostic: DiagnosticCallback | None = None,
    ) -> None:
        """Initialize the synthesizer.

        Args:
            config: Content-cleaning and instruction options. Defaults apply when None.
            file_locator: Optional ``(name, extension) -> path`` lookup used to
                place pathless blocks that export a named symbol.
            on_diagnostic: Called with each synthesis ambiguity.
        """
        self.config = config or RuntimeConfig.from_defaults()
        self.file_locator = file_locator
        self.on_diagnostic = on_diagnostic

    def synthesize(
        self,
        blocks: Sequence[CodeBlock],
        instructions: Sequence[FileInstruction] = (),
    ) -> list[FileOperation]:
        """Synthesize an ordered operation list from blocks.

        Args:
            blocks: Completed code blocks in response order.
            instructions: Prose instructions from the response text. Only
                used when ``derive_move_instructions`` is enabled.

        Returns:
            Operations sorted Create < Move < Update < Append < Delete, ties
            kept in block order.
        """
        groups: dict[str | None, list[CodeBlock]] = {}
        for block in blocks:
            key = normalize_target_path(block.file_path) if block.file_path else None
            groups.setdefault(key or None, []).append(block)

        operations: list[FileOperation] = []
        for target_path, group in groups.items():
            if target_path is not None:
                operations.append(self._build_operation(target_path, group))
                continue
            for block in group:
                inferred = self.infer_target_path(block)
                if inferred is None:
                    self._report(
                        f"Dropped {block.language} block without a target path "
                        f"({len(block.code)} chars)"
                    )
                    continue
                operations.append(self._build_operation(inferred, [block]))

        if self.config.derive_move_instructions and instructions:
            operations.extend(self._moves_not_covered(instructions, operations))

        ordered = sort_operations(operations)
        logger.info("Synthesized %d operations from %d blocks", len(ordered), len(blocks))
        return ordered

    def synthesize_block(self, block: CodeBlock) -> FileOperation | None:
        """Synthesize a single block on its own, or None if it has no target."""
        operations = self.synthesize([block])
        return operations[0] if operations else None

    def synthesize_instructions(
        self, instructions: Iterable[FileInstruction]
    ) -> list[FileOperation]:
        """Turn rename/move prose instructions into Move operations."""
        operations = []
        for instruction in instructions:
            if instruction.type not in (InstructionType.RENAME, InstructionType.MOVE):
                continue
            if not instruction.source_path:
                continue
            target = normalize_target_path(instruction.target_path)
            source = normalize_target_path(instruction.source_path)
            operations.append(
                FileOperation(
                    id=new_operation_id(),
                    type=OperationType.MOVE,
                    target_path=target,
                    source_path=source,
                    line_range=instruction.line_range,
                    metadata=OperationMetadata(
                        description=instruction.description,
                        affected_files=(source, target),
                        source_block_count=0,
                    ),
                )
            )
        return operations

    def infer_target_path(self, block: CodeBlock) -> str | None:
        """Infer a target for a pathless block from its content.

        Returns:
            A normalized workspace-relative path, or None when the content
            gives no usable signal.
        """
        match = _FILE_COMMENT.search(block.code)
        if match:
            return normalize_target_path(match.group(1)) or None

        language = block.language.lower()
        if language in JS_LANGUAGES and self.file_locator is not None:
            export = _EXPORT_NAME.search(block.code)
            if export:
                extension = ".ts" if language in _TS_LANGUAGES else ".js"
                located = self.file_locator(export.group(1), extension)
                if located:
                    return normalize_target_path(located) or None
                logger.debug("Could not locate file for %s%s", export.group(1), extension)
        return None

    def _build_operation(self, target_path: str, blocks: list[CodeBlock]) -> FileOperation:
        primary = blocks[0]
        operation_type = determine_operation_type(primary)

        source_path = None
        if operation_type is OperationType.MOVE:
            source_path = self._find_move_source(primary, target_path)
            if source_path is None:
                self._report(
                    f"Move to {target_path} has no recoverable source path; treating as update"
                )
                operation_type = OperationType.UPDATE

        content = None
        if operation_type is not OperationType.DELETE:
            content = "\n\n".join(
                clean_block_content(
                    block,
                    update_intent=operation_type is OperationType.UPDATE,
                    strip_comments=self.config.strip_instruction_comments,
                    normalize_indentation=self.config.normalize_indentation,
                    mark_partial=self.config.mark_partial_updates,
                )
                for block in blocks
            )

        dependencies: dict[str, None] = {}
        for block in blocks:
            for name in extract_dependencies(block.code, block.language):
                dependencies.setdefault(name, None)

        affected = (source_path, target_path) if source_path else (target_path,)
        operation = FileOperation(
            id=new_operation_id(),
            type=operation_type,
            target_path=target_path,
            source_path=source_path,
            content=content,
            line_range=primary.line_range,
            metadata=OperationMetadata(
                description=primary.description,
                language=primary.language,
                affected_files=affected,
                dependencies=tuple(dependencies),
                update_strategy=(
                    determine_update_strategy(primary)
                    if operation_type is OperationType.UPDATE
                    else None
                ),
                source_block_count=len(blocks),
            ),
        )
        logger.debug("Created %s operation for %s", operation_type, target_path)
        return operation

    def _find_move_source(self, block: CodeBlock, target_path: str) -> str | None:
        candidates = []
        if block.description:
            instruction = parse_instruction_line(block.description)
            if instruction is not None:
                candidates.append(instruction)
        candidates.extend(extract_file_instructions(block.code))

        for instruction in candidates:
            if instruction.type not in (InstructionType.RENAME, InstructionType.MOVE):
                continue
            if not instruction.source_path:
                continue
            source = normalize_target_path(instruction.source_path)
            if source != target_path:
                return source
        return None

    def _moves_not_covered(
        self, instructions: Sequence[FileInstruction], operations: list[FileOperation]
    ) -> list[FileOperation]:
        covered = {
            (operation.source_path, operation.target_path)
            for operation in operations
            if operation.type is OperationType.MOVE
        }
        moves = []
        for move in self.synthesize_instructions(instructions):
            if (move.source_path, move.target_path) in covered:
                continue
            covered.add((move.source_path, move.target_path))
            moves.append(move)
        return moves

    def _report(self, message: str) -> None:
        logger.warning("Synthesis ambiguity: %s", message)
        if self.on_diagnostic is not None:
            self.on_diagnostic(
                Diagnostic(
                    kind=DiagnosticKind.SYNTHESIS_AMBIGUITY,
                    stage="synthesize",
                    message=message,
                )
            )
