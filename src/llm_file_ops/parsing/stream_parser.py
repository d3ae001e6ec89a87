"""Incremental parser turning streamed model output into fenced code blocks.

The parser is a line-oriented state machine. Chunks may split lines, fences
or even ``\\r\\n`` pairs anywhere; only newline-terminated lines are
classified, the remainder stays buffered until the next chunk or
:meth:`TextBlockParser.complete`.

Example:
    >>> parser = TextBlockParser()
    >>> parser.process("```ts src/a.ts\\nexport const x = 1;\\n")
    >>> parser.process("```\\n")
    >>> [block.file_path for block in parser.complete()]
    ['src/a.ts']
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable

from llm_file_ops.core.models import (
    BlockOperation,
    CodeBlock,
    Diagnostic,
    DiagnosticKind,
    ParserState,
)
from llm_file_ops.parsing.metadata import DEFAULT_LANGUAGE, parse_metadata

logger = logging.getLogger(__name__)

FENCE = "```"

_LANGUAGE_TOKEN = re.compile(r"^[\w+#.\-]+$")

# Checked in order; the first verb found in the block body wins.
_CONTENT_OPERATIONS: tuple[tuple[re.Pattern[str], BlockOperation], ...] = (
    (re.compile(r"\b(create\s+)?new\s+file\b", re.IGNORECASE), BlockOperation.CREATE),
    (re.compile(r"\b(update|modify|change)\b", re.IGNORECASE), BlockOperation.UPDATE),
    (re.compile(r"\b(delete|remove)\b", re.IGNORECASE), BlockOperation.DELETE),
)

CodeBlockCallback = Callable[[CodeBlock], None]
TextCallback = Callable[[str], None]
DiagnosticCallback = Callable[[Diagnostic], None]


def detect_content_operation(code: str) -> BlockOperation:
    """Return the operation named by a verb in a block body, or ``unknown``."""
    for pattern, operation in _CONTENT_OPERATIONS:
        if pattern.search(code):
            return operation
    return BlockOperation.UNKNOWN


class TextBlockParser:
    """Streaming fence parser for one model response.

    A parser instance is single-writer: ``process`` calls must be made in
    arrival order from one task. Callbacks are invoked synchronously, in the
    order blocks and text lines are produced.

    Attributes:
        on_code_block: Called with each CodeBlock as its closing fence is seen.
        on_text: Called with each line outside a fenced block.
        on_diagnostic: Called with each parse anomaly.
    """

    def __init__(
        self,
        on_code_block: CodeBlockCallback | None = None,
        on_text: TextCallback | None = None,
        on_diagnostic: DiagnosticCallback | None = None,
    ) -> None:
        """Initialize the parser with optional event callbacks."""
        self.on_code_block = on_code_block
        self.on_text = on_text
        self.on_diagnostic = on_diagnostic
        self._state = ParserState()
        self._buffer = ""
        self._diagnostics: list[Diagnostic] = []

    def process(self, chunk: str) -> None:
        """Consume a chunk of response text.

        Every complete line in the buffer is classified before returning; an
        incomplete trailing line is kept for the next call.
        """
        if not chunk:
            return
        self._buffer += chunk
        while True:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1 :]
            self._state.processed_chars += newline + 1
            self._process_line(line.removesuffix("\r"))

    def complete(self) -> list[CodeBlock]:
        """Signal end of stream and return all completed blocks.

        The buffered tail is processed as a final line. A block still open
        afterwards is finalized with the content gathered so far instead of
        being dropped.
        """
        if self._buffer:
            tail = self._buffer
            self._buffer = ""
            self._state.processed_chars += len(tail)
            self._process_line(tail.removesuffix("\r"))

        if self._state.is_in_block:
            self._report(
                f"Unterminated code block at end of stream "
                f"({len(self._state.current_content)} lines, "
                f"path={self._state.current_file_path or 'none'}); finalizing"
            )
            self._finalize_block()

        return self.get_complete_blocks()

    def reset(self) -> None:
        """Return to the initial state so the instance can parse another turn."""
        self._state = ParserState()
        self._buffer = ""
        self._diagnostics = []

    def get_complete_blocks(self) -> list[CodeBlock]:
        """Return a copy of the blocks completed so far."""
        return list(self._state.complete_blocks)

    def get_current_state(self) -> ParserState:
        """Return a deep copy of the parser state for inspection."""
        return copy.deepcopy(self._state)

    def get_diagnostics(self) -> list[Diagnostic]:
        """Return the parse anomalies reported so far."""
        return list(self._diagnostics)

    def _process_line(self, line: str) -> None:
        if line.strip().startswith(FENCE):
            if self._state.is_in_block:
                self._finalize_block()
            else:
                self._open_block(line.strip()[len(FENCE) :])
            return

        if self._state.is_in_block:
            self._state.current_content.append(line)
        elif self.on_text is not None:
            self.on_text(line)

    def _open_block(self, header: str) -> None:
        metadata = parse_metadata(header)
        language = metadata.language

        if language != DEFAULT_LANGUAGE and not _LANGUAGE_TOKEN.match(language):
            self._report(f"Malformed fence header {header!r}; using {DEFAULT_LANGUAGE}")
            language = DEFAULT_LANGUAGE

        state = self._state
        state.is_in_block = True
        state.current_language = language
        state.current_file_path = metadata.file_path
        state.current_operation_hint = metadata.operation
        state.current_line_range = metadata.line_range
        state.current_title = metadata.title
        state.current_content = []
        logger.debug("Opened %s block (path=%s)", language, metadata.file_path)

    def _finalize_block(self) -> None:
        state = self._state
        code = "\n".join(state.current_content)

        operation = detect_content_operation(code)
        if operation is BlockOperation.UNKNOWN:
            operation = state.current_operation_hint

        block = CodeBlock(
            language=state.current_language or DEFAULT_LANGUAGE,
            code=code,
            file_path=state.current_file_path,
            operation_hint=operation,
            line_range=state.current_line_range,
            description=state.current_title,
        )
        state.complete_blocks.append(block)

        state.is_in_block = False
        state.current_language = None
        state.current_file_path = None
        state.current_operation_hint = BlockOperation.UNKNOWN
        state.current_line_range = None
        state.current_title = None
        state.current_content = []

        logger.debug(
            "Completed %s block (path=%s, operation=%s, %d chars)",
            block.language,
            block.file_path,
            block.operation_hint,
            len(block.code),
        )
        if self.on_code_block is not None:
            self.on_code_block(block)

    def _report(self, message: str) -> None:
        logger.warning("Parse anomaly: %s", message)
        diagnostic = Diagnostic(kind=DiagnosticKind.PARSE_ANOMALY, stage="parse", message=message)
        self._diagnostics.append(diagnostic)
        if self.on_diagnostic is not None:
            self.on_diagnostic(diagnostic)


def parse_code_blocks(text: str) -> list[CodeBlock]:
    """Parse a complete response in one pass and return its code blocks."""
    parser = TextBlockParser()
    parser.process(text)
    return parser.complete()
