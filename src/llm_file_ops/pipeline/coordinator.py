"""Drive one model turn from raw text to an analyzed operation batch.

Streaming turns call :meth:`PipelineCoordinator.feed` per chunk and
:meth:`PipelineCoordinator.finish` at the end; complete responses go through
:meth:`PipelineCoordinator.run_complete`. Both paths parse with the same
parser and synthesize the final batch from the full block list, so they
produce equal batches for equal text.

Example:
    >>> coordinator = PipelineCoordinator(Path("."))
    >>> for chunk in ("```ts src/a.ts\\n", "export const x = 1;\\n```\\n"):
    ...     coordinator.feed(chunk)
    >>> batch = asyncio.run(coordinator.finish())
    >>> [op.target_path for op in batch.operations]
    ['src/a.ts']
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Iterable
from pathlib import Path

from llm_file_ops.analysis.oracles import FilesystemOracle, WorkspaceOracle
from llm_file_ops.analysis.safety import SafetyAnalyzer
from llm_file_ops.config.runtime_config import RuntimeConfig
from llm_file_ops.core.models import (
    AnalysisResult,
    CodeBlock,
    Diagnostic,
    FileOperation,
    OperationBatch,
)
from llm_file_ops.exceptions import FileOpsError, PipelineCancelledError
from llm_file_ops.parsing.metadata import extract_file_instructions
from llm_file_ops.parsing.stream_parser import TextBlockParser
from llm_file_ops.pipeline.events import BasePipelineListener, PipelineListener
from llm_file_ops.synthesis.synthesizer import FileLocator, OperationSynthesizer

logger = logging.getLogger(__name__)


class PipelineCoordinator:
    """Own the parser, synthesizer and analyzer for one model turn.

    A coordinator is not shared between turns running at the same time; call
    :meth:`reset` to reuse it for the next turn.

    Args:
        workspace_root: Directory relative targets refer to. Used to build a
            FilesystemOracle when no oracle is given.
        oracle: Workspace oracle for the analyzer. Takes precedence over
            workspace_root.
        config: Runtime configuration shared by all stages.
        listener: Receiver of progressive events.
        file_locator: ``(name, extension) -> path`` lookup for pathless
            blocks. Defaults to the filesystem oracle's ``locate_file``.

    Raises:
        ValueError: If neither workspace_root nor oracle is given.
        WorkspaceError: If workspace_root is not an existing directory.
    """

    def __init__(
        self,
        workspace_root: Path | str | None = None,
        *,
        oracle: WorkspaceOracle | None = None,
        config: RuntimeConfig | None = None,
        listener: PipelineListener | None = None,
        file_locator: FileLocator | None = None,
    ) -> None:
        """Initialize the pipeline stages."""
        if oracle is None:
            if workspace_root is None:
                raise ValueError("Either workspace_root or oracle is required")
            filesystem_oracle = FilesystemOracle(workspace_root)
            oracle = filesystem_oracle
            if file_locator is None:
                file_locator = filesystem_oracle.locate_file

        self.config = config or RuntimeConfig.from_defaults()
        self.listener: PipelineListener = listener or BasePipelineListener()

        # Lookups are cached per turn; provisional and final synthesis share them.
        self._file_locator = file_locator
        self._located: dict[tuple[str, str], str | None] = {}
        if file_locator is not None:
            file_locator = self._locate

        self._parser = TextBlockParser(
            on_code_block=self._handle_block,
            on_text=self._handle_text,
            on_diagnostic=self._handle_diagnostic,
        )
        self._synthesizer = OperationSynthesizer(
            self.config, file_locator, on_diagnostic=self._handle_diagnostic
        )
        # Provisional per-block synthesis stays silent; the final pass reports.
        self._provisional = OperationSynthesizer(self.config, file_locator)
        self._analyzer = SafetyAnalyzer(
            oracle, self.config, on_diagnostic=self._handle_diagnostic
        )

        self._queue: list[FileOperation] = []
        self._text_lines: list[str] = []
        self._diagnostics: list[Diagnostic] = []
        self._analysis_task: asyncio.Task[dict[str, AnalysisResult]] | None = None
        self._cancelled = False
        self._finished = False

    @property
    def queued_operations(self) -> tuple[FileOperation, ...]:
        """Provisional operations queued so far, one per completed block."""
        return tuple(self._queue)

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        """Diagnostics reported so far in this turn."""
        return tuple(self._diagnostics)

    @property
    def cancelled(self) -> bool:
        """Whether :meth:`cancel` was called since the last reset."""
        return self._cancelled

    def feed(self, chunk: str) -> None:
        """Pass a streamed chunk to the parser.

        Raises:
            PipelineCancelledError: If the turn was cancelled.
            FileOpsError: If the turn already finished.
        """
        self._check_active()
        self._parser.process(chunk)

    async def finish(self) -> OperationBatch:
        """Complete the stream, then synthesize, check and analyze the batch.

        Returns:
            The finalized batch, also delivered to ``listener.on_batch_ready``.

        Raises:
            PipelineCancelledError: If the turn is cancelled before or while
                the batch is analyzed. Nothing from a cancelled turn is returned.
        """
        self._check_active()
        blocks = self._parser.complete()

        instructions = ()
        if self.config.derive_move_instructions:
            instructions = tuple(extract_file_instructions("\n".join(self._text_lines)))

        operations = self._synthesizer.synthesize(blocks, instructions)
        conflicts = self._analyzer.detect_conflicts(operations)

        self._analysis_task = asyncio.ensure_future(self._analyzer.analyze_batch(operations))
        try:
            analyses = await self._analysis_task
        except asyncio.CancelledError:
            if self._cancelled:
                raise PipelineCancelledError("Pipeline cancelled during analysis") from None
            raise
        finally:
            self._analysis_task = None

        if self._cancelled:
            raise PipelineCancelledError("Pipeline cancelled during analysis")

        batch = OperationBatch(
            operations=tuple(analyses[operation.id].operation for operation in operations),
            conflicts=tuple(conflicts),
            analyses=analyses,
            diagnostics=tuple(self._diagnostics),
            conflict_checks=self._analyzer.conflict_checks,
        )
        self._finished = True
        logger.info(
            "Batch ready: %d operations, %d conflicts, review required: %s",
            len(batch.operations),
            len(batch.conflicts),
            batch.requires_review,
        )
        self.listener.on_batch_ready(batch)
        return batch

    async def run_stream(self, chunks: Iterable[str] | AsyncIterable[str]) -> OperationBatch:
        """Feed every chunk from a sync or async iterable, then finish."""
        if isinstance(chunks, AsyncIterable):
            async for chunk in chunks:
                self.feed(chunk)
        else:
            for chunk in chunks:
                self.feed(chunk)
        return await self.finish()

    async def run_complete(self, text: str) -> OperationBatch:
        """Process a complete, non-streamed response."""
        self.feed(text)
        return await self.finish()

    def cancel(self) -> None:
        """Abort the turn, discarding parser state and queued operations.

        Any later :meth:`feed` or :meth:`finish` raises PipelineCancelledError
        until :meth:`reset` is called.
        """
        if self._cancelled:
            return
        self._cancelled = True
        self._parser.reset()
        self._queue.clear()
        self._text_lines.clear()
        if self._analysis_task is not None:
            self._analysis_task.cancel()
        logger.info("Pipeline cancelled")

    def reset(self) -> None:
        """Prepare the coordinator for a new turn."""
        if self._analysis_task is not None:
            self._analysis_task.cancel()
            self._analysis_task = None
        self._parser.reset()
        self._queue.clear()
        self._text_lines.clear()
        self._diagnostics.clear()
        self._located.clear()
        self._cancelled = False
        self._finished = False

    def _check_active(self) -> None:
        if self._cancelled:
            raise PipelineCancelledError("Pipeline was cancelled; call reset() to start a new turn")
        if self._finished:
            raise FileOpsError("Pipeline already finished; call reset() to start a new turn")

    def _locate(self, name: str, extension: str) -> str | None:
        key = (name, extension)
        if key not in self._located:
            assert self._file_locator is not None
            self._located[key] = self._file_locator(name, extension)
        return self._located[key]

    def _handle_block(self, block: CodeBlock) -> None:
        self.listener.on_code_block(block)
        operation = self._provisional.synthesize_block(block)
        if operation is not None:
            self._queue.append(operation)
            self.listener.on_operation_queued(operation)

    def _handle_text(self, line: str) -> None:
        self._text_lines.append(line)
        self.listener.on_text(line)

    def _handle_diagnostic(self, diagnostic: Diagnostic) -> None:
        self._diagnostics.append(diagnostic)
        self.listener.on_diagnostic(diagnostic)
