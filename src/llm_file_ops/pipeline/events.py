"""Listener contract for pipeline notifications.

A coordinator calls its listener from the task that drives it, in the order
events are produced: each ``on_code_block`` is followed by the matching
``on_operation_queued`` (when the block yields an operation), and
``on_batch_ready`` comes last. Calls are never concurrent for one coordinator.
"""

from typing import Protocol, runtime_checkable

from llm_file_ops.core.models import CodeBlock, Diagnostic, FileOperation, OperationBatch


@runtime_checkable
class PipelineListener(Protocol):
    """Receiver of progressive pipeline events."""

    def on_code_block(self, block: CodeBlock) -> None:
        """Called when a fenced block is completed."""
        ...

    def on_text(self, line: str) -> None:
        """Called for each line of text outside code blocks."""
        ...

    def on_operation_queued(self, operation: FileOperation) -> None:
        """Called with the provisional operation synthesized from one block."""
        ...

    def on_batch_ready(self, batch: OperationBatch) -> None:
        """Called once with the finalized, analyzed batch."""
        ...

    def on_diagnostic(self, diagnostic: Diagnostic) -> None:
        """Called for each recoverable parse, synthesis or analysis problem."""
        ...


class BasePipelineListener:
    """No-op listener; subclass and override the events you need."""

    def on_code_block(self, block: CodeBlock) -> None:
        """Ignore completed blocks."""

    def on_text(self, line: str) -> None:
        """Ignore text lines."""

    def on_operation_queued(self, operation: FileOperation) -> None:
        """Ignore provisional operations."""

    def on_batch_ready(self, batch: OperationBatch) -> None:
        """Ignore the finalized batch."""

    def on_diagnostic(self, diagnostic: Diagnostic) -> None:
        """Ignore diagnostics."""
