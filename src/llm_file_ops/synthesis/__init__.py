"""Synthesis of file operations from parsed code blocks."""

from llm_file_ops.synthesis.synthesizer import OperationSynthesizer, sort_operations

__all__ = ["OperationSynthesizer", "sort_operations"]
