"""Incremental parsing of model responses.

This module provides:
- TextBlockParser: Chunk-by-chunk fenced code block parser
- BlockMetadataResolver: Header, path and instruction extraction
- parse_code_blocks: One-shot parsing of a complete response
"""

from llm_file_ops.parsing.metadata import BlockMetadataResolver
from llm_file_ops.parsing.stream_parser import TextBlockParser, parse_code_blocks

__all__ = ["BlockMetadataResolver", "TextBlockParser", "parse_code_blocks"]
