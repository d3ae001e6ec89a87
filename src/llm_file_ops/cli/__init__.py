"""Command-line interface for llm-file-ops."""
