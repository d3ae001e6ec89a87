"""Safety analysis for synthesized operations.

This module provides:
- SafetyAnalyzer: Impact, risk and review assessment per operation
- ConflictDetector: Pairwise conflict detection across a batch
- CodeValidator: Content and path validation
- FilesystemOracle / WorkspaceOracle: Read-only workspace queries
"""

from llm_file_ops.analysis.conflict_detector import ConflictDetector
from llm_file_ops.analysis.oracles import FilesystemOracle, WorkspaceOracle
from llm_file_ops.analysis.safety import SafetyAnalyzer
from llm_file_ops.analysis.validation import CodeValidator, SecretScanner

__all__ = [
    "CodeValidator",
    "ConflictDetector",
    "FilesystemOracle",
    "SafetyAnalyzer",
    "SecretScanner",
    "WorkspaceOracle",
]
