"""LLM File Ops.

Turns streamed model responses into reviewed, ordered file operations.
"""

__version__ = "0.1.0"
__author__ = "VirtualAgentics"
__email__ = "contact@virtualagentics.com"

from .analysis.conflict_detector import ConflictDetector
from .analysis.oracles import FilesystemOracle, WorkspaceOracle
from .analysis.safety import SafetyAnalyzer
from .config.runtime_config import RuntimeConfig
from .core.models import (
    AnalysisResult,
    CodeBlock,
    Conflict,
    Diagnostic,
    FileOperation,
    OperationBatch,
    OperationType,
    RiskLevel,
)
from .exceptions import FileOpsError, OracleError, PipelineCancelledError, WorkspaceError
from .parsing.stream_parser import TextBlockParser
from .pipeline.coordinator import PipelineCoordinator
from .pipeline.events import BasePipelineListener, PipelineListener
from .synthesis.synthesizer import OperationSynthesizer

__all__ = [
    "AnalysisResult",
    "BasePipelineListener",
    "CodeBlock",
    "Conflict",
    "ConflictDetector",
    "Diagnostic",
    "FileOperation",
    "FileOpsError",
    "FilesystemOracle",
    "OperationBatch",
    "OperationSynthesizer",
    "OperationType",
    "OracleError",
    "PipelineCancelledError",
    "PipelineCoordinator",
    "PipelineListener",
    "RiskLevel",
    "RuntimeConfig",
    "SafetyAnalyzer",
    "TextBlockParser",
    "WorkspaceError",
    "WorkspaceOracle",
]
