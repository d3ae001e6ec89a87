"""Pipeline coordination and progressive events."""

from llm_file_ops.pipeline.coordinator import PipelineCoordinator
from llm_file_ops.pipeline.events import BasePipelineListener, PipelineListener

__all__ = ["BasePipelineListener", "PipelineCoordinator", "PipelineListener"]
