from shipwright.pipeline.application.config_loader import load_pipeline_config
from shipwright.pipeline.application.orchestrator import PipelineOrchestrator

__all__ = ["PipelineOrchestrator", "load_pipeline_config"]
