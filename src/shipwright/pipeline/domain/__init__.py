"""
Pipeline domain: enums and immutable models shared by every stage.
"""

from shipwright.pipeline.domain.enums import (
    ArtifactKind,
    ProbeState,
    PublishPhase,
    StageName,
    StageStatus,
    TargetKind,
)
from shipwright.pipeline.domain.models import (
    Artifact,
    ArtifactSet,
    CapabilityFlags,
    CompileTarget,
    PipelineConfig,
    PublishIdentity,
    PublishOutcome,
    PublishState,
    RunReport,
    StageReport,
    WorkspaceLayout,
)

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ArtifactSet",
    "CapabilityFlags",
    "CompileTarget",
    "PipelineConfig",
    "ProbeState",
    "PublishIdentity",
    "PublishOutcome",
    "PublishPhase",
    "PublishState",
    "RunReport",
    "StageName",
    "StageReport",
    "StageStatus",
    "TargetKind",
    "WorkspaceLayout",
]
