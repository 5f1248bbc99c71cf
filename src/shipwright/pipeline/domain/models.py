"""
Pipeline domain models.

PipelineConfig is created once per invocation and never mutated. Everything
else that stages exchange (layout, artifacts, publish state, reports) is an
immutable value as well; stages return new values instead of updating
shared ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shipwright.pipeline.domain.enums import (
    ArtifactKind,
    ProbeState,
    PublishPhase,
    StageName,
    StageStatus,
    TargetKind,
)
from shipwright.shared.domain.exceptions import ConfigurationError

BUILD_SUBDIRS: Dict[TargetKind, str] = {
    TargetKind.NATIVE: "driver",
    TargetKind.CLI: "cli",
    TargetKind.GUI: "gui",
}

INSTALL_SUBDIRS: Dict[ArtifactKind, str] = {
    ArtifactKind.EXECUTABLE: "bin",
    ArtifactKind.LIBRARY: "lib",
    ArtifactKind.CONFIGURATION: "bin",  # Configuration ships next to executables
}


# =============================================================================
# Configuration
# =============================================================================


class CapabilityFlags(BaseModel):
    """Boolean switches gating whole stages."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    force_sync: bool = False
    build_native: bool = True
    build_cli: bool = True
    build_gui: bool = True
    sign: bool = True
    auto_publish: bool = True

    def builds(self, kind: TargetKind) -> bool:
        return {
            TargetKind.NATIVE: self.build_native,
            TargetKind.CLI: self.build_cli,
            TargetKind.GUI: self.build_gui,
        }[kind]

    @property
    def any_build(self) -> bool:
        return self.build_native or self.build_cli or self.build_gui


class PublishIdentity(BaseModel):
    """Where the caller's workspace is republished."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    owner: str
    repo: str
    branch: str = "main"
    remote_url: Optional[str] = None

    @field_validator("owner", "repo", "branch")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def resolve_remote_url(self, host: str) -> str:
        if self.remote_url:
            return self.remote_url
        return f"https://{host}/{self.owner}/{self.repo}.git"


class CompileTarget(BaseModel):
    """One project handed to the compiler capability."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    kind: TargetKind
    project: str = Field(description="Project path relative to the synchronized source tree")


def _default_targets() -> Tuple[CompileTarget, ...]:
    return (
        CompileTarget(name="driver", kind=TargetKind.NATIVE, project="driver"),
        CompileTarget(name="cli", kind=TargetKind.CLI, project="cli"),
        CompileTarget(name="gui", kind=TargetKind.GUI, project="gui"),
    )


class PipelineConfig(BaseModel):
    """Immutable inputs of one pipeline invocation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source_root: Path
    build_root: Path
    install_root: Path
    repo_root: Path
    source_url: str
    source_branch: str = "main"
    source_subdir: str = "upstream"
    build_profile: str = "Release"
    flags: CapabilityFlags = Field(default_factory=CapabilityFlags)
    publish: Optional[PublishIdentity] = None
    targets: Tuple[CompileTarget, ...] = Field(default_factory=_default_targets)

    @field_validator("source_root", "build_root", "install_root", "repo_root", mode="before")
    @classmethod
    def _absolute(cls, value: Any) -> Path:
        return Path(value).expanduser().resolve()

    @field_validator("source_subdir")
    @classmethod
    def _relative_subdir(cls, value: str) -> str:
        parts = Path(value).parts
        if not parts or Path(value).is_absolute() or ".." in parts:
            raise ValueError(f"source_subdir must be a relative path inside source_root, got '{value}'")
        return value

    @model_validator(mode="after")
    def _publish_identity_required(self) -> "PipelineConfig":
        if self.flags.auto_publish and self.publish is None:
            raise ValueError("auto_publish is enabled but no publish identity (owner, repo) is configured")
        return self

    @property
    def layout(self) -> "WorkspaceLayout":
        return WorkspaceLayout.from_config(self)

    def enabled_targets(self) -> Tuple[CompileTarget, ...]:
        return tuple(t for t in self.targets if self.flags.builds(t.kind))


# =============================================================================
# Workspace layout
# =============================================================================


def _is_within(root: Path, path: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


@dataclass(frozen=True)
class WorkspaceLayout:
    """Derived on-disk paths. Every path is inside its respective root."""

    source_root: Path
    build_root: Path
    install_root: Path
    repo_root: Path
    source_tree: Path
    build_dirs: Mapping[TargetKind, Path]
    install_bin: Path
    install_lib: Path

    def __post_init__(self) -> None:
        pairs = [(self.source_root, self.source_tree), (self.install_root, self.install_bin),
                 (self.install_root, self.install_lib)]
        pairs += [(self.build_root, path) for path in self.build_dirs.values()]
        for root, path in pairs:
            if not _is_within(root, path) or root == path:
                raise ConfigurationError(
                    f"Derived path {path} escapes its root {root}",
                    context={"root": str(root), "path": str(path)},
                )

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "WorkspaceLayout":
        source_tree = (config.source_root / config.source_subdir).resolve()
        return cls(
            source_root=config.source_root,
            build_root=config.build_root,
            install_root=config.install_root,
            repo_root=config.repo_root,
            source_tree=source_tree,
            build_dirs={kind: config.build_root / sub for kind, sub in BUILD_SUBDIRS.items()},
            install_bin=config.install_root / INSTALL_SUBDIRS[ArtifactKind.EXECUTABLE],
            install_lib=config.install_root / INSTALL_SUBDIRS[ArtifactKind.LIBRARY],
        )

    def build_dir(self, kind: TargetKind) -> Path:
        return self.build_dirs[kind]

    def install_dir(self, kind: ArtifactKind) -> Path:
        return self.install_root / INSTALL_SUBDIRS[kind]

    @property
    def activation_scripts(self) -> Tuple[Path, Path]:
        return (self.install_root / "activate.ps1", self.install_root / "activate.sh")


# =============================================================================
# Artifacts
# =============================================================================


@dataclass(frozen=True)
class Artifact:
    """A deployed build output. ``signed`` only flips on signer success."""

    source: Path
    destination: Path
    kind: ArtifactKind
    signed: bool = False


@dataclass(frozen=True)
class ArtifactSet:
    """Ordered collection of deployed artifacts."""

    items: Tuple[Artifact, ...] = ()

    def __iter__(self) -> Iterator[Artifact]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def by_kind(self, kind: ArtifactKind) -> Tuple[Artifact, ...]:
        return tuple(a for a in self.items if a.kind == kind)

    def with_signed(self, signed_paths: Iterable[Path]) -> "ArtifactSet":
        signed = {Path(p) for p in signed_paths}
        return ArtifactSet(
            tuple(replace(a, signed=True) if a.destination in signed else a for a in self.items)
        )

    @property
    def signed_count(self) -> int:
        return sum(1 for a in self.items if a.signed)


# =============================================================================
# Publish state
# =============================================================================


@dataclass(frozen=True)
class PublishState:
    """Live snapshot of local and remote git state. Never persisted."""

    remote_exists: bool
    local_initialized: bool
    current_branch: Optional[str]
    has_pending_changes: bool

    @property
    def phase(self) -> PublishPhase:
        return PublishPhase.REMOTE_EXISTS if self.remote_exists else PublishPhase.NO_REMOTE


@dataclass(frozen=True)
class PublishOutcome:
    """Terminal result of one publisher run, with the phases it passed through."""

    phase: PublishPhase
    history: Tuple[PublishPhase, ...]
    committed: bool = False
    forced: bool = False
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.phase == PublishPhase.PUSHED


# =============================================================================
# Run report
# =============================================================================


@dataclass(frozen=True)
class StageReport:
    """What one stage produced. ``fatal`` makes the run exit non-zero."""

    stage: StageName
    status: StageStatus
    messages: Tuple[str, ...] = ()
    fatal: bool = False
    details: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def skipped(cls, stage: StageName, reason: str) -> "StageReport":
        return cls(stage=stage, status=StageStatus.SKIPPED, messages=(reason,))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "status": self.status.value,
            "fatal": self.fatal,
            "messages": list(self.messages),
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class RunReport:
    """Folded result of a pipeline run."""

    run_id: str
    stages: Tuple[StageReport, ...] = ()

    def with_stage(self, report: StageReport) -> "RunReport":
        return RunReport(run_id=self.run_id, stages=self.stages + (report,))

    def get(self, stage: StageName) -> Optional[StageReport]:
        for report in self.stages:
            if report.stage == stage:
                return report
        return None

    def status_of(self, stage: StageName) -> Optional[StageStatus]:
        report = self.get(stage)
        return report.status if report else None

    @property
    def has_fatal(self) -> bool:
        return any(r.fatal for r in self.stages)

    @property
    def exit_code(self) -> int:
        return 1 if self.has_fatal else 0

    @property
    def warnings(self) -> Tuple[str, ...]:
        return tuple(
            m for r in self.stages if r.status in (StageStatus.WARNING, StageStatus.FAILED) and not r.fatal
            for m in r.messages
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "exit_code": self.exit_code,
            "stages": [r.to_dict() for r in self.stages],
        }


__all__ = [
    "Artifact",
    "ArtifactSet",
    "CapabilityFlags",
    "CompileTarget",
    "PipelineConfig",
    "ProbeState",
    "PublishIdentity",
    "PublishOutcome",
    "PublishState",
    "RunReport",
    "StageReport",
    "WorkspaceLayout",
]
