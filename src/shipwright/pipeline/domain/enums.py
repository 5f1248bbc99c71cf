"""
Pipeline domain enums.

Defines stage identities, stage outcomes, probe states and publish phases.
"""

from enum import Enum


class StageName(Enum):
    """Pipeline stages in execution order."""

    SOURCE_SYNC = "source_sync"
    SANITIZE = "sanitize"
    COMPILE = "compile"
    PACKAGE = "package"
    SIGN = "sign"
    PUBLISH = "publish"


class StageStatus(Enum):
    """Outcome of a single stage."""

    SUCCESS = "success"
    WARNING = "warning"  # Completed with non-fatal problems
    FAILED = "failed"
    SKIPPED = "skipped"  # Capability flag off or precondition unmet


class ProbeState(Enum):
    """
    Tri-state answer for "is this a valid checkout / remote".

    INVALID only applies to local paths: present on disk but not a
    working copy.
    """

    ABSENT = "absent"
    VALID = "valid"
    INVALID = "invalid"


class PublishPhase(Enum):
    """Publisher state machine phases."""

    NO_REMOTE = "no_remote"
    REMOTE_EXISTS = "remote_exists"
    COMMITTED = "committed"
    PUSHED = "pushed"
    PUSH_REJECTED = "push_rejected"
    FAILED = "failed"


class ArtifactKind(Enum):
    """Artifact categories and their install subfolder."""

    EXECUTABLE = "executable"
    LIBRARY = "library"
    CONFIGURATION = "configuration"


class TargetKind(Enum):
    """Compile target families, each gated by its own capability flag."""

    NATIVE = "native"
    CLI = "cli"
    GUI = "gui"
