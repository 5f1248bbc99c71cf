"""
SourceSync stage.

Guarantees that the target path is a checkout of the remote at the requested
branch, or raises. A path that exists but is not a valid checkout is never
repaired: it is deleted and cloned again.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from shipwright.pipeline.domain.enums import ProbeState
from shipwright.shared.domain.exceptions import SourceSyncFailure
from shipwright.shared.infrastructure.execution.command_executor import ExternalTool, ToolResult
from shipwright.shared.infrastructure.logging import get_logger
from shipwright.shared.utils.path_utils import remove_tree
from shipwright.workspace.probe import NON_INTERACTIVE_ENV, WorkspaceProbe

logger = get_logger(__name__)


class SyncAction(Enum):
    CLONED = "cloned"  # Nothing was there
    RECLONED = "recloned"  # Something was there and got discarded
    UPDATED = "updated"  # Valid checkout fast-forwarded in place


@dataclass
class SyncResult:
    path: Path
    action: SyncAction
    previous_state: ProbeState
    forced: bool = False


class SourceSync:
    """Clone or fast-forward the external source tree."""

    def __init__(self, git: ExternalTool, probe: WorkspaceProbe | None = None):
        self.git = git
        self.probe = probe or WorkspaceProbe(git)

    def sync(self, url: str, branch: str, target: Path, force: bool = False) -> SyncResult:
        """
        Bring ``target`` to a valid checkout of ``url`` at ``branch``.

        A valid checkout whose ``origin`` points somewhere other than ``url``
        is discarded and cloned again like an invalid one.

        Raises:
            SourceSyncFailure: any discard/clone/fetch/checkout/pull failure,
                or a clone that does not yield a valid checkout.
        """
        target = Path(target)
        state = self.probe.checkout_state(target)
        logger.info("source_sync_started", url=url, branch=branch, target=str(target),
                    state=state.value, force=force)

        origin_matches = True
        if state == ProbeState.VALID and not force:
            origin = self.probe.origin_url(target)
            origin_matches = origin == url
            if not origin_matches:
                logger.warning("source_origin_mismatch", target=str(target), origin=origin, url=url)

        if state == ProbeState.ABSENT:
            self._clone(url, branch, target)
            action = SyncAction.CLONED
        elif force or state == ProbeState.INVALID or not origin_matches:
            if force:
                reason = "force"
            elif state == ProbeState.INVALID:
                reason = "invalid_checkout"
            else:
                reason = "origin_mismatch"
            logger.info("source_tree_discarded", target=str(target), reason=reason)
            self._discard(target)
            self._clone(url, branch, target)
            action = SyncAction.RECLONED
        else:
            self._update(branch, target)
            action = SyncAction.UPDATED

        if self.probe.checkout_state(target) != ProbeState.VALID:
            raise SourceSyncFailure(
                f"Source tree at {target} is not a valid checkout after {action.value}",
                context={"target": str(target), "action": action.value},
            )

        logger.info("source_sync_completed", target=str(target), action=action.value)
        return SyncResult(path=target, action=action, previous_state=state, forced=force)

    @staticmethod
    def _discard(target: Path) -> None:
        try:
            remove_tree(target)
        except OSError as e:
            raise SourceSyncFailure(
                f"Could not discard source tree at {target}: {e}",
                context={"step": "discard", "target": str(target)},
            ) from e

    def _clone(self, url: str, branch: str, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        result = self.git.run(["clone", "--branch", branch, url, str(target)], env=NON_INTERACTIVE_ENV)
        self._check(result, "clone", target)

    def _update(self, branch: str, target: Path) -> None:
        steps = (
            ("fetch", ["fetch", "origin", branch]),
            ("checkout", ["checkout", branch]),
            ("pull", ["pull", "--ff-only", "origin", branch]),
        )
        for step, args in steps:
            result = self.git.run(args, cwd=target, env=NON_INTERACTIVE_ENV)
            self._check(result, step, target)

    @staticmethod
    def _check(result: ToolResult, step: str, target: Path) -> None:
        if result.is_success:
            return
        raise SourceSyncFailure(
            f"git {step} failed with exit code {result.exit_code}: {result.output_snippet()}",
            context={"step": step, "target": str(target), "exit_code": result.exit_code},
        )
