"""
Workspace probe.

Answers "absent / valid / invalid" for local checkouts and "absent / valid"
for remote repositories. SourceSync and Publisher both branch on these
answers and on nothing else.
"""

from pathlib import Path

from shipwright.pipeline.domain.enums import ProbeState
from shipwright.shared.infrastructure.execution.command_executor import ExternalTool
from shipwright.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CHECKOUT_MARKER = ".git"

# Never let git block on a credential prompt while probing.
NON_INTERACTIVE_ENV = {"GIT_TERMINAL_PROMPT": "0", "GCM_INTERACTIVE": "never"}


class WorkspaceProbe:
    """Read-only inspection of checkouts and remotes through the git tool."""

    def __init__(self, git: ExternalTool):
        self.git = git

    def checkout_state(self, path: Path) -> ProbeState:
        """
        Classify a local path.

        VALID requires the checkout marker and that git reports ``path``
        itself as the top of the working tree; a directory nested inside some
        other repository is INVALID.
        """
        path = Path(path)
        if not path.exists():
            return ProbeState.ABSENT
        if not path.is_dir() or not (path / CHECKOUT_MARKER).exists():
            logger.info("checkout_marker_missing", path=str(path))
            return ProbeState.INVALID

        result = self.git.run(["rev-parse", "--show-toplevel"], cwd=path)
        if not result.is_success:
            logger.info("checkout_unreadable", path=str(path), error=result.output_snippet())
            return ProbeState.INVALID

        top_level = Path(result.stdout.strip()).resolve()
        if top_level != path.resolve():
            logger.info("checkout_top_level_mismatch", path=str(path), top_level=str(top_level))
            return ProbeState.INVALID
        return ProbeState.VALID

    def remote_state(self, url: str) -> ProbeState:
        """Lightweight remote listing; any failure counts as ABSENT."""
        result = self.git.run(["ls-remote", "--heads", url], env=NON_INTERACTIVE_ENV)
        state = ProbeState.VALID if result.is_success else ProbeState.ABSENT
        logger.debug("remote_probed", url=url, state=state.value)
        return state

    def origin_url(self, path: Path) -> str | None:
        """URL recorded for ``origin`` in a checkout, or None when unset."""
        result = self.git.run(["remote", "get-url", "origin"], cwd=Path(path))
        if not result.is_success:
            return None
        return result.stdout.strip() or None
