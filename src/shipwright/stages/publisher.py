"""
Publisher stage.

Republishes the caller's own versioned root to its remote counterpart.
Nothing is remembered between runs: whether the remote exists, whether the
local repository is initialized, the current branch and pending changes are
read from live git state every time, which is what makes reruns idempotent.

State machine::

    NO_REMOTE -> (provision) -> REMOTE_EXISTS -> COMMITTED -> PUSHED
    REMOTE_EXISTS -> COMMITTED -> PUSH_REJECTED -> (force) -> PUSHED | FAILED

COMMITTED is skipped when the working tree is clean. Publishing is best
effort: every failure ends in a FAILED outcome, never an exception.
"""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Sequence

from shipwright.pipeline.domain.enums import ProbeState, PublishPhase
from shipwright.pipeline.domain.models import PublishIdentity, PublishOutcome, PublishState
from shipwright.shared.domain.exceptions import PublishFailure
from shipwright.shared.infrastructure.execution.command_executor import ExternalTool, ToolResult
from shipwright.shared.infrastructure.logging import get_logger
from shipwright.workspace.probe import CHECKOUT_MARKER, NON_INTERACTIVE_ENV, WorkspaceProbe

logger = get_logger(__name__)

REMOTE_NAME = "origin"


class Publisher:
    """Commit and push the caller's repository, provisioning the remote if needed."""

    def __init__(
        self,
        git: ExternalTool,
        repo_tool: ExternalTool,
        probe: WorkspaceProbe | None = None,
        *,
        install_command: Sequence[str] = (),
        host: str = "github.com",
        visibility: str = "private",
        force_push_on_reject: bool = True,
        message_prefix: str = "Automated build",
        author_name: str | None = None,
        author_email: str | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.git = git
        self.repo_tool = repo_tool
        self.probe = probe or WorkspaceProbe(git)
        self.install_command = list(install_command)
        self.host = host
        self.visibility = visibility
        self.force_push_on_reject = force_push_on_reject
        self.message_prefix = message_prefix
        self.author_name = author_name
        self.author_email = author_email
        self.clock = clock

    # ------------------------------------------------------------------
    # Live state
    # ------------------------------------------------------------------

    def inspect(self, repo_root: Path, identity: PublishIdentity) -> PublishState:
        """Recompute PublishState without changing anything."""
        repo_root = Path(repo_root)
        initialized = (repo_root / CHECKOUT_MARKER).exists()
        remote_url = identity.resolve_remote_url(self.host)
        return PublishState(
            remote_exists=self.probe.remote_state(remote_url) == ProbeState.VALID,
            local_initialized=initialized,
            current_branch=self._current_branch(repo_root) if initialized else None,
            has_pending_changes=self._has_pending_changes(repo_root) if initialized else False,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def publish(self, repo_root: Path, identity: PublishIdentity) -> PublishOutcome:
        repo_root = Path(repo_root)
        history: list[PublishPhase] = []
        committed = False
        forced = False

        def enter(phase: PublishPhase) -> None:
            history.append(phase)
            logger.info("publish_phase", phase=phase.value, repo=identity.full_name)

        def outcome(phase: PublishPhase, message: str = "") -> PublishOutcome:
            return PublishOutcome(
                phase=phase, history=tuple(history), committed=committed, forced=forced, message=message
            )

        try:
            self._ensure_local_repository(repo_root)
            remote_url = identity.resolve_remote_url(self.host)
            self._ensure_remote_pointer(repo_root, remote_url)

            state = self.inspect(repo_root, identity)
            logger.info(
                "publish_state",
                remote_exists=state.remote_exists,
                branch=state.current_branch,
                pending=state.has_pending_changes,
            )

            if state.phase == PublishPhase.NO_REMOTE:
                enter(state.phase)
                if not self._provision_remote(repo_root, identity, remote_url):
                    enter(PublishPhase.FAILED)
                    return outcome(PublishPhase.FAILED, f"Remote {identity.full_name} does not exist and could not be created")
            enter(PublishPhase.REMOTE_EXISTS)

            committed = self._commit_pending(repo_root)
            if committed:
                enter(PublishPhase.COMMITTED)

            self._normalize_branch(repo_root, identity.branch)
            if not self._has_commits(repo_root):
                logger.warning("publish_nothing_to_push", repo_root=str(repo_root))
                return outcome(PublishPhase.REMOTE_EXISTS, "Repository has no commits; nothing to push")

            phase, forced, message = self._push(repo_root, identity.branch, enter)
            return outcome(phase, message)

        except PublishFailure as e:
            logger.error("publish_failed", error=str(e), **e.context)
            enter(PublishPhase.FAILED)
            return outcome(PublishPhase.FAILED, str(e))

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _ensure_local_repository(self, repo_root: Path) -> None:
        if (repo_root / CHECKOUT_MARKER).exists():
            return
        repo_root.mkdir(parents=True, exist_ok=True)
        self._git(["init"], repo_root, "init")
        logger.info("local_repository_initialized", repo_root=str(repo_root))

    def _ensure_remote_pointer(self, repo_root: Path, remote_url: str) -> None:
        current = self.git.run(["remote", "get-url", REMOTE_NAME], cwd=repo_root)
        if not current.is_success:
            self._git(["remote", "add", REMOTE_NAME, remote_url], repo_root, "remote add")
            logger.info("remote_added", url=remote_url)
        elif current.stdout.strip() != remote_url:
            self._git(["remote", "set-url", REMOTE_NAME, remote_url], repo_root, "remote set-url")
            logger.info("remote_repointed", previous=current.stdout.strip(), url=remote_url)

    def _provision_remote(self, repo_root: Path, identity: PublishIdentity, remote_url: str) -> bool:
        """
        Fallback chain: create with the repository tool; if the tool is
        missing, install it and create; then re-probe once. The re-probe also
        confirms a creation the tool reported as successful.
        """
        created = False
        if self.repo_tool.is_available():
            created = self._create_remote(repo_root, identity)
        else:
            logger.warning("repo_tool_missing", tool=self.repo_tool.executable)
            if self._install_repo_tool() and self.repo_tool.is_available():
                created = self._create_remote(repo_root, identity)

        if self.probe.remote_state(remote_url) == ProbeState.VALID:
            logger.info("remote_confirmed", url=remote_url, created_here=created)
            return True

        logger.warning("remote_provisioning_exhausted", url=remote_url, created_reported=created)
        return False

    def _create_remote(self, repo_root: Path, identity: PublishIdentity) -> bool:
        result = self.repo_tool.run(
            ["repo", "create", identity.full_name, f"--{self.visibility}"],
            cwd=repo_root,
            env=NON_INTERACTIVE_ENV,
        )
        if result.is_success:
            logger.info("remote_created", repo=identity.full_name)
        else:
            logger.warning("remote_create_failed", repo=identity.full_name, error=result.output_snippet())
        return result.is_success

    def _install_repo_tool(self) -> bool:
        if not self.install_command:
            return False
        result = self.repo_tool.executor.run(self.install_command)
        if not result.is_success:
            logger.warning("repo_tool_install_failed", command=result.command_line, error=result.output_snippet())
        return result.is_success

    def _commit_pending(self, repo_root: Path) -> bool:
        """Stage everything; commit only if something changed."""
        self._git(["add", "-A"], repo_root, "add")
        if not self._has_pending_changes(repo_root):
            logger.info("commit_skipped_clean_tree", repo_root=str(repo_root))
            return False

        message = f"{self.message_prefix} {self.clock().strftime('%Y-%m-%d %H:%M:%S')}"
        self._git([*self._author_config(), "commit", "-m", message], repo_root, "commit")
        logger.info("changes_committed", message=message)
        return True

    def _normalize_branch(self, repo_root: Path, branch: str) -> None:
        current = self._current_branch(repo_root)
        if current == branch:
            return
        if self._has_commits(repo_root):
            self._git(["branch", "-M", branch], repo_root, "branch rename")
        else:
            # Unborn branch: nothing to rename, just point HEAD at the target name
            self._git(["symbolic-ref", "HEAD", f"refs/heads/{branch}"], repo_root, "branch rename")
        logger.info("branch_normalized", previous=current, branch=branch)

    def _push(
        self, repo_root: Path, branch: str, enter: Callable[[PublishPhase], None]
    ) -> tuple[PublishPhase, bool, str]:
        """Push, retrying exactly once with --force. Returns (phase, forced, message)."""
        result = self.git.run(["push", "-u", REMOTE_NAME, branch], cwd=repo_root, env=NON_INTERACTIVE_ENV)
        if result.is_success:
            enter(PublishPhase.PUSHED)
            return PublishPhase.PUSHED, False, ""

        enter(PublishPhase.PUSH_REJECTED)
        logger.warning("push_rejected", branch=branch, error=result.output_snippet())
        if not self.force_push_on_reject:
            enter(PublishPhase.FAILED)
            return PublishPhase.FAILED, False, f"Push rejected: {result.output_snippet()}"

        forced_result = self.git.run(
            ["push", "-u", "--force", REMOTE_NAME, branch], cwd=repo_root, env=NON_INTERACTIVE_ENV
        )
        if forced_result.is_success:
            logger.warning("push_forced", branch=branch)
            enter(PublishPhase.PUSHED)
            return PublishPhase.PUSHED, True, "Remote history was overwritten by a forced push"

        logger.error("forced_push_failed", branch=branch, error=forced_result.output_snippet())
        enter(PublishPhase.FAILED)
        return PublishPhase.FAILED, True, f"Forced push failed: {forced_result.output_snippet()}"

    # ------------------------------------------------------------------
    # Git queries
    # ------------------------------------------------------------------

    def _current_branch(self, repo_root: Path) -> str | None:
        result = self.git.run(["symbolic-ref", "--short", "HEAD"], cwd=repo_root)
        return result.stdout.strip() if result.is_success else None

    def _has_commits(self, repo_root: Path) -> bool:
        return self.git.run(["rev-parse", "--verify", "--quiet", "HEAD"], cwd=repo_root).is_success

    def _has_pending_changes(self, repo_root: Path) -> bool:
        result = self._git(["status", "--porcelain"], repo_root, "status")
        return bool(result.stdout.strip())

    def _author_config(self) -> list[str]:
        config = []
        if self.author_name:
            config += ["-c", f"user.name={self.author_name}"]
        if self.author_email:
            config += ["-c", f"user.email={self.author_email}"]
        return config

    def _git(self, args: list[str], repo_root: Path, step: str) -> ToolResult:
        result = self.git.run(args, cwd=repo_root)
        if not result.is_success:
            raise PublishFailure(
                f"git {step} failed with exit code {result.exit_code}: {result.output_snippet()}",
                context={"step": step, "exit_code": result.exit_code},
            )
        return result
