"""Tests for the workspace probe (tri-state checkout / remote answers)."""

from conftest import Response, git, requires_git

from shipwright.pipeline.domain.enums import ProbeState
from shipwright.shared.infrastructure.execution.command_executor import CommandExecutor, ExternalTool
from shipwright.workspace.probe import WorkspaceProbe


def _probe(executor):
    return WorkspaceProbe(ExternalTool("git", "git", executor))


def test_missing_path_is_absent(tmp_path, executor):
    assert _probe(executor).checkout_state(tmp_path / "nothing") == ProbeState.ABSENT
    assert executor.calls == []


def test_directory_without_marker_is_invalid(tmp_path, executor):
    (tmp_path / "junk").mkdir()
    assert _probe(executor).checkout_state(tmp_path / "junk") == ProbeState.INVALID
    assert executor.calls == []


def test_regular_file_is_invalid(tmp_path, executor):
    target = tmp_path / "file"
    target.write_text("x")
    assert _probe(executor).checkout_state(target) == ProbeState.INVALID


def test_unreadable_checkout_is_invalid(tmp_path, executor):
    (tmp_path / ".git").mkdir()
    executor.script(["git", "rev-parse"], Response(exit_code=128, stderr="fatal: not a git repository"))
    assert _probe(executor).checkout_state(tmp_path) == ProbeState.INVALID


def test_top_level_mismatch_is_invalid(tmp_path, executor):
    (tmp_path / ".git").mkdir()
    executor.script(["git", "rev-parse"], Response(stdout=str(tmp_path.parent)))
    assert _probe(executor).checkout_state(tmp_path) == ProbeState.INVALID


def test_valid_checkout(tmp_path, executor):
    (tmp_path / ".git").mkdir()
    executor.script(["git", "rev-parse"], Response(stdout=f"{tmp_path}\n"))
    assert _probe(executor).checkout_state(tmp_path) == ProbeState.VALID
    assert executor.calls[0].cwd == tmp_path


def test_remote_state_is_non_interactive(executor):
    executor.script(["git", "ls-remote"], 0, 2)
    probe = _probe(executor)

    assert probe.remote_state("https://example.com/a.git") == ProbeState.VALID
    assert probe.remote_state("https://example.com/b.git") == ProbeState.ABSENT
    assert all(c.env["GIT_TERMINAL_PROMPT"] == "0" for c in executor.calls)


def test_origin_url(tmp_path, executor):
    executor.script(["git", "remote", "get-url", "origin"], Response(stdout="https://example.com/a.git\n"), 2)
    probe = _probe(executor)

    assert probe.origin_url(tmp_path) == "https://example.com/a.git"
    assert probe.origin_url(tmp_path) is None
    assert executor.calls[0].cwd == tmp_path


@requires_git
def test_real_subdirectory_of_repository_is_invalid(tmp_path, git_identity):
    git("init", cwd=tmp_path)
    nested = tmp_path / "nested"
    nested.mkdir()
    # A stray marker does not make a subdirectory its own checkout
    (nested / ".git").mkdir()

    probe = WorkspaceProbe(ExternalTool("git", "git", CommandExecutor()))
    assert probe.checkout_state(tmp_path) == ProbeState.VALID
    assert probe.checkout_state(nested) == ProbeState.INVALID
