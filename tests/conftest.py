"""Shared test fixtures for the Shipwright test suite."""

import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from shipwright.pipeline.domain.models import PipelineConfig
from shipwright.shared.infrastructure.execution.command_executor import CommandExecutor, ToolResult


# ---------------------------------------------------------------------------
# Scripted executor
# ---------------------------------------------------------------------------

@dataclass
class Call:
    command: list
    cwd: Optional[Path]
    env: Optional[dict]

    @property
    def line(self) -> str:
        return " ".join(self.command)


@dataclass
class Response:
    """Canned answer for a command. ``effect`` runs first and may override the result."""

    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    effect: Optional[Callable[[list, Optional[Path]], Optional[ToolResult]]] = None


ResponseLike = Union[Response, int, Callable]


@dataclass
class _Script:
    prefix: list
    responses: list = field(default_factory=list)


class FakeExecutor(CommandExecutor):
    """
    Executor that records every command instead of spawning processes.

    Commands are matched by prefix (longest wins). Scripted responses are
    consumed in order and the last one repeats. Unscripted commands succeed
    with empty output. An ``effect`` returning None falls back to the
    response's own exit code.
    """

    def __init__(self, available=("git", "msbuild", "signtool", "gh")):
        self.available = set(available)
        self.calls: list[Call] = []
        self._scripts: list[_Script] = []

    def which(self, executable: str):
        return f"/usr/bin/{executable}" if executable in self.available else None

    def script(self, prefix, *responses: ResponseLike) -> None:
        normalized = []
        for response in responses:
            if isinstance(response, int):
                response = Response(exit_code=response)
            elif callable(response) and not isinstance(response, Response):
                response = Response(effect=response)
            normalized.append(response)
        prefix = [str(p) for p in prefix]
        # Re-scripting a prefix replaces the earlier answers
        self._scripts = [s for s in self._scripts if s.prefix != prefix]
        self._scripts.append(_Script(prefix=prefix, responses=normalized))
        self._scripts.sort(key=lambda s: len(s.prefix), reverse=True)

    def run(self, command, cwd=None, env=None) -> ToolResult:
        cmd = [str(part) for part in command]
        self.calls.append(Call(cmd, Path(cwd) if cwd else None, dict(env) if env else None))
        for script in self._scripts:
            if cmd[: len(script.prefix)] != script.prefix or not script.responses:
                continue
            response = script.responses[0] if len(script.responses) == 1 else script.responses.pop(0)
            if response.effect is not None:
                produced = response.effect(cmd, Path(cwd) if cwd else None)
                if produced is not None:
                    return produced
            return ToolResult(cmd, response.exit_code, response.stdout, response.stderr)
        return ToolResult(cmd, 0)

    def commands(self, *prefix) -> list[Call]:
        prefix = [str(p) for p in prefix]
        return [c for c in self.calls if c.command[: len(prefix)] == prefix]


@pytest.fixture
def executor():
    return FakeExecutor()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def make_config(tmp_path):
    """Factory for a PipelineConfig rooted under tmp_path."""

    def _make(**overrides) -> PipelineConfig:
        fields = {
            "source_root": tmp_path / "work" / "src",
            "build_root": tmp_path / "work" / "build",
            "install_root": tmp_path / "work" / "install",
            "repo_root": tmp_path / "work",
            "source_url": "https://example.com/upstream.git",
            "publish": {"owner": "acme", "repo": "builds"},
        }
        fields.update(overrides)
        return PipelineConfig.model_validate(fields)

    return _make


# ---------------------------------------------------------------------------
# Real git (tests auto-skip when git is unavailable)
# ---------------------------------------------------------------------------

def _check_git() -> bool:
    """Check if git is available and functional."""
    if shutil.which("git") is None:
        return False
    result = subprocess.run(["git", "--version"], capture_output=True, text=True)
    return result.returncode == 0


requires_git = pytest.mark.skipif(not _check_git(), reason="git not available")


def git(*args, cwd=None) -> str:
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return result.stdout.strip()


@pytest.fixture
def git_identity(monkeypatch, tmp_path):
    """Isolated git configuration with a fixed author, no user or system config."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    for prefix in ("GIT_AUTHOR", "GIT_COMMITTER"):
        monkeypatch.setenv(f"{prefix}_NAME", "Build Bot")
        monkeypatch.setenv(f"{prefix}_EMAIL", "bot@example.com")


@pytest.fixture
def upstream_remote(tmp_path, git_identity) -> Path:
    """Bare repository with a ``main`` branch carrying sources and CI metadata."""
    work = tmp_path / "upstream-work"
    work.mkdir()
    git("init", cwd=work)
    git("checkout", "-b", "main", cwd=work)
    (work / "driver").mkdir()
    (work / "driver" / "driver.c").write_text("int main(void) { return 0; }\n")
    (work / ".github" / "workflows").mkdir(parents=True)
    (work / ".github" / "workflows" / "ci.yml").write_text("on: push\n")
    git("add", "-A", cwd=work)
    git("commit", "-m", "initial", cwd=work)

    bare = tmp_path / "upstream.git"
    git("clone", "--bare", str(work), str(bare))
    return bare
