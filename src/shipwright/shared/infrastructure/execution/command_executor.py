"""
Command Executor Service.

Runs external tools (git, compiler, signer, repository tool) as blocking
subprocesses and returns a structured result. Exit code is the only success
signal; no timeout is applied, so a hung tool hangs the caller.
"""

import os
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from shipwright.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

LAUNCH_ERROR_EXIT_CODE = -2


@dataclass
class ToolResult:
    """Result of a command execution."""

    command: list[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def is_success(self) -> bool:
        """Check if command succeeded."""
        return self.exit_code == 0

    @property
    def command_line(self) -> str:
        return " ".join(self.command)

    def output_snippet(self, limit: int = 300) -> str:
        """Short diagnostic text, stderr preferred."""
        text = (self.stderr or self.stdout).strip()
        return text[:limit]


class CommandExecutor:
    """
    Blocking command executor.

    Environment overrides merge with ``os.environ``. Failures to launch the
    process (missing executable, permission denied) are folded into a
    ToolResult with a negative exit code instead of raising.
    """

    def which(self, executable: str) -> str | None:
        return shutil.which(executable)

    def run(
        self,
        command: Sequence[str],
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ToolResult:
        start_time = time.perf_counter()
        cmd_args = [str(part) for part in command]
        cmd_str = " ".join(cmd_args)

        run_env = os.environ.copy()
        if env:
            run_env.update(env)

        logger.debug("executing_command", command=cmd_str, cwd=str(cwd) if cwd else "cwd")

        try:
            completed = subprocess.run(
                cmd_args,
                cwd=str(cwd) if cwd else None,
                env=run_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                check=False,
            )
        except OSError as e:
            logger.error("command_launch_error", command=cmd_str, error=str(e))
            return ToolResult(
                command=cmd_args,
                exit_code=LAUNCH_ERROR_EXIT_CODE,
                stderr=f"Execution error: {e!s}",
                duration=time.perf_counter() - start_time,
            )

        duration = time.perf_counter() - start_time
        result = ToolResult(
            command=cmd_args,
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration=duration,
        )

        if result.is_success:
            logger.debug("command_success", command=cmd_str, duration=round(duration, 3))
        else:
            logger.warning(
                "command_failed",
                command=cmd_str,
                exit_code=result.exit_code,
                stderr_snippet=result.output_snippet(200),
            )
        return result


@dataclass
class ExternalTool:
    """
    A named external tool bound to an executable.

    Call sites pass only the argument list; the executable, logging and
    result shape are shared, so retry and fallback logic compose uniformly.
    """

    name: str
    executable: str
    executor: CommandExecutor = field(default_factory=CommandExecutor)

    def is_available(self) -> bool:
        return self.executor.which(self.executable) is not None

    def run(
        self,
        args: Sequence[str],
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ToolResult:
        return self.executor.run([self.executable, *args], cwd=cwd, env=env)


def render_template(template: Sequence[str], **values: object) -> list[str]:
    """Substitute ``{name}`` placeholders in every element of a command template."""
    rendered = []
    for part in template:
        for key, value in values.items():
            part = part.replace("{" + key + "}", str(value))
        rendered.append(part)
    return rendered
