"""
Environment diagnostics.

Distinguishes between critical errors (a required tool is missing; the
pipeline must not start) and warnings (an optional stage will be skipped or
fall back).
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

from shipwright.pipeline.domain.models import PipelineConfig
from shipwright.shared.domain.exceptions import EnvironmentMissing
from shipwright.shared.infrastructure.config import Settings
from shipwright.shared.infrastructure.execution.command_executor import CommandExecutor
from shipwright.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CheckStatus(Enum):
    SUCCESS = auto()
    WARNING = auto()
    ERROR = auto()
    SKIPPED = auto()


@dataclass
class CheckResult:
    name: str
    status: CheckStatus
    message: str


class Doctor:
    """Verify that the tools the configured stages need are installed."""

    def __init__(self, config: PipelineConfig, settings: Settings, executor: CommandExecutor | None = None):
        self.config = config
        self.settings = settings
        self.executor = executor or CommandExecutor()

    def run_all(self) -> list[CheckResult]:
        checks: list[tuple[str, Callable[[], tuple[CheckStatus, str]]]] = [
            ("Version control", self.check_git),
            ("Compiler", self.check_compiler),
            ("Signer", self.check_signer),
            ("Repository tool", self.check_repo_tool),
        ]
        results = []
        for name, check_fn in checks:
            status, message = check_fn()
            results.append(CheckResult(name=name, status=status, message=message))
            logger.debug("doctor_check", check=name, status=status.name, message=message)
        return results

    def ensure_ready(self) -> list[CheckResult]:
        """
        Run all checks and fail fast on critical errors.

        Raises:
            EnvironmentMissing: at least one required tool is absent.
        """
        results = self.run_all()
        errors = [r for r in results if r.status == CheckStatus.ERROR]
        for r in results:
            if r.status == CheckStatus.WARNING:
                logger.warning("environment_degraded", check=r.name, message=r.message)
        if errors:
            raise EnvironmentMissing(
                "; ".join(r.message for r in errors),
                context={"checks": [r.name for r in errors]},
            )
        return results

    def _locate(self, executable: str) -> str | None:
        return self.executor.which(executable)

    def check_git(self) -> tuple[CheckStatus, str]:
        # SourceSync always runs, so git is never optional
        path = self._locate(self.settings.git_executable)
        if path is None:
            return CheckStatus.ERROR, f"'{self.settings.git_executable}' not found on PATH"
        return CheckStatus.SUCCESS, f"git found at {path}"

    def check_compiler(self) -> tuple[CheckStatus, str]:
        executable = self.settings.compile_command[0]
        if not self.config.flags.any_build:
            return CheckStatus.SKIPPED, "No build targets enabled"
        path = self._locate(executable)
        if path is None:
            return CheckStatus.ERROR, f"Compiler driver '{executable}' not found on PATH"
        return CheckStatus.SUCCESS, f"Compiler found at {path}"

    def check_signer(self) -> tuple[CheckStatus, str]:
        executable = self.settings.sign_command[0]
        if not self.config.flags.sign:
            return CheckStatus.SKIPPED, "Signing disabled"
        path = self._locate(executable)
        if path is None:
            return CheckStatus.WARNING, f"Signing tool '{executable}' not found; artifacts will stay unsigned"
        return CheckStatus.SUCCESS, f"Signing tool found at {path}"

    def check_repo_tool(self) -> tuple[CheckStatus, str]:
        executable = self.settings.repo_tool_executable
        if not self.config.flags.auto_publish:
            return CheckStatus.SKIPPED, "Publishing disabled"
        path = self._locate(executable)
        if path is None:
            return CheckStatus.WARNING, f"'{executable}' not found; a missing remote triggers a tool install attempt"
        return CheckStatus.SUCCESS, f"Repository tool found at {path}"
