"""
Signer adapter.

Signs every executable and library under the install root, one blocking call
per file. A failure on one file never stops the others: the artifact stays
deployed and unsigned.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from shipwright.pipeline.domain.enums import ArtifactKind
from shipwright.shared.domain.exceptions import SignFailure
from shipwright.shared.infrastructure.execution.command_executor import (
    CommandExecutor,
    ExternalTool,
    render_template,
)
from shipwright.shared.infrastructure.logging import get_logger
from shipwright.stages.packager import classify

logger = get_logger(__name__)

SIGNABLE_KINDS = (ArtifactKind.EXECUTABLE, ArtifactKind.LIBRARY)
# Static/import libraries carry no Authenticode signature
UNSIGNABLE_SUFFIXES = frozenset({".lib"})


@dataclass
class SignResult:
    signed: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.signed) + len(self.failed)


class Signer:
    def __init__(self, tool: ExternalTool, command_template: Sequence[str]):
        self.tool = tool
        self.arg_template = list(command_template[1:])

    @classmethod
    def from_template(cls, command_template: Sequence[str], executor: CommandExecutor | None = None) -> "Signer":
        tool = ExternalTool("signer", command_template[0], executor or CommandExecutor())
        return cls(tool, command_template)

    def is_available(self) -> bool:
        return self.tool.is_available()

    @staticmethod
    def discover(install_root: Path) -> list[Path]:
        root = Path(install_root)
        if not root.is_dir():
            return []
        return [
            p
            for p in sorted(root.rglob("*"))
            if p.is_file() and classify(p) in SIGNABLE_KINDS and p.suffix.lower() not in UNSIGNABLE_SUFFIXES
        ]

    def sign_file(self, path: Path) -> Path:
        """Sign one file in place and return it. Raises SignFailure."""
        result = self.tool.run(render_template(self.arg_template, file=path), cwd=path.parent)
        if not result.is_success:
            raise SignFailure(
                f"Signing {path.name} failed with exit code {result.exit_code}: {result.output_snippet()}",
                context={"file": str(path), "exit_code": result.exit_code},
            )
        return path

    def sign_all(self, install_root: Path) -> SignResult:
        result = SignResult()
        for path in self.discover(install_root):
            try:
                result.signed.append(self.sign_file(path))
            except SignFailure as e:
                logger.warning("sign_failed", file=str(path), error=str(e))
                result.failed.append((path, str(e)))

        logger.info("sign_completed", signed=len(result.signed), failed=len(result.failed))
        return result
