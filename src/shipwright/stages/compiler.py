"""
Compiler adapter.

The toolchain is opaque: a command template is rendered with the project
path, build profile and output directory and run from the source tree. Only
the exit code matters.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from shipwright.pipeline.domain.models import CompileTarget
from shipwright.shared.domain.exceptions import CompileFailure
from shipwright.shared.infrastructure.execution.command_executor import (
    CommandExecutor,
    ExternalTool,
    ToolResult,
    render_template,
)
from shipwright.shared.infrastructure.logging import get_logger
from shipwright.shared.utils.path_utils import is_within

logger = get_logger(__name__)


@dataclass
class CompileOutcome:
    target: CompileTarget
    output_dir: Path
    result: ToolResult


class Compiler:
    """Invoke the external compiler once per target."""

    def __init__(self, tool: ExternalTool, command_template: Sequence[str]):
        self.tool = tool
        # First element names the executable, already bound to ``tool``
        self.arg_template = list(command_template[1:])

    @classmethod
    def from_template(cls, command_template: Sequence[str], executor: CommandExecutor | None = None) -> "Compiler":
        tool = ExternalTool("compiler", command_template[0], executor or CommandExecutor())
        return cls(tool, command_template)

    def compile(self, target: CompileTarget, source_tree: Path, output_dir: Path, profile: str) -> CompileOutcome:
        """
        Build one target into ``output_dir``.

        Raises:
            CompileFailure: project path escapes the source tree, or the
                compiler exits non-zero.
        """
        project = (Path(source_tree) / target.project).resolve()
        if not is_within(project, source_tree):
            raise CompileFailure(
                f"Project for target '{target.name}' is outside the source tree: {target.project}",
                context={"target": target.name},
            )

        output_dir.mkdir(parents=True, exist_ok=True)
        args = render_template(self.arg_template, project=project, profile=profile, output=output_dir)
        logger.info("compile_started", target=target.name, kind=target.kind.value, profile=profile)

        result = self.tool.run(args, cwd=source_tree)
        if not result.is_success:
            raise CompileFailure(
                f"Target '{target.name}' failed with exit code {result.exit_code}: {result.output_snippet()}",
                context={"target": target.name, "exit_code": result.exit_code},
            )

        logger.info("compile_completed", target=target.name, duration=round(result.duration, 3))
        return CompileOutcome(target=target, output_dir=output_dir, result=result)
