from shipwright.shared.infrastructure.execution.command_executor import (
    CommandExecutor,
    ExternalTool,
    ToolResult,
    render_template,
)

__all__ = ["CommandExecutor", "ExternalTool", "ToolResult", "render_template"]
