"""Shared helpers for CLI commands."""

from pathlib import Path
from typing import Any, Mapping, Optional

import typer
from rich.console import Console

from shipwright.pipeline.application.config_loader import DEFAULT_CONFIG_NAME, load_pipeline_config
from shipwright.pipeline.domain.models import PipelineConfig
from shipwright.shared.domain.exceptions import ConfigurationError
from shipwright.shared.infrastructure.logging import configure_logging

console = Console()

EXIT_FATAL = 1
EXIT_CONFIG = 2


def resolve_config_path(config_path: Optional[Path]) -> Optional[Path]:
    """Explicit path wins; otherwise use ./shipwright.yaml when present."""
    if config_path is not None:
        return config_path
    default = Path.cwd() / DEFAULT_CONFIG_NAME
    return default if default.exists() else None


def load_config_or_exit(config_path: Optional[Path], overrides: Mapping[str, Any] | None = None) -> PipelineConfig:
    try:
        return load_pipeline_config(resolve_config_path(config_path), overrides)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(EXIT_CONFIG)


def setup_logging(log_level: Optional[str]) -> None:
    configure_logging(level=log_level)
