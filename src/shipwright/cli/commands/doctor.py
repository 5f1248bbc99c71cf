from pathlib import Path
from typing import Optional

import typer

from shipwright.cli.commands.helpers import EXIT_FATAL, console, load_config_or_exit, setup_logging
from shipwright.services.doctor import CheckStatus, Doctor
from shipwright.shared.infrastructure.config import settings

app = typer.Typer(help="Shipwright Doctor - check that required tools are installed.")


@app.callback(invoke_without_command=True)
def doctor(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Pipeline config file"),
) -> None:
    """
    Verify that every tool the configured stages need is available.
    """
    setup_logging("WARNING")
    pipeline_config = load_config_or_exit(config)

    has_error = False
    for result in Doctor(pipeline_config, settings).run_all():
        if result.status == CheckStatus.SUCCESS:
            console.print(f"  [green]✔[/green] {result.name}: {result.message}")
        elif result.status == CheckStatus.WARNING:
            console.print(f"  [yellow]⚠ {result.name}: {result.message}[/yellow]")
        elif result.status == CheckStatus.SKIPPED:
            console.print(f"  [dim]- {result.name}: {result.message}[/dim]")
        else:
            console.print(f"  [red]✘ {result.name}: {result.message}[/red]")
            has_error = True

    if has_error:
        console.print("\n[bold red]Required tools are missing; the pipeline will not start.[/bold red]")
        raise typer.Exit(EXIT_FATAL)
    console.print("\n[bold green]Environment ready.[/bold green]")
