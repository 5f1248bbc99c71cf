"""
Run command for the Shipwright CLI.

Executes the whole pipeline once and exits with the run report's exit code:
0 unless a fatal stage (environment, source sync, compile) failed.
"""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from shipwright.cli.commands.helpers import EXIT_FATAL, console, load_config_or_exit, setup_logging
from shipwright.pipeline.application.orchestrator import PipelineOrchestrator
from shipwright.pipeline.domain.enums import StageStatus
from shipwright.pipeline.domain.models import RunReport
from shipwright.shared.domain.exceptions import ShipwrightError

app = typer.Typer(help="Run the build-and-publish pipeline.")

STATUS_STYLES = {
    StageStatus.SUCCESS: "green",
    StageStatus.WARNING: "yellow",
    StageStatus.FAILED: "red",
    StageStatus.SKIPPED: "dim",
}


def render_report(report: RunReport) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Details")
    for stage in report.stages:
        style = STATUS_STYLES[stage.status]
        label = stage.status.value + (" (fatal)" if stage.fatal else "")
        table.add_row(stage.stage.value, f"[{style}]{label}[/{style}]", "\n".join(stage.messages))

    outcome = "[bold green]succeeded[/bold green]" if report.exit_code == 0 else "[bold red]failed[/bold red]"
    console.print(Panel(table, title=f"[bold]Run {report.run_id}[/bold]", subtitle=outcome, expand=False, border_style="cyan"))


@app.callback(invoke_without_command=True)
def run(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Pipeline config file (default: ./shipwright.yaml)"),
    source_url: Optional[str] = typer.Option(None, "--source-url", help="Remote source repository URL"),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Source branch"),
    source_root: Optional[Path] = typer.Option(None, "--source-root"),
    build_root: Optional[Path] = typer.Option(None, "--build-root"),
    install_root: Optional[Path] = typer.Option(None, "--install-root"),
    repo_root: Optional[Path] = typer.Option(None, "--repo-root", help="Caller's own versioned root"),
    force: Optional[bool] = typer.Option(None, "--force/--no-force", help="Discard and re-clone the source tree"),
    native: Optional[bool] = typer.Option(None, "--native/--no-native", help="Build the native driver"),
    cli: Optional[bool] = typer.Option(None, "--cli/--no-cli", help="Build the CLI tools"),
    gui: Optional[bool] = typer.Option(None, "--gui/--no-gui", help="Build the managed GUI"),
    sign: Optional[bool] = typer.Option(None, "--sign/--no-sign", help="Sign deployed artifacts"),
    publish: Optional[bool] = typer.Option(None, "--publish/--no-publish", help="Commit and push the repo root"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Publish owner (user or organization)"),
    repo: Optional[str] = typer.Option(None, "--repo", help="Publish repository name"),
    json_output: bool = typer.Option(False, "--json", help="Print the run report as JSON"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override SHIPWRIGHT_LOG_LEVEL"),
) -> None:
    """
    Sync, sanitize, compile, package, sign and publish.
    """
    setup_logging(log_level)
    overrides = {
        "source_url": source_url,
        "source_branch": branch,
        "source_root": source_root,
        "build_root": build_root,
        "install_root": install_root,
        "repo_root": repo_root,
        "flags": {
            "force_sync": force,
            "build_native": native,
            "build_cli": cli,
            "build_gui": gui,
            "sign": sign,
            "auto_publish": publish,
        },
        "publish": {"owner": owner, "repo": repo},
    }
    pipeline_config = load_config_or_exit(config, overrides)

    try:
        report = PipelineOrchestrator(pipeline_config).run()
    except ShipwrightError as e:
        console.print(f"[bold red]Pipeline aborted:[/bold red] {e}")
        raise typer.Exit(EXIT_FATAL)

    if json_output:
        console.print_json(json.dumps(report.to_dict()))
    else:
        render_report(report)
    raise typer.Exit(report.exit_code)
