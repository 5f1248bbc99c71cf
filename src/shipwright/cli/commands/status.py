"""
Status command: shows live workspace state without changing anything.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from shipwright.cli.commands.helpers import EXIT_FATAL, console, load_config_or_exit, setup_logging
from shipwright.pipeline.application.orchestrator import PipelineOrchestrator
from shipwright.pipeline.domain.enums import ArtifactKind
from shipwright.shared.domain.exceptions import ShipwrightError
from shipwright.stages.packager import classify

app = typer.Typer(help="Show source tree, install root and publish state.")


@app.callback(invoke_without_command=True)
def status(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Pipeline config file"),
) -> None:
    """
    Inspect the workspace the way the next run will see it.
    """
    setup_logging("WARNING")
    pipeline_config = load_config_or_exit(config)
    orchestrator = PipelineOrchestrator(pipeline_config)
    layout = orchestrator.layout

    table = Table(show_header=False, box=None)
    table.add_row("Source tree", str(layout.source_tree))
    table.add_row("Checkout state", orchestrator.probe.checkout_state(layout.source_tree).value)

    counts = {kind: 0 for kind in ArtifactKind}
    if layout.install_root.is_dir():
        for path in layout.install_root.rglob("*"):
            kind = classify(path) if path.is_file() else None
            if kind is not None:
                counts[kind] += 1
    for kind, count in counts.items():
        table.add_row(f"Installed {kind.value}", str(count))

    if pipeline_config.publish is not None:
        try:
            state = orchestrator.publisher.inspect(pipeline_config.repo_root, pipeline_config.publish)
        except ShipwrightError as e:
            console.print(f"[red]Could not read publish state:[/red] {e}")
            raise typer.Exit(EXIT_FATAL)
        table.add_row("Publish target", pipeline_config.publish.full_name)
        table.add_row("Remote exists", str(state.remote_exists))
        table.add_row("Local repository", "initialized" if state.local_initialized else "absent")
        table.add_row("Current branch", state.current_branch or "-")
        table.add_row("Pending changes", str(state.has_pending_changes))

    console.print(table)
