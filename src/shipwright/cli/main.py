"""
Shipwright CLI
Main entry point for the command-line interface

Usage:
    shipwright run              # Sync, build, package, sign and publish
    shipwright doctor           # Check required tools
    shipwright status           # Show live workspace state
    shipwright version          # Show version
"""

import typer
from rich.console import Console
from rich.panel import Panel

from shipwright import __version__
from shipwright.cli.commands import doctor, run, status

app = typer.Typer(
    name="shipwright",
    help="Shipwright - build, sign and republish an upstream source tree",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

app.add_typer(run.app, name="run", help="Run the build-and-publish pipeline")
app.add_typer(doctor.app, name="doctor", help="Check that required tools are installed")
app.add_typer(status.app, name="status", help="Show source, install and publish state")


@app.command()
def version():
    """Show Shipwright version information"""
    console.print(Panel.fit(
        f"[bold cyan]Shipwright[/bold cyan]\n[dim]Version:[/dim] {__version__}",
        title="About Shipwright",
        border_style="cyan",
    ))


def main():
    app()


if __name__ == "__main__":
    main()
