"""Main Typer application — imports and registers all CLI commands.

Entry point: ``docker-logentries`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from docker_logentries import __version__
from docker_logentries.cli.commands.check import check_cmd
from docker_logentries.cli.commands.run import run_cmd

app = typer.Typer(
    name="docker-logentries",
    help="Forward Docker logs, stats and events to Logentries.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="run", help="Ship logs, stats and events until the sources end.")(run_cmd)
app.command(name="check", help="Validate options and show the routing setup.")(check_cmd)


@app.command(name="version", help="Print the installed version.")
def version_cmd() -> None:
    """Print the docker-logentries version."""
    typer.echo(__version__)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
