"""CLI entry point."""

import typer

from simviewer.cli.simulation import load_cmd, pick_cmd
from simviewer.config import config
from simviewer.logging_config import setup_logging

app = typer.Typer(
    name="simviewer",
    help="simviewer: load and inspect infection simulation timesteps",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    setup_logging("DEBUG" if verbose else config.log_level)


app.command(name="load")(load_cmd)
app.command(name="pick")(pick_cmd)


if __name__ == "__main__":
    app()
