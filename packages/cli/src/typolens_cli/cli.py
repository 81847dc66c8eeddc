"""CLI entry point for typolens.

Commands:
  run   spell-check the checkout and reconcile findings with the pull request
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from typolens_cli.commands.run import run_cmd

console = Console()


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # PyGithub logs every request at DEBUG.
    logging.getLogger("github").setLevel(logging.INFO if debug else logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("typolens"),
    prog_name="typolens",
)
@click.option(
    "--config",
    "config_path",
    default=".typolens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="TYPOLENS_CONFIG",
)
@click.pass_context
def main(ctx: click.Context, config_path: str):
    """codespell findings as GitHub pull request suggestions."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(run_cmd)
