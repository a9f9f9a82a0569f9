"""CLI entry point for code-sentinel.

Commands:
  review   — run an AI review on a pull request and print the verdict
  explore  — run a single sandbox tool, to see what the model would see
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from sentinel_cli.commands.explore import explore_cmd
from sentinel_cli.commands.review import review_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("code-sentinel"),
    prog_name="sentinel",
)
@click.option(
    "--config",
    "config_path",
    default=".sentinel.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="SENTINEL_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI-powered pull request reviewer with sandboxed codebase exploration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)
main.add_command(explore_cmd)
