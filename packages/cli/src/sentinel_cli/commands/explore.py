"""explore command — run one sandbox tool exactly as the model would."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from sentinel_core.models import ToolCall
from sentinel_core.tools.definitions import TOOLS_BY_NAME
from sentinel_core.tools.dispatcher import ToolDispatcher
from sentinel_core.tools.explorer import Explorer

console = Console()


@click.command("explore")
@click.argument("tool", type=click.Choice(sorted(TOOLS_BY_NAME)))
@click.option("--path", default=None, help="File path (read_file) or search scope (search_code).")
@click.option("--directory", default=None, help="Directory to list (list_files).")
@click.option("--pattern", default=None, help="Glob filter (list_files).")
@click.option("--query", default=None, help="Regex to search for (search_code).")
@click.option(
    "--root",
    default=".",
    show_default=True,
    type=click.Path(exists=True, file_okay=False),
    help="Sandbox root.",
)
def explore_cmd(
    tool: str,
    path: str | None,
    directory: str | None,
    pattern: str | None,
    query: str | None,
    root: str,
):
    """Run a single codebase tool against ROOT and print its result.

    Tool errors (path escapes, missing files, bad regexes) are printed the
    same way the model receives them, and exit with status 1.
    """
    provided = {"path": path, "directory": directory, "pattern": pattern, "query": query}
    arguments = {k: v for k, v in provided.items() if v is not None}

    dispatcher = ToolDispatcher(Explorer(root), max_workers=1)
    result = dispatcher.dispatch(ToolCall(id="cli", name=tool, arguments=arguments))

    if result.error is not None:
        console.print(escape(result.content), style="red", highlight=False, soft_wrap=True)
        raise SystemExit(1)
    click.echo(result.payload)
