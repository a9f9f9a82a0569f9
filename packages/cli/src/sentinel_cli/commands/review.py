"""review command — run AI review on a pull request."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sentinel_core.config import PROVIDERS, REVIEW_MODES, load_config
from sentinel_core.errors import ReviewFailure
from sentinel_core.reviewer import ReviewOutcome, get_adapter, run_review

console = Console()

_SEVERITY_STYLE = {
    "critical": "red",
    "warning": "yellow",
    "suggestion": "blue",
    "nitpick": "dim",
}


def print_outcome(outcome: ReviewOutcome) -> None:
    if outcome.verdict is None:
        console.print(f"[yellow]No review produced: {outcome.skip_reason}.[/yellow]")
        return

    verdict = outcome.verdict
    console.print(f"\n[bold]Review of {outcome.repo}#{outcome.pr_number}[/bold] ({outcome.head_sha[:7]})")
    console.print(f"> {escape(verdict.summary)}")
    console.print(f"Effort score: [bold]{verdict.effort_score}[/bold]/5")

    if outcome.skipped_low_effort:
        console.print("[dim]Effort score below threshold; issues not listed.[/dim]")
        return
    if not verdict.issues:
        console.print("[green]No issues found.[/green]")
        return

    table = Table(title=f"{len(verdict.issues)} issue(s)", show_header=True, header_style="bold cyan")
    table.add_column("Severity", width=12)
    table.add_column("Category", width=15)
    table.add_column("Location", max_width=40)
    table.add_column("Issue")

    for issue in verdict.issues:
        style = _SEVERITY_STYLE.get(issue.severity, "white")
        location = issue.file if issue.line is None else f"{issue.file}:{issue.line}"
        detail = f"[bold]{escape(issue.title)}[/bold]\n{escape(issue.description)}"
        if issue.suggestion:
            detail += f"\n[dim]Suggestion: {escape(issue.suggestion)}[/dim]"
        table.add_row(
            f"[{style}]{escape(issue.severity.upper())}[/{style}]",
            escape(issue.category),
            escape(location),
            detail,
        )

    console.print(table)


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option(
    "--root",
    default=".",
    show_default=True,
    type=click.Path(exists=True, file_okay=False),
    help="Local checkout of the PR head; the model may only read files under it.",
)
@click.option("--provider", type=click.Choice(PROVIDERS), default=None, help="Model provider. Overrides config file.")
@click.option("--model", default=None, help="Model name. Overrides config file.")
@click.option("--mode", type=click.Choice(REVIEW_MODES), default=None, help="Review mode. Overrides config file.")
@click.option("--json", "as_json", is_flag=True, help="Print the outcome as JSON instead of a table.")
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int,
    root: str,
    provider: str | None,
    model: str | None,
    mode: str | None,
    as_json: bool,
):
    """Review a GitHub pull request and print the verdict.

    Nothing is posted back to GitHub.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token
      ANTHROPIC_API_KEY    Required when using --provider anthropic
      OPENAI_API_KEY       Required when using --provider openai
      GEMINI_API_KEY       Required when using --provider gemini
      OLLAMA_BASE_URL      Optional Ollama endpoint for --provider ollama
    """
    config_path = (ctx.obj or {}).get("config_path", ".sentinel.yml")
    try:
        config = load_config(config_path, cli_overrides={"provider": provider, "model": model, "mode": mode})
    except (ValueError, OSError) as e:
        raise click.UsageError(str(e))

    if not config.get("github_token"):
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN.\nCreate a token at https://github.com/settings/tokens"
        )

    try:
        adapter = get_adapter(config)
    except (ValueError, ImportError) as e:
        raise click.UsageError(str(e))

    try:
        outcome = run_review(repo=repo, pr_number=pr_number, config=config, working_dir=root, adapter=adapter)
    except ValueError as e:
        raise click.UsageError(str(e))
    except ReviewFailure as e:
        console.print(f"[red]Review failed ({type(e).__name__}): {escape(str(e))}[/red]", soft_wrap=True)
        ctx.exit(1)

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        print_outcome(outcome)
