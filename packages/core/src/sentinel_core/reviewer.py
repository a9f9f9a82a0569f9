"""Core PR review orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from github import GithubException
from rich.console import Console

from sentinel_core.config import load_context_files
from sentinel_core.gh.pull_request import (
    build_review_request,
    collect_changes,
    get_pull,
    get_repo,
    get_tracked_paths,
)
from sentinel_core.loop import MAX_ITERATIONS, ConversationLoop, LoopStats
from sentinel_core.models import SEVERITIES, ReviewRequest, ReviewVerdict
from sentinel_core.prompts import DEEP_SYSTEM_PROMPT, QUICK_SYSTEM_PROMPT, build_review_prompt
from sentinel_core.providers.anthropic import AnthropicAdapter
from sentinel_core.providers.base import ModelAdapter
from sentinel_core.providers.gemini import GeminiAdapter
from sentinel_core.providers.openai import OllamaAdapter, OpenAIAdapter
from sentinel_core.tools.definitions import TOOLS
from sentinel_core.tools.dispatcher import DEFAULT_MAX_WORKERS, ToolDispatcher
from sentinel_core.tools.explorer import Explorer
from sentinel_core.utils.context import gather_related_files

# Progress goes to stderr so `--json` output on stdout stays parseable.
console = Console(stderr=True)
logger = logging.getLogger(__name__)

# critical outranks everything; nitpick is the floor.
_SEVERITY_RANK = {s: len(SEVERITIES) - i for i, s in enumerate(SEVERITIES)}


def get_adapter(config: dict) -> ModelAdapter:
    llm = config["llm"]
    provider = llm["provider"]
    model = llm.get("model")
    if provider == "anthropic":
        if not config.get("anthropic_api_key"):
            raise ValueError("ANTHROPIC_API_KEY environment variable is not set.")
        return AnthropicAdapter(api_key=config["anthropic_api_key"], model=model)
    if provider == "openai":
        if not config.get("openai_api_key"):
            raise ValueError("OPENAI_API_KEY environment variable is not set.")
        return OpenAIAdapter(api_key=config["openai_api_key"], model=model)
    if provider == "gemini":
        if not config.get("gemini_api_key"):
            raise ValueError("GEMINI_API_KEY environment variable is not set.")
        return GeminiAdapter(api_key=config["gemini_api_key"], model=model)
    if provider == "ollama":
        return OllamaAdapter(base_url=llm.get("base_url"), model=model)
    raise ValueError(f"Unknown model provider: {provider!r}. Choose 'openai', 'anthropic', 'gemini' or 'ollama'.")


class Reviewer:
    """Runs one review per call over a shared adapter and sandbox.

    A fresh ConversationLoop is built for every review, so concurrent
    reviews never share conversation state.
    """

    def __init__(
        self,
        adapter: ModelAdapter,
        explorer: Explorer,
        mode: str = "quick",
        max_iterations: int = MAX_ITERATIONS,
        timeout: float | None = None,
        max_parallel_tools: int = DEFAULT_MAX_WORKERS,
    ):
        self.adapter = adapter
        self.explorer = explorer
        self.mode = mode
        self.max_iterations = max_iterations
        self.timeout = timeout
        self.max_parallel_tools = max_parallel_tools
        self.last_stats: LoopStats | None = None

    @classmethod
    def from_config(cls, config: dict, explorer: Explorer, adapter: ModelAdapter | None = None) -> "Reviewer":
        review = config["review"]
        return cls(
            adapter=adapter or get_adapter(config),
            explorer=explorer,
            mode=review["mode"],
            max_iterations=review["max_iterations"],
            timeout=review.get("timeout_seconds"),
            max_parallel_tools=review["max_parallel_tools"],
        )

    def review(self, request: ReviewRequest) -> ReviewVerdict:
        """Review one request and return the validated verdict.

        Raises a ReviewFailure subclass when no verdict could be produced.
        """
        deep = self.mode == "deep"
        loop = ConversationLoop(
            adapter=self.adapter,
            dispatcher=ToolDispatcher(self.explorer, max_workers=self.max_parallel_tools),
            tools=TOOLS if deep else (),
            max_iterations=self.max_iterations,
            timeout=self.timeout,
        )
        system_prompt = DEEP_SYSTEM_PROMPT if deep else QUICK_SYSTEM_PROMPT
        try:
            return loop.run(system_prompt, build_review_prompt(request))
        finally:
            self.last_stats = loop.stats
            logger.debug(
                "%s review finished in state %s (%d iteration(s), %d tool call(s))",
                self.mode,
                loop.stats.final_state,
                loop.stats.iterations,
                loop.stats.tool_calls,
            )


def filter_issues(verdict: ReviewVerdict, min_severity: str, categories) -> ReviewVerdict:
    """Drop issues below min_severity or outside categories. Returns a new verdict."""
    floor = _SEVERITY_RANK.get(min_severity, 0)
    allowed = set(categories)
    kept = [i for i in verdict.issues if _SEVERITY_RANK.get(i.severity, 0) >= floor and i.category in allowed]
    return ReviewVerdict(summary=verdict.summary, effort_score=verdict.effort_score, issues=kept)


@dataclass
class ReviewOutcome:
    """Result returned by run_review; the CLI decides how to present it."""

    repo: str
    pr_number: int
    head_sha: str
    verdict: ReviewVerdict | None = None
    reviewed_files: list[str] = field(default_factory=list)
    skipped_files: dict[str, str] = field(default_factory=dict)
    skipped_low_effort: bool = False
    skip_reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "repo": self.repo,
            "prNumber": self.pr_number,
            "headSha": self.head_sha,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "reviewedFiles": list(self.reviewed_files),
            "skippedFiles": dict(self.skipped_files),
            "skippedLowEffort": self.skipped_low_effort,
            "skipReason": self.skip_reason,
        }


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    working_dir: str = ".",
    repo_obj=None,
    adapter: ModelAdapter | None = None,
) -> ReviewOutcome:
    """Fetch a pull request, review it and return the filtered outcome.

    working_dir is the sandbox root for the Explorer and should be a checkout
    of the PR head. Nothing is posted back to GitHub.
    """
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])

    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")

    head_sha = this_pr.head.sha
    outcome = ReviewOutcome(repo=repo, pr_number=pr_number, head_sha=head_sha)

    if this_pr.draft:
        console.print("[yellow]Skipping draft PR.[/yellow]")
        outcome.skip_reason = "draft"
        return outcome

    author = this_pr.user.login if this_pr.user else ""
    if author in (config["ignore"].get("authors") or []):
        console.print(f"[yellow]Skipping PR by ignored author {author}.[/yellow]")
        outcome.skip_reason = "ignored author"
        return outcome

    changes = collect_changes(this_repo, this_pr, config["ignore"].get("paths") or [])
    outcome.skipped_files = dict(changes.skipped)
    for name, reason in changes.skipped.items():
        console.print(f"  Skipping: {name} ({reason})")

    if not changes.files:
        console.print("[yellow]No reviewable files in this pull request.[/yellow]")
        outcome.skip_reason = "no reviewable files"
        return outcome

    explorer = Explorer(working_dir)
    changed_paths = [f.path for f in changes.files]
    related = gather_related_files(explorer, changed_paths, get_tracked_paths(this_repo, head_sha))
    context_files = load_context_files(config, working_dir)
    request = build_review_request(this_pr, changes, config, related=related, context_files=context_files)

    reviewer = Reviewer.from_config(config, explorer, adapter=adapter)
    console.print(
        f"Reviewing {len(changes.files)} file(s) with {reviewer.adapter.NAME} ({reviewer.mode} mode)..."
    )
    verdict = reviewer.review(request)

    review_cfg = config["review"]
    outcome.verdict = filter_issues(verdict, review_cfg["min_severity"], review_cfg["categories"])
    outcome.reviewed_files = changed_paths
    outcome.skipped_low_effort = verdict.effort_score < review_cfg["skip_if_effort_below"]
    return outcome
