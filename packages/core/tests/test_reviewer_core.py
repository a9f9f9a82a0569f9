"""Tests for the review pipeline: Reviewer.review, filter_issues and run_review."""

import copy
import json
import types
from unittest.mock import MagicMock

import pytest

from sentinel_core.config import DEFAULT_CONFIG
from sentinel_core.errors import IterationBudgetExceeded, MalformedResponse
from sentinel_core.models import (
    AdapterReply,
    ChangedFile,
    Issue,
    PullRequestInfo,
    ReviewRequest,
    ReviewVerdict,
    ToolCall,
)
from sentinel_core.prompts import DEEP_SYSTEM_PROMPT, QUICK_SYSTEM_PROMPT
from sentinel_core.providers.anthropic import AnthropicAdapter
from sentinel_core.providers.base import ModelAdapter
from sentinel_core.providers.gemini import GeminiAdapter
from sentinel_core.providers.openai import OllamaAdapter, OpenAIAdapter
from sentinel_core.reviewer import Reviewer, filter_issues, get_adapter, run_review
from sentinel_core.tools.explorer import Explorer

SECRET_VERDICT = {
    "summary": "Adds a hardcoded credential.",
    "effortScore": 4,
    "issues": [
        {
            "severity": "critical",
            "category": "security",
            "file": "a.ts",
            "title": "Hardcoded secret",
            "description": "API key committed in source.",
        }
    ],
}


class ScriptedAdapter(ModelAdapter):
    NAME = "scripted"

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    def _call_api(self, state, tools, params):
        self.requests.append({"system": state.system, "tools": tuple(tools), "turns": list(state.turns)})
        return self.replies.pop(0)


def _config(**review):
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["review"].update(review)
    config.update(github_token="tok", openai_api_key="sk", anthropic_api_key="ant")
    return config


def _secret_request():
    return ReviewRequest(
        pr=PullRequestInfo(title="Add client"),
        changed_files=(ChangedFile(path="a.ts", content='const API_KEY = "sk-live-123";\n'),),
        diff='+const API_KEY = "sk-live-123";',
    )


@pytest.fixture
def explorer(tmp_path):
    (tmp_path / "a.ts").write_text('const API_KEY = "sk-live-123";\n')
    return Explorer(tmp_path)


# ---------------------------------------------------------------------------
# get_adapter
# ---------------------------------------------------------------------------


class TestGetAdapter:
    def test_openai(self, mocker):
        mocker.patch("sentinel_core.providers.openai._OpenAI")
        assert isinstance(get_adapter(_config()), OpenAIAdapter)

    def test_anthropic(self, mocker):
        config = _config()
        config["llm"]["provider"] = "anthropic"
        mocker.patch.object(AnthropicAdapter, "__init__", return_value=None)
        assert isinstance(get_adapter(config), AnthropicAdapter)

    def test_ollama_needs_no_key(self, mocker):
        mocker.patch("sentinel_core.providers.openai._OpenAI")
        config = _config()
        config["llm"]["provider"] = "ollama"
        config["openai_api_key"] = None
        assert isinstance(get_adapter(config), OllamaAdapter)

    def test_model_override_passed_through(self, mocker):
        mocker.patch("sentinel_core.providers.openai._OpenAI")
        config = _config()
        config["llm"]["model"] = "gpt-4o-mini"
        assert get_adapter(config).model == "gpt-4o-mini"

    def test_missing_key(self):
        config = _config()
        config["openai_api_key"] = None
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            get_adapter(config)

    def test_gemini(self, mocker):
        config = _config()
        config["llm"]["provider"] = "gemini"
        config["gemini_api_key"] = "gem"
        mocker.patch.object(GeminiAdapter, "__init__", return_value=None)
        assert isinstance(get_adapter(config), GeminiAdapter)

    def test_gemini_missing_key(self):
        config = _config()
        config["llm"]["provider"] = "gemini"
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            get_adapter(config)

    def test_unknown_provider(self):
        config = _config()
        config["llm"]["provider"] = "bard"
        with pytest.raises(ValueError, match="Unknown model provider"):
            get_adapter(config)


# ---------------------------------------------------------------------------
# Reviewer.review
# ---------------------------------------------------------------------------


class TestReviewer:
    def test_well_formed_verdict_returned_unmodified(self, explorer):
        adapter = ScriptedAdapter(AdapterReply(text=json.dumps(SECRET_VERDICT)))
        verdict = Reviewer(adapter, explorer).review(_secret_request())
        assert verdict.to_dict() == SECRET_VERDICT

    def test_quick_mode_offers_no_tools(self, explorer):
        adapter = ScriptedAdapter(AdapterReply(text=json.dumps(SECRET_VERDICT)))
        Reviewer(adapter, explorer, mode="quick").review(_secret_request())
        assert adapter.requests[0]["tools"] == ()
        assert adapter.requests[0]["system"] == QUICK_SYSTEM_PROMPT

    def test_deep_mode_offers_four_tools(self, explorer):
        adapter = ScriptedAdapter(AdapterReply(text=json.dumps(SECRET_VERDICT)))
        Reviewer(adapter, explorer, mode="deep").review(_secret_request())
        assert [t.name for t in adapter.requests[0]["tools"]] == [
            "read_file",
            "list_files",
            "search_code",
            "get_structure",
        ]
        assert adapter.requests[0]["system"] == DEEP_SYSTEM_PROMPT

    def test_prompt_carries_request(self, explorer):
        adapter = ScriptedAdapter(AdapterReply(text=json.dumps(SECRET_VERDICT)))
        Reviewer(adapter, explorer).review(_secret_request())
        opening = adapter.requests[0]["turns"][0].text
        assert "Add client" in opening
        assert "sk-live-123" in opening

    def test_missing_file_then_final_in_two_iterations(self, explorer):
        adapter = ScriptedAdapter(
            AdapterReply(tool_calls=(ToolCall(id="1", name="read_file", arguments={"path": "b.ts"}),)),
            AdapterReply(text=json.dumps(SECRET_VERDICT)),
        )
        reviewer = Reviewer(adapter, explorer, mode="deep")
        verdict = reviewer.review(_secret_request())

        assert verdict.effort_score == 4
        assert reviewer.last_stats.iterations == 2
        result = adapter.requests[1]["turns"][-1].tool_results[0]
        assert (result.id, result.error) == ("1", "File not found: b.ts")

    def test_prose_answer_is_malformed(self, explorer):
        adapter = ScriptedAdapter(AdapterReply(text="The code looks reasonable overall."))
        with pytest.raises(MalformedResponse):
            Reviewer(adapter, explorer).review(_secret_request())

    def test_quick_mode_tool_calls_still_count_toward_budget(self, explorer):
        replies = [AdapterReply(tool_calls=(ToolCall(id=str(i), name="get_structure"),)) for i in range(3)]
        adapter = ScriptedAdapter(*replies)
        reviewer = Reviewer(adapter, explorer, mode="quick", max_iterations=3)
        with pytest.raises(IterationBudgetExceeded):
            reviewer.review(_secret_request())
        assert reviewer.last_stats.iterations == 3

    def test_from_config(self, explorer):
        adapter = ScriptedAdapter()
        reviewer = Reviewer.from_config(
            _config(mode="deep", max_iterations=5, timeout_seconds=30, max_parallel_tools=2), explorer, adapter=adapter
        )
        assert reviewer.adapter is adapter
        assert (reviewer.mode, reviewer.max_iterations, reviewer.timeout, reviewer.max_parallel_tools) == (
            "deep",
            5,
            30,
            2,
        )


# ---------------------------------------------------------------------------
# filter_issues
# ---------------------------------------------------------------------------


def _issue(severity, category="bugs"):
    return Issue(severity=severity, category=category, file="a.py", title=severity, description="d")


class TestFilterIssues:
    def test_min_severity(self):
        verdict = ReviewVerdict("s", 3, [_issue(s) for s in ("critical", "warning", "suggestion", "nitpick")])
        kept = filter_issues(verdict, "warning", ["bugs"])
        assert [i.severity for i in kept.issues] == ["critical", "warning"]

    def test_categories(self):
        verdict = ReviewVerdict("s", 3, [_issue("warning", "bugs"), _issue("warning", "performance")])
        kept = filter_issues(verdict, "nitpick", ["performance"])
        assert [i.category for i in kept.issues] == ["performance"]

    def test_unknown_severity_only_kept_at_floor(self):
        verdict = ReviewVerdict("s", 3, [_issue("blocker")])
        assert filter_issues(verdict, "nitpick", ["bugs"]).issues == []

    def test_original_untouched(self):
        verdict = ReviewVerdict("s", 3, [_issue("nitpick")])
        filter_issues(verdict, "critical", ["bugs"])
        assert len(verdict.issues) == 1


# ---------------------------------------------------------------------------
# run_review
# ---------------------------------------------------------------------------


def _pr(files, draft=False, login="alice"):
    pr = MagicMock()
    pr.draft = draft
    pr.title = "Add client"
    pr.body = ""
    pr.number = 1
    pr.head.sha = "f" * 40
    pr.user.login = login
    pr.get_files.return_value = files
    return pr


def _repo(pr, contents):
    repo = MagicMock()
    repo.get_pull.return_value = pr
    repo.get_contents.side_effect = lambda path, ref: types.SimpleNamespace(decoded_content=contents[path].encode())
    repo.get_git_tree.return_value.tree = [types.SimpleNamespace(path=p, type="blob") for p in contents]
    return repo


class TestRunReview:
    def test_full_pipeline(self, tmp_path):
        (tmp_path / "a.ts").write_text('const API_KEY = "sk-live-123";\n')
        files = [
            types.SimpleNamespace(filename="a.ts", status="added", patch='+const API_KEY = "sk-live-123";'),
            types.SimpleNamespace(filename="yarn.lock", status="modified", patch="+x"),
        ]
        repo = _repo(_pr(files), {"a.ts": 'const API_KEY = "sk-live-123";\n'})
        adapter = ScriptedAdapter(AdapterReply(text=json.dumps(SECRET_VERDICT)))

        outcome = run_review("o/r", 1, _config(), working_dir=str(tmp_path), repo_obj=repo, adapter=adapter)

        assert outcome.verdict.to_dict() == SECRET_VERDICT
        assert outcome.reviewed_files == ["a.ts"]
        assert outcome.skipped_files == {"yarn.lock": "not code"}
        assert outcome.skipped_low_effort is False
        assert outcome.to_dict()["verdict"]["effortScore"] == 4

    def test_filters_applied(self, tmp_path):
        (tmp_path / "a.ts").write_text("x")
        files = [types.SimpleNamespace(filename="a.ts", status="added", patch="+x")]
        repo = _repo(_pr(files), {"a.ts": "x"})
        adapter = ScriptedAdapter(AdapterReply(text=json.dumps(SECRET_VERDICT)))

        outcome = run_review(
            "o/r", 1, _config(categories=["performance"]), working_dir=str(tmp_path), repo_obj=repo, adapter=adapter
        )
        assert outcome.verdict.issues == []

    def test_low_effort_flag(self, tmp_path):
        (tmp_path / "a.ts").write_text("x")
        files = [types.SimpleNamespace(filename="a.ts", status="added", patch="+x")]
        repo = _repo(_pr(files), {"a.ts": "x"})
        adapter = ScriptedAdapter(AdapterReply(text=json.dumps(dict(SECRET_VERDICT, effortScore=1))))

        outcome = run_review(
            "o/r", 1, _config(skip_if_effort_below=2), working_dir=str(tmp_path), repo_obj=repo, adapter=adapter
        )
        assert outcome.skipped_low_effort is True

    def test_draft_skipped(self, tmp_path):
        repo = _repo(_pr([], draft=True), {})
        adapter = ScriptedAdapter()
        outcome = run_review("o/r", 1, _config(), working_dir=str(tmp_path), repo_obj=repo, adapter=adapter)
        assert outcome.verdict is None
        assert outcome.skip_reason == "draft"
        assert adapter.requests == []

    def test_ignored_author_skipped(self, tmp_path):
        config = _config()
        config["ignore"]["authors"] = ["dependabot[bot]"]
        repo = _repo(_pr([], login="dependabot[bot]"), {})
        outcome = run_review("o/r", 1, config, working_dir=str(tmp_path), repo_obj=repo, adapter=ScriptedAdapter())
        assert outcome.skip_reason == "ignored author"

    def test_nothing_reviewable(self, tmp_path):
        files = [types.SimpleNamespace(filename="docs/logo.png", status="added", patch=None)]
        repo = _repo(_pr(files), {})
        outcome = run_review("o/r", 1, _config(), working_dir=str(tmp_path), repo_obj=repo, adapter=ScriptedAdapter())
        assert outcome.skip_reason == "no reviewable files"

    def test_missing_pr(self, tmp_path):
        from github import GithubException

        repo = MagicMock()
        repo.get_pull.side_effect = GithubException(404, "Not Found", None)
        with pytest.raises(ValueError, match="PR #9 not found"):
            run_review("o/r", 9, _config(), working_dir=str(tmp_path), repo_obj=repo, adapter=ScriptedAdapter())
