from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field

from github import Github, GithubException

from sentinel_core.models import ChangedFile, PullRequestInfo, ReviewRequest, TeamPattern
from sentinel_core.utils.code import detect_stack, is_code_file

logger = logging.getLogger(__name__)

# Files GitHub reports with these statuses have no head content worth reviewing.
_REVIEWABLE_STATUSES = ("added", "modified", "renamed", "changed")


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_diff(pr):
    return pr.get_files()


def get_tracked_paths(repo, head_sha: str) -> list[str] | None:
    """Return every blob path in the tree at head_sha, or None if the tree is unavailable."""
    try:
        tree = repo.get_git_tree(head_sha, recursive=True)
    except GithubException as e:
        logger.warning("Could not fetch repo tree; related files will come from the local checkout: %s", e)
        return None
    return [f.path for f in tree.tree if f.type == "blob"]


def is_excluded(filename: str, patterns: list[str]) -> bool:
    """Return True if filename matches any ignore pattern.

    Supports:
    - fnmatch globs on the full path: "src/generated/*.py"
    - fnmatch globs on the basename: "*.lock", "*.min.js"
    - Directory names/prefixes: "migrations/", "tests" (matches any file within that tree)
    """
    for pattern in patterns:
        if fnmatch.fnmatch(filename, pattern):
            return True
        if fnmatch.fnmatch(filename.rsplit("/", 1)[-1], pattern):
            return True
        prefix = pattern.rstrip("/") + "/"
        if filename.startswith(prefix) or ("/" + prefix) in filename:
            return True
    return False


def format_patch(filename: str, patch: str) -> str:
    return f"diff --git a/{filename} b/{filename}\n{patch}"


def team_patterns(entries) -> tuple[TeamPattern, ...]:
    """Convert the `patterns:` config list into TeamPattern values, dropping malformed entries."""
    patterns = []
    for entry in entries or []:
        if not isinstance(entry, dict) or not entry.get("category") or not entry.get("pattern"):
            logger.warning("Ignoring malformed team pattern: %r", entry)
            continue
        examples = entry.get("examples") or ()
        patterns.append(
            TeamPattern(
                category=str(entry["category"]),
                pattern=str(entry["pattern"]),
                examples=tuple(str(e) for e in examples),
            )
        )
    return tuple(patterns)


@dataclass
class ChangeSet:
    """Changed files selected for review plus the ones that were left out, with reasons."""

    files: list[ChangedFile] = field(default_factory=list)
    patches: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def diff(self) -> str:
        return "\n".join(self.patches)


def collect_changes(repo, pr, ignore_paths: list[str]) -> ChangeSet:
    """Fetch head content and patch text for every reviewable file of a PR.

    All content is pinned to the PR head SHA so the model never sees a mix
    of revisions.
    """
    head_sha = pr.head.sha
    changes = ChangeSet()

    for file in sorted(get_diff(pr), key=lambda f: f.filename):
        name = file.filename
        if is_excluded(name, ignore_paths):
            changes.skipped[name] = "ignored"
            continue
        if not is_code_file(name):
            changes.skipped[name] = "not code"
            continue
        if file.status not in _REVIEWABLE_STATUSES:
            changes.skipped[name] = file.status
            continue

        try:
            content = repo.get_contents(name, ref=head_sha).decoded_content.decode("utf-8", errors="replace")
        except GithubException as e:
            logger.warning("Could not fetch %s at %s: %s", name, head_sha[:7], e)
            changes.skipped[name] = f"fetch failed: {e}"
            continue

        changes.files.append(ChangedFile(path=name, content=content))
        if file.patch:
            changes.patches.append(format_patch(name, file.patch))

    return changes


def build_review_request(pr, changes: ChangeSet, config: dict, related=(), context_files=()) -> ReviewRequest:
    info = PullRequestInfo(
        title=pr.title or "",
        author=pr.user.login if pr.user else "",
        body=pr.body or "",
        number=pr.number,
        head_sha=pr.head.sha,
    )
    return ReviewRequest(
        pr=info,
        changed_files=tuple(changes.files),
        diff=changes.diff,
        related_files=tuple(related),
        context_files=tuple(context_files),
        instructions=tuple(str(i) for i in config.get("instructions") or []),
        patterns=team_patterns(config.get("patterns")),
        categories=tuple(config["review"]["categories"]),
        stack=tuple(config.get("stack") or detect_stack(f.path for f in changes.files)),
    )
