"""Data model shared by the explorer, the conversation loop and the adapters."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

SEVERITIES = ("critical", "warning", "suggestion", "nitpick")
CATEGORIES = ("security", "architecture", "performance", "best-practices", "bugs")


# ---------------------------------------------------------------------- #
# Review input                                                             #
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class PullRequestInfo:
    title: str
    author: str = ""
    body: str = ""
    number: int | None = None
    head_sha: str = ""


@dataclass(frozen=True)
class ChangedFile:
    path: str
    content: str


@dataclass(frozen=True)
class RelatedFile:
    path: str
    content: str
    role: str  # "test" | "sibling"


@dataclass(frozen=True)
class ContextFile:
    """A team conventions file such as CLAUDE.md or AGENTS.md."""

    path: str
    name: str
    content: str


@dataclass(frozen=True)
class TeamPattern:
    category: str
    pattern: str
    examples: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReviewRequest:
    """Everything the model sees about one pull request.

    Built once per review and never mutated afterwards.
    """

    pr: PullRequestInfo
    changed_files: tuple[ChangedFile, ...] = ()
    diff: str = ""
    related_files: tuple[RelatedFile, ...] = ()
    context_files: tuple[ContextFile, ...] = ()
    instructions: tuple[str, ...] = ()
    patterns: tuple[TeamPattern, ...] = ()
    categories: tuple[str, ...] = ("security", "architecture", "bugs")
    stack: tuple[str, ...] = ()


# ---------------------------------------------------------------------- #
# Tool invocation                                                          #
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    id: str
    name: str
    payload: str = ""
    error: str | None = None

    @property
    def content(self) -> str:
        """Text handed back to the model for this call."""
        if self.error is not None:
            return f"Error: {self.error}"
        return self.payload


# ---------------------------------------------------------------------- #
# Conversation                                                             #
# ---------------------------------------------------------------------- #


class Role(str, enum.Enum):
    REQUESTER = "requester"
    RESPONDER = "responder"
    TOOL_RESULT = "tool-result"


@dataclass(frozen=True)
class Turn:
    role: Role
    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()


@dataclass
class ConversationState:
    """Append-only transcript owned by a single loop run."""

    system: str
    turns: list[Turn] = field(default_factory=list)

    def append(self, turn: Turn) -> None:
        self.turns.append(turn)

    def count(self, role: Role) -> int:
        return sum(1 for t in self.turns if t.role is role)

    @property
    def last(self) -> Turn | None:
        return self.turns[-1] if self.turns else None


@dataclass(frozen=True)
class AdapterReply:
    """One model turn as seen by the loop: either final text or tool calls."""

    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


# ---------------------------------------------------------------------- #
# Review output                                                            #
# ---------------------------------------------------------------------- #


@dataclass
class Issue:
    severity: str
    category: str
    file: str
    title: str
    description: str
    line: int | None = None
    suggestion: str | None = None
    code_block: str | None = None

    def to_dict(self) -> dict:
        data = {
            "severity": self.severity,
            "category": self.category,
            "file": self.file,
            "line": self.line,
            "title": self.title,
            "description": self.description,
            "suggestion": self.suggestion,
            "codeBlock": self.code_block,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class ReviewVerdict:
    summary: str
    effort_score: int
    issues: list[Issue] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "effortScore": self.effort_score,
            "issues": [i.to_dict() for i in self.issues],
        }
