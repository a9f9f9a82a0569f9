"""Exception taxonomy for the review engine.

Two families:

  ToolError      — the model can react to these. The dispatcher turns them
                   into ToolResult.error text and the conversation continues.
  ReviewFailure  — the loop cannot make progress. Raised to the caller of
                   Reviewer.review().
"""

from __future__ import annotations


class SentinelError(Exception):
    """Base class for every error raised by sentinel_core."""


# ---------------------------------------------------------------------- #
# Recoverable: surfaced into the conversation                             #
# ---------------------------------------------------------------------- #


class ToolError(SentinelError):
    pass


class PathEscape(ToolError):
    def __init__(self, path: str):
        super().__init__(f"Path traversal not allowed: {path}")
        self.path = path


class NotFound(ToolError):
    def __init__(self, path: str, kind: str = "File"):
        super().__init__(f"{kind} not found: {path}")
        self.path = path


class InvalidQuery(ToolError):
    def __init__(self, query: str, reason: str):
        super().__init__(f"Invalid regular expression {query!r}: {reason}")
        self.query = query


class UnknownTool(ToolError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidArguments(ToolError):
    def __init__(self, tool: str, reason: str):
        super().__init__(f"Invalid arguments for {tool}: {reason}")
        self.tool = tool


# ---------------------------------------------------------------------- #
# Fatal: raised to the caller                                             #
# ---------------------------------------------------------------------- #


class ReviewFailure(SentinelError):
    pass


class MalformedResponse(ReviewFailure):
    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class IterationBudgetExceeded(ReviewFailure):
    def __init__(self, iterations: int):
        super().__init__(f"Max tool iterations ({iterations}) exceeded")
        self.iterations = iterations


class Cancelled(ReviewFailure):
    def __init__(self, iterations: int, timeout: float):
        super().__init__(f"Review deadline of {timeout:g}s expired after {iterations} iteration(s)")
        self.iterations = iterations


class TransportFailure(ReviewFailure):
    """The model endpoint could not be reached or rejected the request.

    The provider SDK exception is chained as ``__cause__``.
    """

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider} API error: {message}")
        self.provider = provider
