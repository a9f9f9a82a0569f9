"""Routes model tool calls to the explorer and wraps every outcome as a ToolResult."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from sentinel_core.errors import ToolError
from sentinel_core.models import ToolCall, ToolResult
from sentinel_core.tools.definitions import (
    GetStructureArgs,
    ListFilesArgs,
    ReadFileArgs,
    SearchCodeArgs,
    ToolArgs,
    parse_arguments,
)
from sentinel_core.tools.explorer import Explorer

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class ToolDispatcher:
    """Executes tool calls against an Explorer.

    dispatch() never raises: unknown tools, bad arguments and explorer
    failures all come back as ToolResult.error so the model can correct
    itself on the next turn.
    """

    def __init__(self, explorer: Explorer, max_workers: int = DEFAULT_MAX_WORKERS):
        self.explorer = explorer
        self.max_workers = max(1, max_workers)

    def dispatch(self, call: ToolCall) -> ToolResult:
        logger.debug("Executing tool %s with args %s", call.name, call.arguments)
        try:
            args = parse_arguments(call.name, call.arguments)
            payload = self._run(args)
        except ToolError as e:
            logger.debug("Tool %s error: %s", call.name, e)
            return ToolResult(id=call.id, name=call.name, error=str(e))
        except Exception as e:
            logger.debug("Tool %s failed unexpectedly: %r", call.name, e)
            return ToolResult(id=call.id, name=call.name, error=f"{type(e).__name__}: {e}")
        return ToolResult(id=call.id, name=call.name, payload=payload)

    def dispatch_all(self, calls: Sequence[ToolCall]) -> list[ToolResult]:
        """Run every call of one model turn and return results in call order.

        Calls may execute concurrently; the returned list is only built once
        all of them have finished.
        """
        if len(calls) <= 1 or self.max_workers == 1:
            return [self.dispatch(c) for c in calls]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(calls))) as pool:
            return list(pool.map(self.dispatch, calls))

    def _run(self, args: ToolArgs) -> str:
        if isinstance(args, ReadFileArgs):
            return self.explorer.read_file(args.path)
        if isinstance(args, ListFilesArgs):
            return self.explorer.list_files(args.directory, args.pattern)
        if isinstance(args, SearchCodeArgs):
            return self.explorer.search_code(args.query, args.path)
        if isinstance(args, GetStructureArgs):
            return self.explorer.get_structure()
        raise TypeError(f"Unhandled tool arguments: {args!r}")
