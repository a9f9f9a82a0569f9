"""Bounded tool-use conversation between the reviewer and a model endpoint.

States:

    INITIAL → AWAITING_MODEL → FINAL
                    ↓   ↑
              AWAITING_TOOLS
                    ↓
    (budget spent) EXHAUSTED    (adapter error / unparseable answer) FAILED
    (deadline passed) CANCELLED

The iteration counter advances once per AWAITING_MODEL entry. FINAL is only
reachable from AWAITING_MODEL, and every AWAITING_TOOLS entry appends
exactly one tool-result turn.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from sentinel_core.errors import (
    Cancelled,
    IterationBudgetExceeded,
    ReviewFailure,
    TransportFailure,
)
from sentinel_core.models import ConversationState, ReviewVerdict, Role, Turn
from sentinel_core.providers.base import GenerationParams, ModelAdapter
from sentinel_core.response import parse_verdict
from sentinel_core.tools.definitions import ToolSpec
from sentinel_core.tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10


class LoopState(str, enum.Enum):
    INITIAL = "initial"
    AWAITING_MODEL = "awaiting-model"
    AWAITING_TOOLS = "awaiting-tools"
    FINAL = "final"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({LoopState.FINAL, LoopState.EXHAUSTED, LoopState.FAILED, LoopState.CANCELLED})


@dataclass
class LoopStats:
    """Diagnostics for the most recent run."""

    iterations: int = 0
    tool_calls: int = 0
    states: list[LoopState] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def final_state(self) -> LoopState | None:
        return self.states[-1] if self.states else None


class ConversationLoop:
    """Drives one adapter through the tool-use protocol until a verdict is produced.

    Each run() starts from a fresh ConversationState and discards it on
    return; the loop itself holds no conversation between runs.
    """

    def __init__(
        self,
        adapter: ModelAdapter,
        dispatcher: ToolDispatcher,
        tools: Sequence[ToolSpec] = (),
        max_iterations: int = MAX_ITERATIONS,
        timeout: float | None = None,
        params: GenerationParams | None = None,
    ):
        self.adapter = adapter
        self.dispatcher = dispatcher
        self.tools = tuple(tools)
        self.max_iterations = max_iterations
        self.timeout = timeout
        self.params = params or GenerationParams()
        self.stats = LoopStats()

    def run(self, system_prompt: str, user_prompt: str) -> ReviewVerdict:
        """Run the conversation to a verdict.

        Raises:
            IterationBudgetExceeded: no final answer within max_iterations.
            Cancelled: the timeout expired, including while a turn was in flight.
            TransportFailure: the adapter could not complete a turn.
            MalformedResponse: the final answer held no parseable JSON.
        """
        self.stats = LoopStats()
        started = time.monotonic()
        deadline = started + self.timeout if self.timeout is not None else None

        conversation = ConversationState(system=system_prompt)
        self._enter(LoopState.INITIAL)
        conversation.append(Turn(role=Role.REQUESTER, text=user_prompt))

        try:
            return self._drive(conversation, deadline)
        finally:
            self.stats.elapsed_seconds = time.monotonic() - started

    def _drive(self, conversation: ConversationState, deadline: float | None) -> ReviewVerdict:
        while True:
            if self.stats.iterations >= self.max_iterations:
                self._enter(LoopState.EXHAUSTED)
                logger.error("Max tool iterations (%d) exceeded", self.max_iterations)
                raise IterationBudgetExceeded(self.max_iterations)
            params = self.params
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise self._cancel()
                params = replace(self.params, timeout=remaining)

            self._enter(LoopState.AWAITING_MODEL)
            self.stats.iterations += 1
            logger.debug("Tool iteration %d/%d", self.stats.iterations, self.max_iterations)

            try:
                reply = self.adapter.submit_turn(conversation, self.tools, params)
            except Exception as e:
                if self._expired(deadline):
                    raise self._cancel() from e
                self._enter(LoopState.FAILED)
                if isinstance(e, TransportFailure):
                    raise
                name = getattr(self.adapter, "NAME", type(self.adapter).__name__)
                raise TransportFailure(name, str(e)) from e

            # A reply that arrives after the deadline is discarded, not acted on.
            if self._expired(deadline):
                raise self._cancel()

            conversation.append(Turn(role=Role.RESPONDER, text=reply.text, tool_calls=reply.tool_calls))

            if reply.is_final:
                try:
                    verdict = parse_verdict(reply.text)
                except ReviewFailure:
                    self._enter(LoopState.FAILED)
                    raise
                self._enter(LoopState.FINAL)
                logger.info("Review completed after %d iteration(s)", self.stats.iterations)
                return verdict

            self._enter(LoopState.AWAITING_TOOLS)
            for call in reply.tool_calls:
                logger.info("Executing tool: %s", call.name)
            results = self.dispatcher.dispatch_all(reply.tool_calls)
            self.stats.tool_calls += len(results)
            conversation.append(Turn(role=Role.TOOL_RESULT, tool_results=tuple(results)))

    def _enter(self, state: LoopState) -> None:
        self.stats.states.append(state)

    @staticmethod
    def _expired(deadline: float | None) -> bool:
        return deadline is not None and time.monotonic() >= deadline

    def _cancel(self) -> Cancelled:
        self._enter(LoopState.CANCELLED)
        logger.error("Review deadline expired after %d iteration(s)", self.stats.iterations)
        return Cancelled(self.stats.iterations, self.timeout or 0.0)
