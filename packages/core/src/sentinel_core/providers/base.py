"""Base model adapter implementing the Template Method pattern.

Every provider speaks the same protocol to the conversation loop:
    submit_turn() → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: translate the conversation into the vendor's wire format,
    make one raw API call and translate the answer back into an AdapterReply

Retry and backoff live here so they are defined once. Once retries are
exhausted, or the next backoff would run past params.timeout, the SDK
exception is wrapped in TransportFailure; the loop never retries on its own.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, replace

from sentinel_core.errors import TransportFailure
from sentinel_core.models import AdapterReply, ConversationState
from sentinel_core.tools.definitions import INVALID_ARGUMENTS_KEY, ToolSpec

logger = logging.getLogger(__name__)

# Shared defaults; subclasses may override as class attributes.
_MAX_RETRIES = 3
_MAX_TOKENS = 4096
_TEMPERATURE = 0.1


@dataclass(frozen=True)
class GenerationParams:
    temperature: float = _TEMPERATURE
    max_tokens: int = _MAX_TOKENS
    # Seconds left before the review deadline; None means no deadline.
    timeout: float | None = None


class ModelAdapter(ABC):
    NAME: str = "model"
    MODEL: str = ""
    MAX_RETRIES: int = _MAX_RETRIES

    model: str

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def submit_turn(
        self,
        state: ConversationState,
        tools: Sequence[ToolSpec],
        params: GenerationParams | None = None,
    ) -> AdapterReply:
        """Send the conversation so far and return the model's next turn.

        An empty ``tools`` sequence means the model is offered no tools and
        is expected to answer with its final text.
        """
        return self._call_with_retry(state, tools, params or GenerationParams())

    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(
        self,
        state: ConversationState,
        tools: Sequence[ToolSpec],
        params: GenerationParams,
    ) -> AdapterReply:
        """Make a single API call and return the parsed reply.

        Should raise on failure — _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(
        self,
        state: ConversationState,
        tools: Sequence[ToolSpec],
        params: GenerationParams,
    ) -> AdapterReply:
        deadline = time.monotonic() + params.timeout if params.timeout is not None else None
        for attempt in range(self.MAX_RETRIES):
            if deadline is not None:
                params = replace(params, timeout=max(deadline - time.monotonic(), 0.0))
            try:
                return self._call_api(state, tools, params)
            except Exception as e:
                delay = 2**attempt
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise TransportFailure(self.NAME, str(e)) from e
                if deadline is not None and time.monotonic() + delay >= deadline:
                    logger.error(
                        "%s API failed (attempt %d/%d): %s. No time left before the review deadline",
                        self.__class__.__name__,
                        attempt + 1,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise TransportFailure(self.NAME, str(e)) from e
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise TransportFailure(self.NAME, "no attempts made")


def decode_arguments(raw) -> dict:
    """Decode a provider's JSON-encoded tool arguments.

    Undecodable input yields a marker the dispatcher reports back to the
    model instead of an exception that would end the conversation.
    """
    if isinstance(raw, dict):
        return dict(raw)
    if raw is None or raw == "":
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        return {INVALID_ARGUMENTS_KEY: f"arguments are not valid JSON ({e})"}
    if not isinstance(value, dict):
        return {INVALID_ARGUMENTS_KEY: "arguments must be a JSON object"}
    return value
