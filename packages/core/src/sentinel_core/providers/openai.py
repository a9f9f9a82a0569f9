from __future__ import annotations

import json
from collections.abc import Sequence

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from sentinel_core.models import AdapterReply, ConversationState, Role, ToolCall
from sentinel_core.providers.base import GenerationParams, ModelAdapter, decode_arguments
from sentinel_core.tools.definitions import ToolSpec

OLLAMA_BASE_URL = "http://localhost:11434/v1"


def to_openai_tools(tools: Sequence[ToolSpec]) -> list[dict]:
    return [
        {
            "type": "function",
            "function": {"name": t.name, "description": t.description, "parameters": t.json_schema()},
        }
        for t in tools
    ]


def to_openai_messages(state: ConversationState) -> list[dict]:
    """Translate the transcript into Chat Completions messages.

    Each tool result becomes its own ``role: tool`` message keyed by the
    originating call id, in the order the calls were issued.
    """
    messages: list[dict] = [{"role": "system", "content": state.system}]
    for turn in state.turns:
        if turn.role is Role.REQUESTER:
            messages.append({"role": "user", "content": turn.text})
        elif turn.role is Role.RESPONDER:
            message: dict = {"role": "assistant", "content": turn.text or None}
            if turn.tool_calls:
                message["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                    }
                    for call in turn.tool_calls
                ]
            messages.append(message)
        else:
            for r in turn.tool_results:
                messages.append({"role": "tool", "tool_call_id": r.id, "content": r.content})
    return messages


class OpenAIAdapter(ModelAdapter):
    NAME = "openai"
    MODEL = "gpt-4o"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        client=None,
    ):
        if client is None:
            if _OpenAI is None:
                raise ImportError(
                    "The 'openai' package is required for this provider. "
                    "Install it with: pip install 'code-sentinel[openai]'"
                )
            client = _OpenAI(api_key=api_key, base_url=base_url)
        self.client = client
        self.model = model or self.MODEL

    def _call_api(
        self,
        state: ConversationState,
        tools: Sequence[ToolSpec],
        params: GenerationParams,
    ) -> AdapterReply:
        kwargs = {
            "model": self.model,
            "messages": to_openai_messages(state),
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
        }
        if tools:
            kwargs["tools"] = to_openai_tools(tools)
        else:
            kwargs["response_format"] = {"type": "json_object"}
        if params.timeout is not None:
            kwargs["timeout"] = params.timeout

        response = self.client.chat.completions.create(**kwargs)
        if not response.choices:
            raise RuntimeError(f"No response choice from {self.NAME}")

        message = response.choices[0].message
        calls = tuple(
            ToolCall(id=tc.id, name=tc.function.name, arguments=decode_arguments(tc.function.arguments))
            for tc in (message.tool_calls or [])
        )
        return AdapterReply(text=(message.content or "").strip(), tool_calls=calls)


class OllamaAdapter(OpenAIAdapter):
    """Local Ollama server through its OpenAI-compatible endpoint."""

    NAME = "ollama"
    MODEL = "codellama:13b"

    def __init__(self, base_url: str | None = None, model: str | None = None, client=None):
        # Ollama ignores the key, but the OpenAI client refuses to start without one.
        super().__init__(api_key="ollama", model=model, base_url=base_url or OLLAMA_BASE_URL, client=client)
