from __future__ import annotations

from collections.abc import Sequence

from sentinel_core.models import AdapterReply, ConversationState, Role, ToolCall
from sentinel_core.providers.base import GenerationParams, ModelAdapter, decode_arguments
from sentinel_core.tools.definitions import ToolSpec


def to_anthropic_tools(tools: Sequence[ToolSpec]) -> list[dict]:
    return [{"name": t.name, "description": t.description, "input_schema": t.json_schema()} for t in tools]


def to_anthropic_messages(state: ConversationState) -> list[dict]:
    """Translate the transcript into Messages API turns.

    Tool results travel in a user turn as ``tool_result`` blocks, one per
    call, in the order the calls were issued.
    """
    messages: list[dict] = []
    for turn in state.turns:
        if turn.role is Role.REQUESTER:
            messages.append({"role": "user", "content": turn.text})
        elif turn.role is Role.RESPONDER:
            blocks: list[dict] = []
            if turn.text:
                blocks.append({"type": "text", "text": turn.text})
            for call in turn.tool_calls:
                blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments})
            messages.append({"role": "assistant", "content": blocks or turn.text})
        else:
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": r.id,
                            "content": r.content,
                            "is_error": r.error is not None,
                        }
                        for r in turn.tool_results
                    ],
                }
            )
    return messages


class AnthropicAdapter(ModelAdapter):
    NAME = "anthropic"
    MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str | None = None, model: str | None = None, client=None):
        if client is None:
            try:
                from anthropic import Anthropic
            except ImportError:
                raise ImportError(
                    "The 'anthropic' package is required for this provider. "
                    "Install it with: pip install 'code-sentinel[anthropic]'"
                )
            client = Anthropic(api_key=api_key)
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
            "system": state.system,
            "messages": to_anthropic_messages(state),
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
        }
        if tools:
            kwargs["tools"] = to_anthropic_tools(tools)
        if params.timeout is not None:
            kwargs["timeout"] = params.timeout

        response = self.client.messages.create(**kwargs)

        text_parts = []
        calls = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                calls.append(ToolCall(id=block.id, name=block.name, arguments=decode_arguments(block.input)))
        return AdapterReply(text="".join(text_parts).strip(), tool_calls=tuple(calls))
