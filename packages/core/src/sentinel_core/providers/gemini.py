from __future__ import annotations

from collections.abc import Sequence

from sentinel_core.models import AdapterReply, ConversationState, Role, ToolCall
from sentinel_core.providers.base import GenerationParams, ModelAdapter, decode_arguments
from sentinel_core.tools.definitions import ToolSpec


def _gemini_schema(schema: dict) -> dict:
    """Gemini's Schema type names are upper-case (OBJECT, STRING, ...)."""
    converted = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted[key] = value.upper()
        elif key == "properties" and isinstance(value, dict):
            converted[key] = {name: _gemini_schema(prop) for name, prop in value.items()}
        else:
            converted[key] = value
    return converted


def to_gemini_tools(tools: Sequence[ToolSpec]) -> list[dict]:
    declarations = []
    for t in tools:
        declaration = {"name": t.name, "description": t.description}
        # Gemini rejects an OBJECT schema with no properties.
        if t.parameters:
            declaration["parameters"] = _gemini_schema(t.json_schema())
        declarations.append(declaration)
    return [{"function_declarations": declarations}]


def to_gemini_contents(state: ConversationState) -> list[dict]:
    """Translate the transcript into generate_content contents.

    The model speaks as ``model``; tool results go back in a ``user`` turn as
    ``function_response`` parts, one per call, in the order the calls were
    issued.
    """
    contents: list[dict] = []
    for turn in state.turns:
        if turn.role is Role.REQUESTER:
            contents.append({"role": "user", "parts": [{"text": turn.text}]})
        elif turn.role is Role.RESPONDER:
            parts: list[dict] = []
            if turn.text:
                parts.append({"text": turn.text})
            for call in turn.tool_calls:
                parts.append({"function_call": {"id": call.id, "name": call.name, "args": call.arguments}})
            contents.append({"role": "model", "parts": parts})
        else:
            contents.append(
                {
                    "role": "user",
                    "parts": [
                        {
                            "function_response": {
                                "id": r.id,
                                "name": r.name,
                                "response": {"error": r.error} if r.error is not None else {"output": r.payload},
                            }
                        }
                        for r in turn.tool_results
                    ],
                }
            )
    return contents


class GeminiAdapter(ModelAdapter):
    NAME = "gemini"
    MODEL = "gemini-2.0-flash"

    def __init__(self, api_key: str | None = None, model: str | None = None, client=None):
        if client is None:
            try:
                from google import genai
            except ImportError:
                raise ImportError(
                    "The 'google-genai' package is required for this provider. "
                    "Install it with: pip install 'code-sentinel[gemini]'"
                )
            client = genai.Client(api_key=api_key)
        self.client = client
        self.model = model or self.MODEL

    def _call_api(
        self,
        state: ConversationState,
        tools: Sequence[ToolSpec],
        params: GenerationParams,
    ) -> AdapterReply:
        config: dict = {
            "system_instruction": state.system,
            "temperature": params.temperature,
            "max_output_tokens": params.max_tokens,
        }
        if tools:
            config["tools"] = to_gemini_tools(tools)
        else:
            config["response_mime_type"] = "application/json"
        if params.timeout is not None:
            # HttpOptions.timeout is in milliseconds.
            config["http_options"] = {"timeout": max(int(params.timeout * 1000), 1)}

        response = self.client.models.generate_content(
            model=self.model,
            contents=to_gemini_contents(state),
            config=config,
        )
        if not response.candidates:
            raise RuntimeError(f"No response candidate from {self.NAME}")

        content = response.candidates[0].content
        text_parts = []
        calls = []
        for part in (content.parts if content else None) or []:
            call = getattr(part, "function_call", None)
            if call is not None:
                # Older Gemini models leave the call id empty; correlation is then by position.
                call_id = call.id or f"{call.name}-{len(state.turns)}-{len(calls)}"
                calls.append(ToolCall(id=call_id, name=call.name, arguments=decode_arguments(call.args)))
            elif getattr(part, "text", None):
                text_parts.append(part.text)
        return AdapterReply(text="".join(text_parts).strip(), tool_calls=tuple(calls))
