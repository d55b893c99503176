"""Model client for the OpenAI Chat Completions API (and compatible servers)."""

from __future__ import annotations

import logging
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
)

from openai import AsyncOpenAI

from switchboard.core.schema import (
    ModelResponse,
    ModelSettings,
)
from switchboard.models.chatcmpl_converter import (
    FAKE_RESPONSES_ID,
    ChatCompletionsConverter,
)
from switchboard.models.converter import CHAT_COMPLETIONS
from switchboard.models.interface import (
    RESPONSE_COMPLETED,
    ModelClient,
    ModelRequest,
    register_model_client,
    usage_from_dict,
)

logger = logging.getLogger(__name__)

_OPENAI_BASE_URL = "https://api.openai.com"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def is_openai(client: AsyncOpenAI) -> bool:
    """Whether *client* talks to OpenAI itself rather than a compatible server."""
    return str(client.base_url).startswith(_OPENAI_BASE_URL)


def get_store_param(client: AsyncOpenAI, model_settings: ModelSettings) -> bool | None:
    """Match the Responses API, where ``store`` is true when not given."""
    if model_settings.store is not None:
        return model_settings.store
    return True if is_openai(client) else None


def get_stream_options_param(
    client: AsyncOpenAI, model_settings: ModelSettings, stream: bool
) -> Dict[str, Any] | None:
    """Ask for usage in the last chunk when streaming (by default only against OpenAI)."""
    if not stream:
        return None
    include_usage = model_settings.include_usage
    if include_usage is None and is_openai(client):
        include_usage = True
    if include_usage is None:
        return None
    return {"include_usage": include_usage}


def _chat_usage(usage: Any) -> Dict[str, Any] | None:
    if usage is None:
        return None
    return {
        "input_tokens": usage.prompt_tokens,
        "output_tokens": usage.completion_tokens,
        "total_tokens": usage.total_tokens,
    }


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------
@register_model_client(CHAT_COMPLETIONS)
class OpenAIChatCompletionsModel(ModelClient):
    """Client for ``POST /chat/completions``."""

    def __init__(self, model: str, openai_client: AsyncOpenAI):
        self.model = model
        self.converter = ChatCompletionsConverter()
        self._client = openai_client

    def _build_params(self, request: ModelRequest, stream: bool) -> Dict[str, Any]:
        model_settings = request.model_settings
        messages = self.converter.items_to_wire(request.input)
        if request.system_instructions:
            messages.insert(0, {"role": "system", "content": request.system_instructions})

        params: Dict[str, Any] = {"model": self.model, "messages": messages}
        has_tools = bool(request.tools.tools)
        optional = {
            "tools": request.tools.tools or None,
            "tool_choice": request.tool_choice,
            "response_format": request.response_format,
            "temperature": model_settings.temperature,
            "top_p": model_settings.top_p,
            "frequency_penalty": model_settings.frequency_penalty,
            "presence_penalty": model_settings.presence_penalty,
            "max_tokens": model_settings.max_tokens,
            # only valid when tools are present
            "parallel_tool_calls": model_settings.parallel_tool_calls if has_tools else None,
            "store": get_store_param(self._client, model_settings),
            "metadata": model_settings.metadata,
            "stream_options": get_stream_options_param(self._client, model_settings, stream),
        }
        params.update({key: value for key, value in optional.items() if value is not None})
        return params

    async def get_response(self, request: ModelRequest) -> ModelResponse:
        params = self._build_params(request, stream=False)
        logger.debug("Calling chat completions API: model=%s, %d messages", self.model, len(params["messages"]))

        completion = await self._client.chat.completions.create(**params)
        message = completion.choices[0].message

        return ModelResponse(
            output=self.converter.output_to_items(message),
            usage=usage_from_dict(_chat_usage(completion.usage)),
            response_id=completion.id,
        )

    async def stream_response(self, request: ModelRequest) -> AsyncIterator[Dict[str, Any]]:
        params = self._build_params(request, stream=True)
        logger.debug("Streaming chat completions API: model=%s", self.model)

        text: List[str] = []
        refusal: List[str] = []
        reasoning: List[str] = []
        tool_calls: Dict[int, Dict[str, Any]] = {}
        usage: Dict[str, Any] | None = None
        response_id: str | None = None

        stream = await self._client.chat.completions.create(**params, stream=True)
        async for chunk in stream:
            response_id = chunk.id
            if chunk.usage is not None:
                usage = _chat_usage(chunk.usage)
            if not chunk.choices:
                continue

            delta = chunk.choices[0].delta
            if delta.content:
                text.append(delta.content)
                yield {
                    "type": "response.output_text.delta",
                    "item_id": FAKE_RESPONSES_ID,
                    "output_index": 0,
                    "content_index": 0,
                    "delta": delta.content,
                }
            if delta.refusal:
                refusal.append(delta.refusal)
                yield {
                    "type": "response.refusal.delta",
                    "item_id": FAKE_RESPONSES_ID,
                    "output_index": 0,
                    "content_index": 0,
                    "delta": delta.refusal,
                }
            reasoning_delta = getattr(delta, "reasoning_content", None)
            if reasoning_delta:
                reasoning.append(reasoning_delta)
                yield {
                    "type": "response.reasoning_summary_text.delta",
                    "item_id": FAKE_RESPONSES_ID,
                    "output_index": 0,
                    "summary_index": 0,
                    "delta": reasoning_delta,
                }
            for call_delta in delta.tool_calls or []:
                call = tool_calls.setdefault(
                    call_delta.index,
                    {"id": "", "type": "function", "function": {"name": "", "arguments": ""}},
                )
                if call_delta.id:
                    call["id"] = call_delta.id
                if call_delta.function is not None:
                    call["function"]["name"] += call_delta.function.name or ""
                    arguments = call_delta.function.arguments or ""
                    call["function"]["arguments"] += arguments
                    if arguments:
                        yield {
                            "type": "response.function_call_arguments.delta",
                            "item_id": FAKE_RESPONSES_ID,
                            "output_index": call_delta.index,
                            "delta": arguments,
                        }

        message = {
            "role": "assistant",
            "content": "".join(text) or None,
            "refusal": "".join(refusal) or None,
            "reasoning_content": "".join(reasoning) or None,
            "tool_calls": [tool_calls[index] for index in sorted(tool_calls)],
        }
        yield {
            "type": RESPONSE_COMPLETED,
            "response": {
                "id": response_id,
                "output": self.converter.output_to_items(message),
                "usage": usage,
            },
        }
