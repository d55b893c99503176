"""Model client for the OpenAI Responses API."""

from __future__ import annotations

import logging
from typing import (
    Any,
    AsyncIterator,
    Dict,
)

from openai import AsyncOpenAI

from switchboard.core.schema import ModelResponse
from switchboard.models.converter import RESPONSES
from switchboard.models.interface import (
    RESPONSE_COMPLETED,
    ModelClient,
    ModelRequest,
    register_model_client,
    usage_from_dict,
)
from switchboard.models.responses_converter import ResponsesConverter

logger = logging.getLogger(__name__)


@register_model_client(RESPONSES)
class OpenAIResponsesModel(ModelClient):
    """Client for ``POST /responses``."""

    def __init__(self, model: str, openai_client: AsyncOpenAI):
        self.model = model
        self.converter = ResponsesConverter()
        self._client = openai_client

    def _build_params(self, request: ModelRequest) -> Dict[str, Any]:
        model_settings = request.model_settings
        params: Dict[str, Any] = {
            "model": self.model,
            "input": self.converter.items_to_wire(request.input),
        }
        optional = {
            "instructions": request.system_instructions,
            "tools": request.tools.tools or None,
            "include": request.tools.includes or None,
            "tool_choice": request.tool_choice,
            "text": request.response_format,
            "temperature": model_settings.temperature,
            "top_p": model_settings.top_p,
            "max_output_tokens": model_settings.max_tokens,
            "parallel_tool_calls": model_settings.parallel_tool_calls,
            "truncation": model_settings.truncation,
            "store": model_settings.store,
            "metadata": model_settings.metadata,
        }
        params.update({key: value for key, value in optional.items() if value is not None})
        return params

    async def get_response(self, request: ModelRequest) -> ModelResponse:
        params = self._build_params(request)
        logger.debug("Calling responses API: model=%s, %d input items", self.model, len(params["input"]))

        response = await self._client.responses.create(**params)

        usage = response.usage.model_dump() if response.usage is not None else None
        logger.debug("Responses API returned %d output items", len(response.output or []))
        return ModelResponse(
            output=self.converter.output_to_items(response.output),
            usage=usage_from_dict(usage),
            response_id=response.id,
        )

    async def stream_response(self, request: ModelRequest) -> AsyncIterator[Dict[str, Any]]:
        params = self._build_params(request)
        logger.debug("Streaming responses API: model=%s", self.model)

        stream = await self._client.responses.create(**params, stream=True)
        async for event in stream:
            if event.type == RESPONSE_COMPLETED:
                response = event.response
                yield {
                    "type": RESPONSE_COMPLETED,
                    "response": {
                        "id": response.id,
                        "output": self.converter.output_to_items(response.output),
                        "usage": response.usage.model_dump() if response.usage else None,
                    },
                }
            else:
                yield event.model_dump(exclude_unset=True)
