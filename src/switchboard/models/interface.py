"""
Model client interface.

Clients are the only place that *directly* talks to an LLM API.  Everything else (turn engine,
tools, hand-offs) stays dialect-agnostic and works on canonical items.

We support two dialects out of the box:

1. **Responses** (``responses``) - the Responses API.
2. **Chat Completions** (``chat_completions``) - the Chat Completions API, as exposed by OpenAI
   and most OpenAI-compatible servers.

Additional clients can be added by subclassing :class:`ModelClient` and registering via
:func:`register_model_client`.
"""

from __future__ import annotations

import logging
from abc import (
    ABC,
    abstractmethod,
)
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    List,
    Optional,
    Type,
)

from switchboard.core.schema import (
    ModelResponse,
    ModelSettings,
    TInputItem,
    Usage,
)
from switchboard.models.converter import (
    ConvertedTools,
    WireConverter,
)

logger = logging.getLogger(__name__)

RESPONSE_COMPLETED = "response.completed"
"""Type of the last event of every model stream; it carries the whole response."""


@dataclass
class ModelRequest:
    """Everything a client needs for one model call, already converted for its dialect."""

    system_instructions: Optional[str]
    input: List[TInputItem]
    """Canonical conversation history; the client converts it with its converter."""
    tools: ConvertedTools
    tool_choice: Any
    response_format: Any
    model_settings: ModelSettings


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class ModelClient(ABC):
    """Abstract client that sends a :class:`ModelRequest` to a model."""

    converter: WireConverter

    @abstractmethod
    async def get_response(self, request: ModelRequest) -> ModelResponse:
        """Call the model and return its output as canonical items."""

    @abstractmethod
    def stream_response(self, request: ModelRequest) -> AsyncIterator[Dict[str, Any]]:
        """
        Call the model in streaming mode.

        Yields Responses-shaped event dicts in arrival order.  The last event is always of type
        ``response.completed`` and holds ``response.output`` as canonical items plus
        ``response.usage``.
        """


class ModelProvider(ABC):
    """Resolves model names to clients."""

    @abstractmethod
    def get_model(self, model_name: str | None) -> ModelClient:
        """Return a client for *model_name* (``None`` means the default model)."""


def usage_from_dict(usage: Dict[str, Any] | None) -> Usage:
    """Build a one-request :class:`Usage` from a Responses-shaped usage dict."""
    usage = usage or {}
    return Usage(
        requests=1,
        input_tokens=usage.get("input_tokens") or 0,
        output_tokens=usage.get("output_tokens") or 0,
        total_tokens=usage.get("total_tokens") or 0,
    )


def response_from_completed_event(event: Dict[str, Any]) -> ModelResponse:
    """Build a :class:`ModelResponse` from a ``response.completed`` stream event."""
    response = event.get("response") or {}
    return ModelResponse(
        output=list(response.get("output") or []),
        usage=usage_from_dict(response.get("usage")),
        response_id=response.get("id"),
    )


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_MODEL_CLIENT_REGISTRY: Dict[str, Type[ModelClient]] = {}


def register_model_client(dialect: str) -> Callable:
    """Decorator to register a model client class under *dialect*."""

    def wrapper(cls: Type[ModelClient]) -> Type[ModelClient]:
        _MODEL_CLIENT_REGISTRY[dialect] = cls
        return cls

    return wrapper


def get_model_client_class(dialect: str) -> Type[ModelClient] | None:
    """Return the client class registered for *dialect*, if any."""
    return _MODEL_CLIENT_REGISTRY.get(dialect.lower())
