"""Resolves model names to OpenAI-backed clients of the configured dialect."""

from __future__ import annotations

import logging

import httpx
from openai import AsyncOpenAI

from switchboard.config import settings
from switchboard.core.exceptions import ConfigurationError

# Import the concrete clients so that they register themselves
from switchboard.models import (  # noqa: F401 pylint: disable=unused-import
    openai_chatcmpl,
    openai_responses,
)
from switchboard.models.interface import (
    ModelClient,
    ModelProvider,
    get_model_client_class,
)

logger = logging.getLogger(__name__)


def _default_openai_client(api_key: str | None = None, base_url: str | None = None) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=api_key or settings.OPENAI_API_KEY,
        base_url=base_url or settings.OPENAI_BASE_URL,
        http_client=httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT),
    )


def load_model_client(
    model_name: str | None = None,
    dialect: str | None = None,
    openai_client: AsyncOpenAI | None = None,
) -> ModelClient:
    """
    Factory that returns a model client of the requested dialect.

    Fallback order:
    1. *dialect* argument, if provided.
    2. ``settings.OPENAI_API``.

    The model name falls back to ``settings.DEFAULT_MODEL``.

    Raises
    ------
    ConfigurationError
        If no client is registered for the dialect.
    """
    target = (dialect or settings.OPENAI_API).lower()
    client_cls = get_model_client_class(target)
    if client_cls is None:
        raise ConfigurationError(f"Model dialect '{target}' is not registered.")

    model_name = model_name or settings.DEFAULT_MODEL
    logger.debug("Loading %s client for model '%s'", target, model_name)
    return client_cls(  # type: ignore[call-arg]
        model=model_name, openai_client=openai_client or _default_openai_client()
    )


class OpenAIProvider(ModelProvider):
    """
    Provider creating clients that share one :class:`AsyncOpenAI` instance.

    The OpenAI client is built lazily, so constructing a provider never needs an API key.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        openai_client: AsyncOpenAI | None = None,
        dialect: str | None = None,
    ):
        if openai_client is not None and (api_key or base_url):
            raise ConfigurationError("Pass either openai_client or api_key/base_url, not both")
        self._api_key = api_key
        self._base_url = base_url
        self._client = openai_client
        self._dialect = dialect

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = _default_openai_client(self._api_key, self._base_url)
        return self._client

    def get_model(self, model_name: str | None) -> ModelClient:
        return load_model_client(model_name, self._dialect, self._get_client())
