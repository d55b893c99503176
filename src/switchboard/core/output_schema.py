"""Structured output schemas for agents."""

from __future__ import annotations

import copy
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Dict,
    Type,
)

from pydantic import (
    BaseModel,
    TypeAdapter,
    ValidationError,
    create_model,
)

from switchboard.core.exceptions import (
    OutputValidationError,
    UserError,
)

logger = logging.getLogger(__name__)

_WRAPPER_KEY = "response"


class OutputSchema(ABC):
    """Capability consumed by the engine to constrain and parse an agent's final output."""

    @abstractmethod
    def name(self) -> str:
        """A human-readable name for the output type."""

    @abstractmethod
    def is_plain_text(self) -> bool:
        """Whether the output is free text (no response-format constraint)."""

    @abstractmethod
    def is_strict_json_schema(self) -> bool:
        """Whether the JSON schema is in strict mode."""

    @abstractmethod
    def json_schema(self) -> Dict[str, Any]:
        """The JSON schema of the output type."""

    @abstractmethod
    def validate_json(self, json_str: str) -> Any:
        """Validate *json_str* and return the parsed value, or raise :class:`OutputValidationError`."""


def ensure_strict_json_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of *schema* that satisfies the strict structured-output rules.

    Every object gets ``additionalProperties: false`` and lists all of its properties as
    ``required``; nested objects under ``properties``, ``items``, ``$defs``, ``anyOf`` and
    ``allOf`` are processed recursively.
    """
    return _make_strict(copy.deepcopy(schema))


def _make_strict(node: Any) -> Any:
    if isinstance(node, list):
        return [_make_strict(child) for child in node]
    if not isinstance(node, dict):
        return node

    if node.get("type") == "object":
        if node.get("additionalProperties") is True:
            raise UserError("additionalProperties must be false in a strict JSON schema")
        node["additionalProperties"] = False
        properties = node.setdefault("properties", {})
        node["required"] = list(properties.keys())

    for key in ("properties", "$defs", "definitions"):
        if isinstance(node.get(key), dict):
            node[key] = {name: _make_strict(child) for name, child in node[key].items()}
    for key in ("items", "anyOf", "allOf"):
        if key in node:
            node[key] = _make_strict(node[key])
    return node


class AgentOutputSchema(OutputSchema):
    """
    Output schema derived from a Python type through a pydantic ``TypeAdapter``.

    Types that are not already JSON objects (``list[int]``, ``str`` enums, ...) are wrapped in an
    object under a ``response`` key, because structured outputs must be objects.
    """

    def __init__(self, output_type: Type[Any] | None, strict_json_schema: bool = True):
        self.output_type = output_type
        self.strict_json_schema = strict_json_schema
        self._is_wrapped = False
        self._schema: Dict[str, Any] = {}

        if self.is_plain_text():
            return

        if _is_object_type(output_type):
            self._type_adapter: TypeAdapter[Any] = TypeAdapter(output_type)
        else:
            self._is_wrapped = True
            wrapper = create_model("OutputWrapper", **{_WRAPPER_KEY: (output_type, ...)})
            self._type_adapter = TypeAdapter(wrapper)

        self._schema = self._type_adapter.json_schema()
        if strict_json_schema:
            self._schema = ensure_strict_json_schema(self._schema)

    def name(self) -> str:
        if self.output_type is None:
            return "str"
        return getattr(self.output_type, "__name__", str(self.output_type))

    def is_plain_text(self) -> bool:
        return self.output_type is None or self.output_type is str

    def is_strict_json_schema(self) -> bool:
        return self.strict_json_schema

    def json_schema(self) -> Dict[str, Any]:
        if self.is_plain_text():
            raise UserError("Output type is plain text, so no JSON schema is available")
        return self._schema

    def validate_json(self, json_str: str) -> Any:
        if self.is_plain_text():
            return json_str
        try:
            value = self._type_adapter.validate_json(json_str)
        except ValidationError as exc:
            logger.debug("Final output failed validation for %s: %s", self.name(), exc)
            raise OutputValidationError(
                f"Invalid JSON for output type {self.name()}: {exc}"
            ) from exc
        if self._is_wrapped:
            return getattr(value, _WRAPPER_KEY)
        return value


def _is_object_type(output_type: Any) -> bool:
    if isinstance(output_type, type) and issubclass(output_type, BaseModel):
        return True
    # TypedDicts and dataclasses are serialised as JSON objects too
    return isinstance(output_type, type) and (
        hasattr(output_type, "__total__") or hasattr(output_type, "__dataclass_fields__")
    )
