"""
Schema definitions for model <-> engine <-> tool messages.

These data models serve as the contract between the model clients, the turn engine, and individual
tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.

Items travelling through the engine are plain dicts in the Responses-dialect shape (``message``,
``function_call``, ``function_call_output``, ``reasoning`` ...).  The Chat-Completions converter
translates to and from that canonical shape, so the engine itself never needs to know which
dialect produced an item.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    Field,
)

if TYPE_CHECKING:
    from switchboard.agent.agent import Agent

TInputItem = Dict[str, Any]
"""A canonical (Responses-shaped) conversation item."""


# ---------------------------------------------------------------------------
# Model configuration and accounting
# ---------------------------------------------------------------------------
class ModelSettings(BaseModel):
    """Tunable generation parameters sent along with every model call."""

    temperature: Optional[float] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    tool_choice: Optional[str] = Field(
        None, description="'auto', 'required', 'none', a hosted tool name or a function name"
    )
    parallel_tool_calls: Optional[bool] = None
    truncation: Optional[Literal["auto", "disabled"]] = None
    max_tokens: Optional[int] = None
    store: Optional[bool] = None
    include_usage: Optional[bool] = None
    metadata: Optional[Dict[str, str]] = None

    def resolve(self, override: ModelSettings | None) -> ModelSettings:
        """Return a copy where every non-None field of *override* wins."""
        if override is None:
            return self
        return self.model_copy(update=override.model_dump(exclude_none=True))


class Usage(BaseModel):
    """Token accounting accumulated over a run."""

    requests: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: Usage) -> None:
        """Accumulate *other* into this instance."""
        self.requests += other.requests
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.total_tokens += other.total_tokens


class ModelResponse(BaseModel):
    """One model call's output, already converted to canonical items."""

    output: List[TInputItem] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)
    response_id: Optional[str] = None

    def to_input_items(self) -> List[TInputItem]:
        """Return the output items in a form suitable for the next request."""
        return [copy.deepcopy(item) for item in self.output]


# ---------------------------------------------------------------------------
# Run items
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class _RunItemBase:
    agent: Agent
    """The agent whose turn produced this item."""

    raw_item: TInputItem
    """The canonical item as sent to / received from the model."""

    def to_input_item(self) -> TInputItem:
        """Convert this item into an input item for the next model call."""
        return copy.deepcopy(self.raw_item)


@dataclass(frozen=True)
class MessageOutputItem(_RunItemBase):
    """A message produced by the model."""

    type: Literal["message_output_item"] = "message_output_item"


@dataclass(frozen=True)
class ToolCallItem(_RunItemBase):
    """A tool call requested by the model (function, computer, shell or hosted)."""

    type: Literal["tool_call_item"] = "tool_call_item"


@dataclass(frozen=True)
class ToolCallOutputItem(_RunItemBase):
    """The output of a locally executed tool call."""

    output: Any = None
    type: Literal["tool_call_output_item"] = "tool_call_output_item"


@dataclass(frozen=True)
class HandoffCallItem(_RunItemBase):
    """A hand-off pseudo tool call requested by the model."""

    type: Literal["handoff_call_item"] = "handoff_call_item"


@dataclass(frozen=True)
class HandoffOutputItem(_RunItemBase):
    """The acknowledgement of a resolved hand-off."""

    source_agent: Optional[Agent] = None
    target_agent: Optional[Agent] = None
    type: Literal["handoff_output_item"] = "handoff_output_item"


@dataclass(frozen=True)
class ReasoningItem(_RunItemBase):
    """A reasoning / thinking item produced by the model."""

    type: Literal["reasoning_item"] = "reasoning_item"


RunItem = Union[
    MessageOutputItem,
    ToolCallItem,
    ToolCallOutputItem,
    HandoffCallItem,
    HandoffOutputItem,
    ReasoningItem,
]
"""Closed set of items a run can produce."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def input_to_new_input_list(value: Union[str, List[TInputItem]]) -> List[TInputItem]:
    """Normalise a run input (plain text or a list of items) into a fresh list of items."""
    if isinstance(value, str):
        return [{"type": "message", "role": "user", "content": value}]
    return copy.deepcopy(list(value))


def text_message_output(raw_item: TInputItem) -> str:
    """Concatenate the ``output_text`` parts of a canonical assistant message."""
    content = raw_item.get("content") or []
    if isinstance(content, str):
        return content
    return "".join(part.get("text", "") for part in content if part.get("type") == "output_text")


def function_call_output(call_id: str, output: str) -> TInputItem:
    """Build a canonical ``function_call_output`` item."""
    return {"type": "function_call_output", "call_id": call_id, "output": output}
