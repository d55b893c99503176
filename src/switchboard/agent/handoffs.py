"""
Hand-offs: model-invocable transfers of control from one agent to another.

To the model a hand-off looks like a function tool.  When the model calls it, the engine invokes
:attr:`Handoff.on_invoke_handoff` with the raw JSON arguments; that runs the user callback (if
any) and returns the target agent, which becomes the current agent for the next turn.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Type,
)

from pydantic import (
    TypeAdapter,
    ValidationError,
)

from switchboard.agent.agent import Agent
from switchboard.common import (
    maybe_await,
    transform_string_function_style,
)
from switchboard.core.exceptions import (
    ConfigurationError,
    HandoffInputError,
)
from switchboard.core.lifecycle import RunContextWrapper
from switchboard.core.output_schema import ensure_strict_json_schema

logger = logging.getLogger(__name__)

OnHandoffWithInput = Callable[[RunContextWrapper[Any], Any], Any]
OnHandoffWithoutInput = Callable[[RunContextWrapper[Any]], Any]


@dataclass(frozen=True)
class Handoff:
    """A hand-off exposed to the model as a function tool."""

    tool_name: str
    """Name of the function tool presented to the model; unique within an agent's tool set."""

    tool_description: str

    agent_name: str
    """Name of the target agent, for observability."""

    on_invoke_handoff: Callable[[RunContextWrapper[Any], str], Awaitable[Agent]]
    """Receives the run context and the raw JSON arguments; returns the target agent."""

    input_json_schema: Optional[Dict[str, Any]] = None
    """Schema of the arguments, or ``None`` when the hand-off takes no input."""

    strict_json_schema: bool = True

    agent: Optional[Agent] = None
    """The target agent."""


# ---------------------------------------------------------------------------
# Default naming
# ---------------------------------------------------------------------------
def default_handoff_tool_name(agent: Agent) -> str:
    """Return ``transfer_to_<normalised agent name>``."""
    return f"transfer_to_{transform_string_function_style(agent.name)}"


def default_handoff_tool_description(agent: Agent) -> str:
    """Return the default description of a hand-off to *agent*."""
    return (
        f"Handoff to the {agent.name} agent to handle the request. "
        f"{agent.handoff_description or ''}"
    )


def get_transfer_message(agent: Agent) -> str:
    """The tool output acknowledging a hand-off to *agent*."""
    return json.dumps({"assistant": agent.name})


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------
def _positional_arity(fn: Callable[..., Any]) -> int:
    params = inspect.signature(fn).parameters.values()
    return sum(
        1
        for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    )


def handoff(
    agent: Agent,
    *,
    tool_name_override: str | None = None,
    tool_description_override: str | None = None,
    on_handoff: OnHandoffWithInput | OnHandoffWithoutInput | None = None,
    input_type: Type[Any] | None = None,
) -> Handoff:
    """
    Build a :class:`Handoff` to *agent*.

    Parameters
    ----------
    agent:
        The target agent.
    tool_name_override, tool_description_override:
        Replace the default tool name / description.
    on_handoff:
        Callback run when the hand-off is invoked, sync or async.  With *input_type* it is
        called as ``on_handoff(ctx, value)``, otherwise as ``on_handoff(ctx)``.
    input_type:
        Type of the input the model must provide.  Its JSON schema is sent to the model and the
        model's arguments are validated against it.

    Raises
    ------
    ConfigurationError
        If *on_handoff* does not match the presence of *input_type*.
    """
    type_adapter: TypeAdapter[Any] | None = None
    input_json_schema: Dict[str, Any] | None = None

    if input_type is not None:
        if on_handoff is None or _positional_arity(on_handoff) != 2:
            raise ConfigurationError(
                "on_handoff must take two arguments (context, input) when input_type is set"
            )
        type_adapter = TypeAdapter(input_type)
        input_json_schema = ensure_strict_json_schema(type_adapter.json_schema())
    elif on_handoff is not None and _positional_arity(on_handoff) != 1:
        raise ConfigurationError("on_handoff must take one argument (context) without input_type")

    tool_name = tool_name_override or default_handoff_tool_name(agent)

    async def _invoke_handoff(ctx: RunContextWrapper[Any], input_json: str) -> Agent:
        if type_adapter is not None and on_handoff is not None:
            if not input_json:
                raise HandoffInputError(
                    f"Handoff '{tool_name}' expected non-empty JSON input, but got none"
                )
            try:
                validated = type_adapter.validate_json(input_json)
            except ValidationError as exc:
                raise HandoffInputError(f"Invalid JSON input for handoff '{tool_name}': {exc}") from exc
            await maybe_await(on_handoff(ctx, validated))  # type: ignore[call-arg]
        elif on_handoff is not None:
            # Without a declared input the raw arguments are ignored entirely
            await maybe_await(on_handoff(ctx))  # type: ignore[call-arg]
        return agent

    return Handoff(
        tool_name=tool_name,
        tool_description=tool_description_override or default_handoff_tool_description(agent),
        agent_name=agent.name,
        on_invoke_handoff=_invoke_handoff,
        input_json_schema=input_json_schema,
        agent=agent,
    )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------
def get_handoffs(agent: Agent) -> List[Handoff]:
    """
    Return the hand-offs the model may call while *agent* is active.

    Explicit hand-offs come first, then one default hand-off per ``agent.agent_handoffs`` entry,
    each group in declaration order.

    Raises
    ------
    ConfigurationError
        If two hand-offs end up with the same tool name.
    """
    handoffs = list(agent.handoffs) + [handoff(target) for target in agent.agent_handoffs]

    seen: set[str] = set()
    for item in handoffs:
        if item.tool_name in seen:
            raise ConfigurationError(
                f"Duplicate handoff tool name '{item.tool_name}' in agent '{agent.name}'"
            )
        seen.add(item.tool_name)

    logger.debug("Agent '%s' handoffs: %s", agent.name, [h.tool_name for h in handoffs])
    return handoffs
