"""Tests for hand-off construction, naming and invocation."""

import json
from typing import (
    Any,
    List,
)

import pytest
from pydantic import BaseModel

from switchboard.agent.agent import Agent
from switchboard.agent.handoffs import (
    default_handoff_tool_description,
    default_handoff_tool_name,
    get_handoffs,
    get_transfer_message,
    handoff,
)
from switchboard.core.exceptions import (
    ConfigurationError,
    HandoffInputError,
    UserError,
)
from switchboard.core.lifecycle import RunContextWrapper


class EscalationData(BaseModel):
    reason: str


def test_default_tool_name_is_normalised() -> None:
    """The default tool name should be ``transfer_to_`` plus the normalised agent name."""

    assert default_handoff_tool_name(Agent(name="Billing Agent")) == "transfer_to_billing_agent"
    assert default_handoff_tool_name(Agent(name="Refunds-EU")) == "transfer_to_refunds_eu"


def test_default_tool_description() -> None:
    """The default description should name the agent and append its hand-off description."""

    plain = Agent(name="billing")
    described = Agent(name="billing", handoff_description="Handles invoices.")

    assert default_handoff_tool_description(plain) == (
        "Handoff to the billing agent to handle the request. "
    )
    assert default_handoff_tool_description(described) == (
        "Handoff to the billing agent to handle the request. Handles invoices."
    )


def test_transfer_message() -> None:
    """The acknowledgement should be a JSON object naming the target agent."""

    assert json.loads(get_transfer_message(Agent(name="billing"))) == {"assistant": "billing"}


def test_get_handoffs_orders_explicit_before_implicit() -> None:
    """Explicit hand-offs should be listed before the implicit ones."""

    a, b, c = Agent(name="a"), Agent(name="b"), Agent(name="c")
    triage = Agent(
        name="triage",
        agent_handoffs=[a, b],
        handoffs=[handoff(c, tool_name_override="escalate")],
    )

    resolved = get_handoffs(triage)

    assert [h.tool_name for h in resolved] == ["escalate", "transfer_to_a", "transfer_to_b"]
    assert [h.agent for h in resolved] == [c, a, b]


def test_get_handoffs_rejects_duplicate_names() -> None:
    """Two hand-offs with the same tool name should be a configuration error."""

    a = Agent(name="a")
    triage = Agent(name="triage", agent_handoffs=[a], handoffs=[handoff(a)])

    with pytest.raises(ConfigurationError, match="transfer_to_a"):
        get_handoffs(triage)


def test_handoff_without_input_has_no_schema() -> None:
    """A hand-off without *input_type* should carry no input schema."""

    item = handoff(Agent(name="a"))
    assert item.input_json_schema is None
    assert item.strict_json_schema is True
    assert item.agent_name == "a"


def test_handoff_with_input_type_has_strict_schema() -> None:
    """A hand-off with *input_type* should carry a strict schema of that type."""

    item = handoff(Agent(name="a"), on_handoff=lambda ctx, data: None, input_type=EscalationData)

    schema = item.input_json_schema
    assert schema is not None
    assert schema["properties"]["reason"]["type"] == "string"
    assert schema["required"] == ["reason"]
    assert schema["additionalProperties"] is False


def test_on_handoff_arity_is_checked() -> None:
    """The callback arity should have to match the presence of *input_type*."""

    target = Agent(name="a")

    with pytest.raises(ConfigurationError):
        handoff(target, on_handoff=lambda ctx: None, input_type=EscalationData)
    with pytest.raises(ConfigurationError):
        handoff(target, input_type=EscalationData)
    with pytest.raises(ConfigurationError):
        handoff(target, on_handoff=lambda ctx, data: None)


@pytest.mark.asyncio
async def test_invoke_with_input_passes_parsed_value() -> None:
    """Valid JSON input should be parsed and handed to the callback."""

    target = Agent(name="a")
    received: List[Any] = []

    async def on_handoff(ctx: RunContextWrapper[Any], data: EscalationData) -> None:
        received.append(data)

    item = handoff(target, on_handoff=on_handoff, input_type=EscalationData)
    result = await item.on_invoke_handoff(RunContextWrapper(context=None), '{"reason": "angry"}')

    assert result is target
    assert received == [EscalationData(reason="angry")]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", ["", "not json", '{"wrong": 1}'])
async def test_invoke_with_bad_input_raises(payload: str) -> None:
    """Empty, malformed or invalid input should raise *HandoffInputError*."""

    item = handoff(Agent(name="a"), on_handoff=lambda ctx, data: None, input_type=EscalationData)

    with pytest.raises(HandoffInputError) as exc_info:
        await item.on_invoke_handoff(RunContextWrapper(context=None), payload)
    assert isinstance(exc_info.value, UserError)


@pytest.mark.asyncio
async def test_invoke_without_input_ignores_payload() -> None:
    """Without *input_type* the payload should be ignored entirely."""

    target = Agent(name="a")
    calls: List[Any] = []

    item = handoff(target, on_handoff=lambda ctx: calls.append(ctx.context))
    result = await item.on_invoke_handoff(RunContextWrapper(context="ctx"), "garbage, not json")

    assert result is target
    assert calls == ["ctx"]


@pytest.mark.asyncio
async def test_callback_error_propagates_unchanged() -> None:
    """An error raised by the callback should reach the caller as-is."""

    error = ValueError("callback failed")

    def on_handoff(ctx: RunContextWrapper[Any]) -> None:
        raise error

    item = handoff(Agent(name="a"), on_handoff=on_handoff)
    with pytest.raises(ValueError) as exc_info:
        await item.on_invoke_handoff(RunContextWrapper(context=None), "")
    assert exc_info.value is error
