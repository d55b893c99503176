"""Tests for streamed runs."""

import asyncio
from typing import List

import pytest
from fake_model import (
    FakeModel,
    get_function_tool_call,
    get_handoff_tool_call,
    get_text_message,
)

from switchboard.agent.agent import Agent
from switchboard.agent.result import StreamEvent
from switchboard.agent.runner import Runner
from switchboard.config import settings
from switchboard.core.exceptions import (
    MaxTurnsExceeded,
    ModelCallError,
    UserError,
)
from switchboard.tools import function_tool


@function_tool
def get_weather(city: str) -> str:
    """Return the weather for a city."""
    return f"sunny in {city}"


def _describe(event: StreamEvent) -> str:
    if event.type == "agent_updated_stream_event":
        return f"agent:{event.new_agent.name}"
    if event.type == "run_item_stream_event":
        return f"item:{event.name}"
    return f"raw:{event.data['type']}"


@pytest.mark.asyncio
async def test_event_order_with_tool_and_handoff(fake_model: FakeModel) -> None:
    """Events should follow raw model events, then items, with agent updates on hand-off."""

    billing = Agent(name="billing", model=fake_model)
    triage = Agent(name="triage", model=fake_model, tools=[get_weather], agent_handoffs=[billing])
    fake_model.add_multiple_turn_outputs(
        [
            [get_function_tool_call("get_weather", {"city": "Oslo"})],
            [get_handoff_tool_call(billing)],
            [get_text_message("done")],
        ]
    )

    result = Runner.run_streamed(triage, "hi")
    seen = [_describe(event) async for event in result.stream_events()]

    assert seen == [
        "agent:triage",
        "raw:response.created",
        "raw:response.output_item.done",
        "raw:response.completed",
        "item:tool_called",
        "item:tool_output",
        "raw:response.created",
        "raw:response.output_item.done",
        "raw:response.completed",
        "item:handoff_requested",
        "item:handoff_occured",
        "agent:billing",
        "raw:response.created",
        "raw:response.output_text.delta",
        "raw:response.output_item.done",
        "raw:response.completed",
        "item:message_output_created",
    ]
    assert result.is_complete
    assert result.final_output == "done"
    assert result.current_agent is billing
    assert result.current_turn == 3


@pytest.mark.asyncio
async def test_streamed_result_matches_non_streamed(fake_model: FakeModel) -> None:
    """A streamed run should produce the same output and history as a normal run."""

    agent = Agent(name="test", model=fake_model, tools=[get_weather])
    outputs = [
        [get_function_tool_call("get_weather", {"city": "Oslo"}, call_id="c1")],
        [get_text_message("sunny")],
    ]
    fake_model.add_multiple_turn_outputs(list(outputs))
    expected = await Runner.run(agent, "weather?")

    fake_model.add_multiple_turn_outputs(list(outputs))
    result = Runner.run_streamed(agent, "weather?")
    async for _ in result.stream_events():
        pass

    assert result.final_output == expected.final_output
    assert result.to_input_list() == expected.to_input_list()


@pytest.mark.asyncio
async def test_errors_are_raised_after_queued_events(fake_model: FakeModel) -> None:
    """A run error should be raised only after the queued events are yielded."""

    agent = Agent(name="test", model=fake_model, tools=[get_weather])
    fake_model.add_multiple_turn_outputs(
        [[get_function_tool_call("get_weather", {"city": "Oslo"})] for _ in range(2)]
    )

    result = Runner.run_streamed(agent, "loop", max_turns=1)
    seen: List[str] = []
    with pytest.raises(MaxTurnsExceeded):
        async for event in result.stream_events():
            seen.append(_describe(event))

    assert seen[-2:] == ["item:tool_called", "item:tool_output"]
    assert result.is_complete


@pytest.mark.asyncio
async def test_model_errors_surface_from_stream(fake_model: FakeModel) -> None:
    """Model failures should surface from the event iterator as *ModelCallError*."""

    agent = Agent(name="test", model=fake_model)
    fake_model.set_next_output(TimeoutError("slow"))

    result = Runner.run_streamed(agent, "hi")
    with pytest.raises(ModelCallError):
        async for _ in result.stream_events():
            pass


@pytest.mark.asyncio
async def test_cancel_stops_the_run(fake_model: FakeModel) -> None:
    """Cancelling should stop the run and cancel the running tool."""

    started = asyncio.Event()
    cancelled = asyncio.Event()

    @function_tool
    async def slow() -> str:
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return "never"

    agent = Agent(name="test", model=fake_model, tools=[slow])
    fake_model.set_next_output([get_function_tool_call("slow")])

    result = Runner.run_streamed(agent, "hi")
    seen: List[str] = []
    async for event in result.stream_events():
        seen.append(_describe(event))
        if event.type == "run_item_stream_event" and event.name == "tool_called":
            await started.wait()
            result.cancel()

    await asyncio.wait_for(cancelled.wait(), timeout=1)
    assert "item:tool_output" not in seen
    assert result.is_complete
    assert result.final_output is None
    assert len(fake_model.requests) == 1
    assert any(item.type == "tool_call_item" for item in result.new_items)
    assert not [item for item in result.to_input_list() if item.get("type") == "function_call"]


@pytest.mark.asyncio
async def test_abandoning_the_iterator_cancels_the_run(fake_model: FakeModel) -> None:
    """Closing the event iterator early should cancel the run."""

    agent = Agent(name="test", model=fake_model, tools=[get_weather])
    fake_model.add_multiple_turn_outputs(
        [[get_function_tool_call("get_weather", {"city": "Oslo"})] for _ in range(5)]
    )

    result = Runner.run_streamed(agent, "loop", max_turns=5)
    events = result.stream_events()
    first = await events.__anext__()
    await events.aclose()

    assert first.type == "agent_updated_stream_event"
    assert result.is_complete
    with pytest.raises(asyncio.CancelledError):
        await result._run_task  # pylint: disable=protected-access
    assert len(fake_model.requests) < 5


@pytest.mark.asyncio
async def test_events_can_only_be_iterated_once(fake_model: FakeModel) -> None:
    """A second pass over the events should fail instead of waiting forever."""

    agent = Agent(name="test", model=fake_model)
    fake_model.set_next_output([get_text_message("done")])

    result = Runner.run_streamed(agent, "hi")
    async for _ in result.stream_events():
        pass

    with pytest.raises(UserError, match="only be iterated once"):
        async for _ in result.stream_events():
            pass


@pytest.mark.asyncio
async def test_abandoning_a_full_queue_cancels_the_run(
    fake_model: FakeModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A run blocked on a full event queue should be cancelled when the consumer leaves."""

    monkeypatch.setattr(settings, "STREAM_QUEUE_SIZE", 1)
    agent = Agent(name="test", model=fake_model)
    fake_model.set_next_output([get_text_message("done")])

    result = Runner.run_streamed(agent, "hi")
    events = result.stream_events()
    while True:
        event = await events.__anext__()
        if event.type == "raw_response_event" and event.data["type"] == "response.completed":
            break
    # let the run finish its turn and block on the full queue
    for _ in range(5):
        await asyncio.sleep(0)
    await events.aclose()

    assert result.is_complete
    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(result._run_task, timeout=1)  # pylint: disable=protected-access
