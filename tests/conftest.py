"""Shared fixtures."""

from typing import (
    Any,
    List,
    Tuple,
)

import pytest
from fake_model import FakeModel

from switchboard.agent.agent import Agent
from switchboard.core.lifecycle import (
    AgentHooks,
    RunContextWrapper,
    RunHooks,
)
from switchboard.tools import Tool


@pytest.fixture
def fake_model() -> FakeModel:
    return FakeModel()


class RecordingRunHooks(RunHooks[Any]):
    """Appends ``(event, *agent names)`` to a shared list."""

    def __init__(self, events: List[Tuple[str, ...]]):
        self.events = events

    async def on_agent_start(self, context: RunContextWrapper[Any], agent: Agent) -> None:
        self.events.append(("run.on_agent_start", agent.name))

    async def on_agent_end(self, context: RunContextWrapper[Any], agent: Agent, output: Any) -> None:
        self.events.append(("run.on_agent_end", agent.name))

    async def on_handoff(
        self, context: RunContextWrapper[Any], from_agent: Agent, to_agent: Agent
    ) -> None:
        self.events.append(("run.on_handoff", from_agent.name, to_agent.name))

    async def on_tool_start(self, context: RunContextWrapper[Any], agent: Agent, tool: Tool) -> None:
        self.events.append(("run.on_tool_start", tool.name))

    async def on_tool_end(
        self, context: RunContextWrapper[Any], agent: Agent, tool: Tool, result: Any
    ) -> None:
        self.events.append(("run.on_tool_end", tool.name))


class RecordingAgentHooks(AgentHooks[Any]):
    """Agent-level counterpart of :class:`RecordingRunHooks`."""

    def __init__(self, events: List[Tuple[str, ...]]):
        self.events = events

    async def on_start(self, context: RunContextWrapper[Any], agent: Agent) -> None:
        self.events.append(("agent.on_start", agent.name))

    async def on_end(self, context: RunContextWrapper[Any], agent: Agent, output: Any) -> None:
        self.events.append(("agent.on_end", agent.name))

    async def on_handoff(self, context: RunContextWrapper[Any], agent: Agent, source: Agent) -> None:
        self.events.append(("agent.on_handoff", agent.name, source.name))

    async def on_tool_start(self, context: RunContextWrapper[Any], agent: Agent, tool: Tool) -> None:
        self.events.append(("agent.on_tool_start", tool.name))

    async def on_tool_end(
        self, context: RunContextWrapper[Any], agent: Agent, tool: Tool, result: Any
    ) -> None:
        self.events.append(("agent.on_tool_end", tool.name))


@pytest.fixture
def events() -> List[Tuple[str, ...]]:
    return []


@pytest.fixture
def run_hooks(events: List[Tuple[str, ...]]) -> RecordingRunHooks:
    return RecordingRunHooks(events)


@pytest.fixture
def agent_hooks(events: List[Tuple[str, ...]]) -> RecordingAgentHooks:
    return RecordingAgentHooks(events)
