"""Run context and lifecycle hooks."""

from __future__ import annotations

from dataclasses import (
    dataclass,
    field,
)
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    TypeVar,
)

from switchboard.core.schema import Usage

if TYPE_CHECKING:
    from switchboard.agent.agent import Agent
    from switchboard.tools import Tool

TContext = TypeVar("TContext")


@dataclass
class RunContextWrapper(Generic[TContext]):
    """
    Wraps the caller-supplied context object passed to tools, hand-offs, hooks and dynamic
    instructions.  The engine never looks inside ``context``; it only adds usage accounting.
    """

    context: TContext
    usage: Usage = field(default_factory=Usage)


class RunHooks(Generic[TContext]):
    """
    Receives callbacks on lifecycle events of a whole run.  Subclass and override what you need;
    every default is a no-op.  An exception raised from a hook aborts the run.
    """

    async def on_agent_start(self, context: RunContextWrapper[TContext], agent: Agent) -> None:
        """Called before the agent is invoked, each time the current agent changes."""

    async def on_agent_end(
        self, context: RunContextWrapper[TContext], agent: Agent, output: Any
    ) -> None:
        """Called when the agent produces the final output."""

    async def on_handoff(
        self, context: RunContextWrapper[TContext], from_agent: Agent, to_agent: Agent
    ) -> None:
        """Called when a hand-off occurs."""

    async def on_tool_start(
        self, context: RunContextWrapper[TContext], agent: Agent, tool: Tool
    ) -> None:
        """Called before a tool is invoked."""

    async def on_tool_end(
        self, context: RunContextWrapper[TContext], agent: Agent, tool: Tool, result: Any
    ) -> None:
        """Called after a tool is invoked."""


class AgentHooks(Generic[TContext]):
    """
    Receives callbacks on lifecycle events of one agent; set it on ``Agent.hooks``.  Agent hooks
    always fire after the matching run-level hook.
    """

    async def on_start(self, context: RunContextWrapper[TContext], agent: Agent) -> None:
        """Called each time the running agent is changed to this agent."""

    async def on_end(self, context: RunContextWrapper[TContext], agent: Agent, output: Any) -> None:
        """Called when this agent produces the final output."""

    async def on_handoff(
        self, context: RunContextWrapper[TContext], agent: Agent, source: Agent
    ) -> None:
        """Called when this agent is being handed off to; *source* is the previous agent."""

    async def on_tool_start(
        self, context: RunContextWrapper[TContext], agent: Agent, tool: Tool
    ) -> None:
        """Called before a tool is invoked."""

    async def on_tool_end(
        self, context: RunContextWrapper[TContext], agent: Agent, tool: Tool, result: Any
    ) -> None:
        """Called after a tool is invoked."""
