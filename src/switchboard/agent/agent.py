"""The agent configuration entity."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Sequence,
)

from switchboard.common import (
    MaybeAwaitable,
    maybe_await,
)
from switchboard.core.lifecycle import (
    AgentHooks,
    RunContextWrapper,
)
from switchboard.core.output_schema import OutputSchema
from switchboard.core.schema import ModelSettings

if TYPE_CHECKING:
    from switchboard.agent.handoffs import Handoff
    from switchboard.models.interface import ModelClient
    from switchboard.tools import Tool

logger = logging.getLogger(__name__)

InstructionsFunction = Callable[[RunContextWrapper[Any], "Agent"], MaybeAwaitable[str]]


@dataclass(frozen=True, eq=False, repr=False)
class Agent:
    """
    A named bundle of instructions, model, tools, hand-off targets and output schema.

    Agents are immutable once built and compare by identity.  Use :meth:`clone` to derive a
    variant.
    """

    name: str

    instructions: str | InstructionsFunction | None = None
    """System prompt, or a (sync or async) function ``(ctx, agent) -> str`` resolved per turn."""

    handoff_description: str | None = None
    """Appended to the default hand-off tool description when other agents hand off to this one."""

    model: str | ModelClient | None = None
    """Model name resolved through the run's provider, or a ready model client."""

    model_settings: ModelSettings = field(default_factory=ModelSettings)

    tools: Sequence[Tool] = ()

    agent_handoffs: Sequence[Agent] = ()
    """Targets for implicit hand-offs, each exposed with the default tool name and description."""

    handoffs: Sequence[Handoff] = ()
    """Explicit hand-offs; they are listed to the model before the implicit ones."""

    output_schema: OutputSchema | None = None
    """Constraint for the final output; ``None`` means free text."""

    hooks: AgentHooks[Any] | None = None

    def __post_init__(self) -> None:
        # freeze the sequences
        object.__setattr__(self, "tools", tuple(self.tools))
        object.__setattr__(self, "agent_handoffs", tuple(self.agent_handoffs))
        object.__setattr__(self, "handoffs", tuple(self.handoffs))

    def clone(self, **kwargs: Any) -> Agent:
        """Return a new agent with the given fields replaced."""
        return dataclasses.replace(self, **kwargs)

    async def get_system_prompt(self, ctx: RunContextWrapper[Any]) -> str | None:
        """Resolve the instructions for the current turn."""
        if self.instructions is None or isinstance(self.instructions, str):
            return self.instructions
        if callable(self.instructions):
            return await maybe_await(self.instructions(ctx, self))
        logger.error("Instructions must be a string or a function, got %r", self.instructions)
        return None

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r})"
