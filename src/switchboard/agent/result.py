"""Run results and the events of a streamed run."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Dict,
    List,
    Literal,
    Optional,
    Type,
    TypeVar,
    Union,
)

from switchboard.core.exceptions import UserError
from switchboard.core.lifecycle import RunContextWrapper
from switchboard.core.schema import (
    ModelResponse,
    RunItem,
    TInputItem,
    input_to_new_input_list,
)

if TYPE_CHECKING:
    from switchboard.agent.agent import Agent

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Calls executed locally, each answered by an output item with the same call id
_LOCAL_CALL_TYPES = frozenset({"function_call", "computer_call", "local_shell_call"})
_CALL_OUTPUT_TYPES = frozenset(
    {"function_call_output", "computer_call_output", "local_shell_call_output"}
)


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------
@dataclass
class RawResponsesStreamEvent:
    """A raw event from the model stream, passed through unchanged."""

    data: Dict[str, Any]
    type: Literal["raw_response_event"] = "raw_response_event"


RunItemEventName = Literal[
    "message_output_created",
    "reasoning_item_created",
    "tool_called",
    "tool_output",
    "handoff_requested",
    "handoff_occured",
]


@dataclass
class RunItemStreamEvent:
    """A run item was added; emitted after the raw events of the turn that produced it."""

    name: RunItemEventName
    item: RunItem
    type: Literal["run_item_stream_event"] = "run_item_stream_event"


@dataclass
class AgentUpdatedStreamEvent:
    """The current agent changed: at the start of a run and after each hand-off."""

    new_agent: Agent
    type: Literal["agent_updated_stream_event"] = "agent_updated_stream_event"


StreamEvent = Union[RawResponsesStreamEvent, RunItemStreamEvent, AgentUpdatedStreamEvent]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass
class RunResultBase:
    input: Union[str, List[TInputItem]]
    """The original input of the run."""

    new_items: List[RunItem]
    """Items generated during the run, in order."""

    raw_responses: List[ModelResponse]

    final_output: Any
    """The final output of the last agent; ``None`` until a streamed run completes."""

    context_wrapper: RunContextWrapper[Any]

    def final_output_as(self, cls: Type[T], raise_if_incorrect_type: bool = False) -> T:
        """Return the final output cast to *cls*, optionally checking its type."""
        if raise_if_incorrect_type and not isinstance(self.final_output, cls):
            raise TypeError(f"Final output is not of type {cls.__name__}")
        return self.final_output  # type: ignore[return-value]

    def to_input_list(self) -> List[TInputItem]:
        """
        Original input plus the generated items, ready to be used as the next run's input.

        Local tool calls without an output (left behind by a cancelled run) are omitted, since the
        model API rejects a history with unanswered calls.
        """
        generated = [item.to_input_item() for item in self.new_items]
        answered = {
            raw.get("call_id") or raw.get("id")
            for raw in generated
            if raw.get("type") in _CALL_OUTPUT_TYPES
        }

        items = input_to_new_input_list(self.input)
        items.extend(
            raw
            for raw in generated
            if raw.get("type") not in _LOCAL_CALL_TYPES or raw.get("call_id") in answered
        )
        return items


@dataclass
class RunResult(RunResultBase):
    last_agent: Optional[Agent] = None
    """The agent that produced the final output."""

    def __str__(self) -> str:
        return (
            f"RunResult(last_agent={self.last_agent!r}, items={len(self.new_items)}, "
            f"final_output={self.final_output!r})"
        )


_STREAM_COMPLETE = object()


@dataclass
class RunResultStreaming(RunResultBase):
    """
    Result of :meth:`Runner.run_streamed`, filled in while the run progresses.

    Iterate :meth:`stream_events` to follow the run.  Fields such as ``new_items`` and
    ``current_agent`` reflect the progress so far; ``final_output`` is set once
    ``is_complete`` is true.
    """

    current_agent: Optional[Agent] = None
    current_turn: int = 0
    max_turns: int = 0
    is_complete: bool = False

    _event_queue: asyncio.Queue = field(default_factory=asyncio.Queue, repr=False)
    _run_task: Optional[asyncio.Task] = field(default=None, repr=False)
    _stored_exception: Optional[BaseException] = field(default=None, repr=False)
    _stream_consumed: bool = field(default=False, repr=False)

    @property
    def last_agent(self) -> Optional[Agent]:
        return self.current_agent

    async def stream_events(self) -> AsyncIterator[StreamEvent]:
        """
        Yield the run's events in order.  Single pass.

        An error raised by the run is re-raised here once every event queued before it has been
        yielded.  Leaving the loop early cancels the run.

        Raises
        ------
        UserError
            If the events are iterated a second time.
        """
        if self._stream_consumed:
            raise UserError("stream_events() can only be iterated once")
        self._stream_consumed = True

        try:
            while True:
                event = await self._event_queue.get()
                if event is _STREAM_COMPLETE:
                    break
                yield event
        finally:
            if self._run_task is not None and not self._run_task.done():
                self.cancel()

        if self._stored_exception is not None:
            raise self._stored_exception

    def cancel(self) -> None:
        """
        Stop the run; results of in-flight tool calls are discarded.

        Tool calls left without an output are dropped from :meth:`to_input_list`, so the list can
        still be used as the input of a new run.
        """
        if self._run_task is not None and not self._run_task.done():
            logger.debug("Cancelling streamed run")
            self._run_task.cancel()
        self.is_complete = True

        # wake up a consumer still waiting on the queue
        while not self._event_queue.empty():
            self._event_queue.get_nowait()
        self._event_queue.put_nowait(_STREAM_COMPLETE)

    async def _mark_complete(self) -> None:
        await self._event_queue.put(_STREAM_COMPLETE)
        self.is_complete = True

    def __str__(self) -> str:
        return (
            f"RunResultStreaming(current_agent={self.current_agent!r}, "
            f"current_turn={self.current_turn}, is_complete={self.is_complete})"
        )
