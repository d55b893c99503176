"""
The turn engine.

A run is driven by one control coroutine stepping through an explicit state machine:

    AWAITING_MODEL_RESPONSE -> CLASSIFYING_OUTPUT -> EXECUTING_TOOLS -> RESOLVING_HANDOFF
             ^                        |                   |                   |
             +------------------------+-------------------+-------------------+
                                      |
                                      v
                                     DONE

Each phase has one handler that does its work on the :class:`RunState` and returns the next
phase.  Streaming runs use the very same handlers; they just also push events to a queue that
:class:`RunResultStreaming` reads from.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import (
    dataclass,
    field,
)
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Union,
)

from switchboard.agent.agent import Agent
from switchboard.agent.handoffs import (
    Handoff,
    get_handoffs,
    get_transfer_message,
)
from switchboard.agent.result import (
    AgentUpdatedStreamEvent,
    RawResponsesStreamEvent,
    RunItemStreamEvent,
    RunResult,
    RunResultStreaming,
    StreamEvent,
)
from switchboard.agent.tool_executor import (
    ToolRun,
    execute_tool_calls,
    find_tool,
)
from switchboard.config import settings
from switchboard.core.exceptions import (
    AgentsError,
    ConfigurationError,
    MaxTurnsExceeded,
    ModelCallError,
    UnknownToolError,
    UserError,
)
from switchboard.core.lifecycle import (
    RunContextWrapper,
    RunHooks,
    TContext,
)
from switchboard.core.schema import (
    HandoffCallItem,
    HandoffOutputItem,
    MessageOutputItem,
    ModelResponse,
    ModelSettings,
    ReasoningItem,
    RunItem,
    TInputItem,
    ToolCallItem,
    ToolCallOutputItem,
    function_call_output,
    input_to_new_input_list,
    text_message_output,
)
from switchboard.models.interface import (
    RESPONSE_COMPLETED,
    ModelClient,
    ModelProvider,
    ModelRequest,
    response_from_completed_event,
)
from switchboard.models.provider import OpenAIProvider
from switchboard.tools import (
    ComputerTool,
    FunctionTool,
    LocalShellTool,
)

logger = logging.getLogger(__name__)

MULTIPLE_HANDOFFS_MESSAGE = "Multiple handoffs detected, ignoring this one."

# Calls executed by the provider; they are recorded but never run locally
_HOSTED_CALL_TYPES = frozenset(
    {
        "file_search_call",
        "web_search_call",
        "code_interpreter_call",
        "image_generation_call",
        "mcp_call",
        "mcp_list_tools",
        "mcp_approval_request",
    }
)

_ITEM_EVENT_NAMES: Dict[type, str] = {
    MessageOutputItem: "message_output_created",
    ReasoningItem: "reasoning_item_created",
    ToolCallItem: "tool_called",
    ToolCallOutputItem: "tool_output",
    HandoffCallItem: "handoff_requested",
    HandoffOutputItem: "handoff_occured",
}


class TurnPhase(Enum):
    """Phases of the turn engine."""

    AWAITING_MODEL_RESPONSE = "awaiting_model_response"
    CLASSIFYING_OUTPUT = "classifying_output"
    EXECUTING_TOOLS = "executing_tools"
    RESOLVING_HANDOFF = "resolving_handoff"
    DONE = "done"


class MultipleHandoffPolicy(Enum):
    """What to do when the model calls more than one hand-off in a single response."""

    FIRST_WINS = "first_wins"
    """Take the first hand-off; every other one is answered with an 'ignored' tool output."""

    ERROR = "error"
    """Fail the run with a :class:`UserError`."""


@dataclass
class RunConfig:
    """Settings that apply to the whole run, whatever agent is current."""

    model: Union[str, ModelClient, None] = None
    """Overrides the model of every agent."""

    model_provider: ModelProvider = field(default_factory=OpenAIProvider)
    """Resolves model names to clients."""

    model_settings: Optional[ModelSettings] = None
    """Non-None fields override each agent's own settings."""

    multiple_handoff_policy: MultipleHandoffPolicy = MultipleHandoffPolicy.FIRST_WINS


@dataclass
class HandoffRun:
    handoff: Handoff
    raw_item: TInputItem


@dataclass
class ProcessedResponse:
    """What the model asked for in one response, ready for execution."""

    tool_runs: List[ToolRun] = field(default_factory=list)
    handoff_runs: List[HandoffRun] = field(default_factory=list)
    messages: List[MessageOutputItem] = field(default_factory=list)


@dataclass
class RunState(Generic[TContext]):
    """Mutable state of one run; only the control coroutine touches it."""

    current_agent: Agent
    history: List[TInputItem]
    """Everything sent to the model so far plus every item generated since; append-only."""

    context_wrapper: RunContextWrapper[TContext]
    new_items: List[RunItem] = field(default_factory=list)
    raw_responses: List[ModelResponse] = field(default_factory=list)
    turn_count: int = 0
    phase: TurnPhase = TurnPhase.AWAITING_MODEL_RESPONSE
    final_output: Any = None

    handoffs: List[Handoff] = field(default_factory=list)
    """Hand-offs offered to the model in the current turn."""

    last_response: Optional[ModelResponse] = None
    processed: Optional[ProcessedResponse] = None
    started_agent: Optional[Agent] = None
    """The agent for which ``on_agent_start`` last fired."""


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
class _TurnEngine:
    """Drives one run through the phases of :class:`TurnPhase`."""

    def __init__(
        self,
        state: RunState[Any],
        hooks: RunHooks[Any],
        run_config: RunConfig,
        max_turns: int,
        streamed_result: RunResultStreaming | None = None,
    ):
        self.state = state
        self.hooks = hooks
        self.run_config = run_config
        self.max_turns = max_turns
        self._streamed_result = streamed_result
        self._handlers: Dict[TurnPhase, Callable[[], Awaitable[TurnPhase]]] = {
            TurnPhase.AWAITING_MODEL_RESPONSE: self._await_model_response,
            TurnPhase.CLASSIFYING_OUTPUT: self._classify_output,
            TurnPhase.EXECUTING_TOOLS: self._execute_tools,
            TurnPhase.RESOLVING_HANDOFF: self._resolve_handoff,
        }

    @property
    def ctx(self) -> RunContextWrapper[Any]:
        return self.state.context_wrapper

    async def run(self) -> None:
        """Step through the phases until the run is done."""
        while self.state.phase is not TurnPhase.DONE:
            handler = self._handlers[self.state.phase]
            next_phase = await handler()
            logger.debug("Phase %s -> %s", self.state.phase.name, next_phase.name)
            self.state.phase = next_phase
        await self._finish()

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #
    async def _emit(self, event: StreamEvent) -> None:
        if self._streamed_result is not None:
            await self._streamed_result._event_queue.put(event)  # pylint: disable=protected-access

    async def _add_item(self, item: RunItem) -> None:
        self.state.new_items.append(item)
        self.state.history.append(item.to_input_item())
        await self._emit(RunItemStreamEvent(name=_ITEM_EVENT_NAMES[type(item)], item=item))

    def _processed_response(self) -> ProcessedResponse:
        if self.state.processed is None:
            raise AgentsError(f"No classified model response in phase {self.state.phase.name}")
        return self.state.processed

    # ------------------------------------------------------------------ #
    # AWAITING_MODEL_RESPONSE
    # ------------------------------------------------------------------ #
    async def _await_model_response(self) -> TurnPhase:
        state = self.state
        state.turn_count += 1
        if state.turn_count > self.max_turns:
            raise MaxTurnsExceeded(self.max_turns)
        if self._streamed_result is not None:
            self._streamed_result.current_turn = state.turn_count

        agent = state.current_agent
        if state.started_agent is not agent:
            state.started_agent = agent
            await self._emit(AgentUpdatedStreamEvent(new_agent=agent))
            await self.hooks.on_agent_start(self.ctx, agent)
            if agent.hooks is not None:
                await agent.hooks.on_start(self.ctx, agent)

        state.handoffs = get_handoffs(agent)
        _check_tool_names(agent, state.handoffs)

        model = self._get_model(agent)
        model_settings = agent.model_settings.resolve(self.run_config.model_settings)
        converter = model.converter
        request = ModelRequest(
            system_instructions=await agent.get_system_prompt(self.ctx),
            input=list(state.history),
            tools=converter.convert_tools(agent.tools, state.handoffs),
            tool_choice=converter.convert_tool_choice(model_settings.tool_choice),
            response_format=converter.get_response_format(agent.output_schema),
            model_settings=model_settings,
        )

        logger.debug(
            "Turn %d: calling model for agent '%s' (%d input items)",
            state.turn_count,
            agent.name,
            len(request.input),
        )
        try:
            if self._streamed_result is not None:
                response = await self._stream_model(model, request)
            else:
                response = await model.get_response(request)
        except AgentsError:
            raise
        except Exception as exc:
            logger.error("Model call failed for agent '%s': %s", agent.name, exc)
            raise ModelCallError(f"Model call failed for agent '{agent.name}': {exc}") from exc

        self.ctx.usage.add(response.usage)
        state.raw_responses.append(response)
        state.last_response = response
        return TurnPhase.CLASSIFYING_OUTPUT

    async def _stream_model(self, model: ModelClient, request: ModelRequest) -> ModelResponse:
        response: ModelResponse | None = None
        async for event in model.stream_response(request):
            await self._emit(RawResponsesStreamEvent(data=event))
            if event.get("type") == RESPONSE_COMPLETED:
                response = response_from_completed_event(event)
        if response is None:
            raise ModelCallError("Model stream ended without a response.completed event")
        return response

    def _get_model(self, agent: Agent) -> ModelClient:
        model = self.run_config.model or agent.model
        if isinstance(model, ModelClient):
            return model
        return self.run_config.model_provider.get_model(model)

    # ------------------------------------------------------------------ #
    # CLASSIFYING_OUTPUT
    # ------------------------------------------------------------------ #
    async def _classify_output(self) -> TurnPhase:
        state = self.state
        agent = state.current_agent
        if state.last_response is None:
            raise AgentsError("No model response to classify")

        handoff_map = {item.tool_name: item for item in state.handoffs}
        function_tools = [tool for tool in agent.tools if isinstance(tool, FunctionTool)]
        processed = ProcessedResponse()

        for raw in state.last_response.to_input_items():
            item_type = raw.get("type")

            if item_type == "message":
                item: RunItem = MessageOutputItem(agent=agent, raw_item=raw)
                processed.messages.append(item)
            elif item_type == "reasoning":
                item = ReasoningItem(agent=agent, raw_item=raw)
            elif item_type == "function_call" and raw.get("name") in handoff_map:
                item = HandoffCallItem(agent=agent, raw_item=raw)
                processed.handoff_runs.append(HandoffRun(handoff_map[raw["name"]], raw))
            elif item_type == "function_call":
                tool = find_tool(function_tools, raw.get("name", ""))
                if tool is None:
                    raise UnknownToolError(raw.get("name", ""), agent.name)
                item = ToolCallItem(agent=agent, raw_item=raw)
                processed.tool_runs.append(ToolRun(tool, raw))
            elif item_type == "computer_call":
                computer = next((t for t in agent.tools if isinstance(t, ComputerTool)), None)
                if computer is None:
                    raise UnknownToolError("computer_use_preview", agent.name)
                item = ToolCallItem(agent=agent, raw_item=raw)
                processed.tool_runs.append(ToolRun(computer, raw))
            elif item_type == "local_shell_call":
                shell = next((t for t in agent.tools if isinstance(t, LocalShellTool)), None)
                if shell is None:
                    raise UnknownToolError("local_shell", agent.name)
                item = ToolCallItem(agent=agent, raw_item=raw)
                processed.tool_runs.append(ToolRun(shell, raw))
            elif item_type in _HOSTED_CALL_TYPES:
                item = ToolCallItem(agent=agent, raw_item=raw)
            else:
                logger.warning("Ignoring output item of unknown type '%s'", item_type)
                continue

            await self._add_item(item)

        if (
            len(processed.handoff_runs) > 1
            and self.run_config.multiple_handoff_policy is MultipleHandoffPolicy.ERROR
        ):
            raise UserError(
                f"Agent '{agent.name}' requested {len(processed.handoff_runs)} handoffs in one turn"
            )

        state.processed = processed
        if processed.tool_runs:
            return TurnPhase.EXECUTING_TOOLS
        if processed.handoff_runs:
            return TurnPhase.RESOLVING_HANDOFF
        if processed.messages:
            self._set_final_output(agent, processed.messages[-1])
            return TurnPhase.DONE

        logger.debug("Response from agent '%s' had no message output; running another turn", agent.name)
        return TurnPhase.AWAITING_MODEL_RESPONSE

    def _set_final_output(self, agent: Agent, message: MessageOutputItem) -> None:
        text = text_message_output(message.raw_item)
        schema = agent.output_schema
        if schema is None or schema.is_plain_text():
            final_output: Any = text
        else:
            final_output = schema.validate_json(text)

        self.state.final_output = final_output

    # ------------------------------------------------------------------ #
    # EXECUTING_TOOLS
    # ------------------------------------------------------------------ #
    async def _execute_tools(self) -> TurnPhase:
        processed = self._processed_response()

        outputs = await execute_tool_calls(
            self.state.current_agent, processed.tool_runs, self.hooks, self.ctx
        )
        for output in outputs:
            await self._add_item(output)

        if processed.handoff_runs:
            return TurnPhase.RESOLVING_HANDOFF
        return TurnPhase.AWAITING_MODEL_RESPONSE

    # ------------------------------------------------------------------ #
    # RESOLVING_HANDOFF
    # ------------------------------------------------------------------ #
    async def _resolve_handoff(self) -> TurnPhase:
        state = self.state
        processed = self._processed_response()
        if not processed.handoff_runs:
            raise AgentsError("No handoff to resolve")

        agent = state.current_agent
        chosen, *ignored = processed.handoff_runs
        for extra in ignored:
            logger.warning(
                "Agent '%s' requested multiple handoffs; ignoring '%s'", agent.name, extra.handoff.tool_name
            )
            await self._add_item(
                ToolCallOutputItem(
                    agent=agent,
                    raw_item=function_call_output(extra.raw_item["call_id"], MULTIPLE_HANDOFFS_MESSAGE),
                    output=MULTIPLE_HANDOFFS_MESSAGE,
                )
            )

        new_agent = await chosen.handoff.on_invoke_handoff(
            self.ctx, chosen.raw_item.get("arguments") or ""
        )
        logger.info("Handoff from '%s' to '%s'", agent.name, new_agent.name)

        await self.hooks.on_handoff(self.ctx, from_agent=agent, to_agent=new_agent)
        if new_agent.hooks is not None:
            await new_agent.hooks.on_handoff(self.ctx, new_agent, agent)

        await self._add_item(
            HandoffOutputItem(
                agent=agent,
                raw_item=function_call_output(
                    chosen.raw_item["call_id"], get_transfer_message(new_agent)
                ),
                source_agent=agent,
                target_agent=new_agent,
            )
        )

        state.current_agent = new_agent
        if self._streamed_result is not None:
            self._streamed_result.current_agent = new_agent
        return TurnPhase.AWAITING_MODEL_RESPONSE

    # ------------------------------------------------------------------ #
    # DONE
    # ------------------------------------------------------------------ #
    async def _finish(self) -> None:
        agent = self.state.current_agent
        logger.debug("Agent '%s' produced the final output after %d turns", agent.name, self.state.turn_count)
        await self.hooks.on_agent_end(self.ctx, agent, self.state.final_output)
        if agent.hooks is not None:
            await agent.hooks.on_end(self.ctx, agent, self.state.final_output)


def _check_tool_names(agent: Agent, handoffs: List[Handoff]) -> None:
    seen: set[str] = set()
    for name in [tool.name for tool in agent.tools] + [item.tool_name for item in handoffs]:
        if name in seen:
            raise ConfigurationError(f"Duplicate tool name '{name}' in agent '{agent.name}'")
        seen.add(name)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------
class Runner:
    """Runs an agent (and whoever it hands off to) until a final output is produced."""

    @classmethod
    async def run(
        cls,
        starting_agent: Agent,
        input: Union[str, List[TInputItem]],  # pylint: disable=redefined-builtin
        *,
        context: Any = None,
        max_turns: int | None = None,
        hooks: RunHooks[Any] | None = None,
        run_config: RunConfig | None = None,
    ) -> RunResult:
        """
        Run *starting_agent* on *input*.

        Parameters
        ----------
        starting_agent:
            The agent to start with.
        input:
            A user message, or a list of canonical input items (for example
            ``previous_result.to_input_list()`` plus a new user message).
        context:
            Any object; it is handed to tools, hand-offs, hooks and dynamic instructions wrapped
            in a :class:`RunContextWrapper`.
        max_turns:
            Maximum number of model calls; defaults to ``settings.MAX_TURNS``.
        hooks:
            Run-level lifecycle callbacks.
        run_config:
            Run-wide settings.

        Raises
        ------
        MaxTurnsExceeded
            If no final output is produced within *max_turns* model calls.
        ModelCallError
            If the model client fails.
        UserError
            For configuration and usage errors.

        Errors raised by tools, hand-off callbacks and hooks propagate unchanged.
        """
        engine = _build_engine(starting_agent, input, context, max_turns, hooks, run_config)
        logger.info("Starting run with agent '%s'", starting_agent.name)
        await engine.run()

        state = engine.state
        return RunResult(
            input=_copy_input(input),
            new_items=state.new_items,
            raw_responses=state.raw_responses,
            final_output=state.final_output,
            context_wrapper=state.context_wrapper,
            last_agent=state.current_agent,
        )

    @classmethod
    def run_sync(
        cls,
        starting_agent: Agent,
        input: Union[str, List[TInputItem]],  # pylint: disable=redefined-builtin
        *,
        context: Any = None,
        max_turns: int | None = None,
        hooks: RunHooks[Any] | None = None,
        run_config: RunConfig | None = None,
    ) -> RunResult:
        """Blocking wrapper around :meth:`run`; must not be called from a running event loop."""
        return asyncio.run(
            cls.run(
                starting_agent,
                input,
                context=context,
                max_turns=max_turns,
                hooks=hooks,
                run_config=run_config,
            )
        )

    @classmethod
    def run_streamed(
        cls,
        starting_agent: Agent,
        input: Union[str, List[TInputItem]],  # pylint: disable=redefined-builtin
        *,
        context: Any = None,
        max_turns: int | None = None,
        hooks: RunHooks[Any] | None = None,
        run_config: RunConfig | None = None,
    ) -> RunResultStreaming:
        """
        Start *starting_agent* on *input* in streaming mode and return immediately.

        Must be called from within a running event loop.  Consume
        :meth:`RunResultStreaming.stream_events` to follow the run; errors surface there.
        """
        engine = _build_engine(starting_agent, input, context, max_turns, hooks, run_config)
        state = engine.state
        result = RunResultStreaming(
            input=_copy_input(input),
            new_items=state.new_items,
            raw_responses=state.raw_responses,
            final_output=None,
            context_wrapper=state.context_wrapper,
            current_agent=starting_agent,
            max_turns=engine.max_turns,
            _event_queue=asyncio.Queue(maxsize=settings.STREAM_QUEUE_SIZE),
        )
        engine._streamed_result = result  # pylint: disable=protected-access

        logger.info("Starting streamed run with agent '%s'", starting_agent.name)
        result._run_task = asyncio.create_task(  # pylint: disable=protected-access
            cls._run_streamed_impl(engine, result)
        )
        return result

    @staticmethod
    async def _run_streamed_impl(engine: _TurnEngine, result: RunResultStreaming) -> None:
        try:
            await engine.run()
            result.final_output = engine.state.final_output
        except asyncio.CancelledError:
            logger.debug("Streamed run cancelled")
            raise
        except Exception as exc:  # noqa: BLE001
            # re-raised to the consumer from stream_events()
            logger.debug("Streamed run failed: %r", exc)
            result._stored_exception = exc  # pylint: disable=protected-access
        await result._mark_complete()  # pylint: disable=protected-access


def _copy_input(value: Union[str, List[TInputItem]]) -> Union[str, List[TInputItem]]:
    return value if isinstance(value, str) else input_to_new_input_list(value)


def _build_engine(
    starting_agent: Agent,
    input: Union[str, List[TInputItem]],  # pylint: disable=redefined-builtin
    context: Any,
    max_turns: int | None,
    hooks: RunHooks[Any] | None,
    run_config: RunConfig | None,
) -> _TurnEngine:
    state: RunState[Any] = RunState(
        current_agent=starting_agent,
        history=input_to_new_input_list(input),
        context_wrapper=RunContextWrapper(context=context),
    )
    return _TurnEngine(
        state=state,
        hooks=hooks or RunHooks(),
        run_config=run_config or RunConfig(),
        max_turns=max_turns if max_turns is not None else settings.MAX_TURNS,
    )
