"""Interactive chat shell that streams a conversation with an agent."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import (
    List,
    Tuple,
)

from switchboard.agent.agent import Agent
from switchboard.agent.result import RunResultStreaming
from switchboard.agent.runner import (
    RunConfig,
    Runner,
)
from switchboard.common import (
    AnsiColors,
    colored_print,
)
from switchboard.core.exceptions import AgentsError
from switchboard.core.schema import TInputItem
from switchboard.models.provider import OpenAIProvider
from switchboard.tools import function_tool

logger = logging.getLogger(__name__)


@function_tool
def current_time() -> str:
    """Return the current local date and time in ISO 8601 format."""
    return datetime.now().isoformat(timespec="seconds")


def build_default_agent(model: str | None = None) -> Agent:
    """The agent the shell talks to when none is given."""
    return Agent(
        name="Assistant",
        instructions="You are a helpful assistant. Keep your answers short.",
        model=model,
        tools=[current_time],
    )


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


async def stream_turn(
    agent: Agent, input_items: List[TInputItem], run_config: RunConfig
) -> RunResultStreaming:
    """Run one user turn, printing text deltas, tool activity and hand-offs as they happen."""
    result = Runner.run_streamed(agent, input_items, run_config=run_config)
    colored_print(f"\n🤖 {agent.name}: ", AnsiColors.YELLOW, end="", flush=True)

    async for event in result.stream_events():
        if event.type == "raw_response_event":
            if event.data.get("type") == "response.output_text.delta":
                print(event.data.get("delta", ""), end="", flush=True)
        elif event.type == "run_item_stream_event":
            raw = event.item.raw_item
            if event.name == "tool_called":
                colored_print(f"\n[tool] {raw.get('name', raw.get('type'))}", AnsiColors.GREEN)
            elif event.name == "tool_output":
                colored_print(f"[tool output] {event.item.output}", AnsiColors.GREEN)  # type: ignore[union-attr]
            elif event.name == "handoff_occured":
                target = event.item.target_agent  # type: ignore[union-attr]
                colored_print(f"\n[handoff] -> {target.name}", AnsiColors.BLUE)
        elif event.type == "agent_updated_stream_event":
            logger.debug("Current agent: %s", event.new_agent.name)

    print()
    return result


async def chat(agent: Agent, run_config: RunConfig) -> None:
    """Read-eval loop; each turn continues from the previous result and its last agent."""
    colored_print("\n🔮 Switchboard shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN)
    input_items: List[TInputItem] = []

    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        turn_input = input_items + [{"type": "message", "role": "user", "content": user_msg}]
        try:
            result = await stream_turn(agent, turn_input, run_config)
        except AgentsError as exc:
            logger.exception("Run failed")
            colored_print(f"⚠️ {exc}", AnsiColors.RED)
            continue

        input_items = result.to_input_list()
        if result.current_agent is not None:
            agent = result.current_agent


def run_cli(model: str | None = None, dialect: str | None = None) -> None:
    """Run the chat shell against the default agent."""
    run_config = RunConfig(model_provider=OpenAIProvider(dialect=dialect))
    asyncio.run(chat(build_default_agent(model), run_config))


if __name__ == "__main__":
    run_cli()
