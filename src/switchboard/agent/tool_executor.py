"""Dispatches the tool calls of one turn and turns their results into output items."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    List,
    Sequence,
)

from pydantic import BaseModel

from switchboard.common import maybe_await
from switchboard.core.exceptions import UserError
from switchboard.core.lifecycle import (
    RunContextWrapper,
    RunHooks,
)
from switchboard.core.schema import (
    TInputItem,
    ToolCallOutputItem,
    function_call_output,
)
from switchboard.tools import (
    ComputerTool,
    FunctionTool,
    LocalShellCommandRequest,
    LocalShellTool,
    Tool,
)
from switchboard.tools.computer import Computer

if TYPE_CHECKING:
    from switchboard.agent.agent import Agent

logger = logging.getLogger(__name__)


@dataclass
class ToolRun:
    """A tool call from the model paired with the local tool that executes it."""

    tool: Tool
    raw_item: TInputItem


def find_tool(tools: Sequence[Tool], name: str) -> Tool | None:
    """Return the first tool in *tools* called *name*, if any."""
    return next((tool for tool in tools if tool.name == name), None)


def stringify_tool_result(result: Any) -> str:
    """Tool outputs are sent to the model as text; pydantic models are dumped as JSON."""
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return str(result)


# ---------------------------------------------------------------------------
# Single invocations
# ---------------------------------------------------------------------------
async def execute_function_tool(
    tool: FunctionTool, raw_item: TInputItem, ctx: RunContextWrapper[Any]
) -> Any:
    """Invoke *tool* with the arguments of a ``function_call`` item."""
    logger.debug("Executing tool '%s' (call_id=%s)", tool.name, raw_item.get("call_id"))
    return await tool.on_invoke_tool(ctx, raw_item.get("arguments") or "")


async def execute_computer_action(computer: Computer, raw_item: TInputItem) -> str:
    """
    Perform the action of a ``computer_call`` item and capture the screen afterwards.

    Returns
    -------
    str
        The screenshot as a ``data:`` URL.

    Raises
    ------
    UserError
        If the action type is unknown.
    """
    action = raw_item.get("action") or {}
    action_type = action.get("type")
    logger.debug("Computer action '%s' (call_id=%s)", action_type, raw_item.get("call_id"))

    if action_type == "click":
        await computer.click(action["x"], action["y"], action.get("button", "left"))
    elif action_type == "double_click":
        await computer.double_click(action["x"], action["y"])
    elif action_type == "drag":
        await computer.drag([(point["x"], point["y"]) for point in action["path"]])
    elif action_type == "keypress":
        await computer.keypress(action["keys"])
    elif action_type == "move":
        await computer.move(action["x"], action["y"])
    elif action_type == "scroll":
        await computer.scroll(action["x"], action["y"], action["scroll_x"], action["scroll_y"])
    elif action_type == "type":
        await computer.type(action["text"])
    elif action_type == "wait":
        await computer.wait()
    elif action_type != "screenshot":
        raise UserError(f"Unknown computer action '{action_type}'")

    screenshot = await computer.screenshot()
    return f"data:image/png;base64,{screenshot}"


async def execute_local_shell(
    tool: LocalShellTool, raw_item: TInputItem, ctx: RunContextWrapper[Any]
) -> str:
    """Hand a ``local_shell_call`` item to the tool's executor and return its output."""
    logger.debug("Executing local shell call (call_id=%s)", raw_item.get("call_id"))
    request = LocalShellCommandRequest(ctx_wrapper=ctx, data=raw_item)
    return str(await maybe_await(tool.executor(request)))


async def _invoke(tool: Tool, raw_item: TInputItem, ctx: RunContextWrapper[Any]) -> Any:
    if isinstance(tool, FunctionTool):
        return await execute_function_tool(tool, raw_item, ctx)
    if isinstance(tool, ComputerTool):
        return await execute_computer_action(tool.computer, raw_item)
    if isinstance(tool, LocalShellTool):
        return await execute_local_shell(tool, raw_item, ctx)
    raise UserError(f"Tool '{tool.name}' is hosted and cannot be executed locally")


def _output_item(tool: Tool, raw_item: TInputItem, result: Any) -> TInputItem:
    if isinstance(tool, ComputerTool):
        return {
            "type": "computer_call_output",
            "call_id": raw_item["call_id"],
            "output": {"type": "computer_screenshot", "image_url": result},
        }
    if isinstance(tool, LocalShellTool):
        return {"type": "local_shell_call_output", "id": raw_item["call_id"], "output": result}
    return function_call_output(raw_item["call_id"], stringify_tool_result(result))


# ---------------------------------------------------------------------------
# One turn
# ---------------------------------------------------------------------------
async def _run_one(
    agent: Agent, run: ToolRun, hooks: RunHooks[Any], ctx: RunContextWrapper[Any]
) -> ToolCallOutputItem:
    await hooks.on_tool_start(ctx, agent, run.tool)
    if agent.hooks is not None:
        await agent.hooks.on_tool_start(ctx, agent, run.tool)

    result = await _invoke(run.tool, run.raw_item, ctx)

    await hooks.on_tool_end(ctx, agent, run.tool, result)
    if agent.hooks is not None:
        await agent.hooks.on_tool_end(ctx, agent, run.tool, result)

    return ToolCallOutputItem(
        agent=agent, raw_item=_output_item(run.tool, run.raw_item, result), output=result
    )


async def execute_tool_calls(
    agent: Agent,
    runs: Sequence[ToolRun],
    hooks: RunHooks[Any],
    ctx: RunContextWrapper[Any],
) -> List[ToolCallOutputItem]:
    """
    Run every tool call of one turn concurrently.

    Each call gets its own task; the returned items follow the order of *runs*.  When a call
    fails, the tasks still running are cancelled and awaited, then the original exception is
    re-raised as-is.
    """
    if not runs:
        return []

    logger.info("Running %d tool calls: %s", len(runs), [run.tool.name for run in runs])
    tasks = [asyncio.create_task(_run_one(agent, run, hooks, ctx)) for run in runs]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
