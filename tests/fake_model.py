"""A scripted model client and item builders shared by the tests."""

from __future__ import annotations

import json
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Tuple,
    Union,
)

from switchboard.agent.agent import Agent
from switchboard.agent.handoffs import default_handoff_tool_name
from switchboard.core.schema import (
    ModelResponse,
    TInputItem,
    Usage,
)
from switchboard.models.converter import WireConverter
from switchboard.models.interface import (
    RESPONSE_COMPLETED,
    ModelClient,
    ModelRequest,
)
from switchboard.models.responses_converter import ResponsesConverter
from switchboard.tools.computer import Computer

TurnOutput = Union[List[TInputItem], Exception]


class FakeModel(ModelClient):
    """Returns pre-recorded outputs, one per call, and records every request it receives."""

    def __init__(self, converter: WireConverter | None = None):
        self.converter = converter or ResponsesConverter()
        self.turn_outputs: List[TurnOutput] = []
        self.requests: List[ModelRequest] = []

    def set_next_output(self, output: TurnOutput) -> None:
        self.turn_outputs.append(output)

    def add_multiple_turn_outputs(self, outputs: List[TurnOutput]) -> None:
        self.turn_outputs.extend(outputs)

    def _next_output(self, request: ModelRequest) -> List[TInputItem]:
        self.requests.append(request)
        output = self.turn_outputs.pop(0) if self.turn_outputs else []
        if isinstance(output, Exception):
            raise output
        return output

    async def get_response(self, request: ModelRequest) -> ModelResponse:
        output = self._next_output(request)
        return ModelResponse(
            output=output,
            usage=Usage(requests=1, input_tokens=10, output_tokens=5, total_tokens=15),
            response_id="resp_fake",
        )

    async def stream_response(self, request: ModelRequest) -> AsyncIterator[Dict[str, Any]]:
        output = self._next_output(request)
        yield {"type": "response.created"}
        for index, item in enumerate(output):
            if item.get("type") == "message":
                for part in item["content"]:
                    yield {
                        "type": "response.output_text.delta",
                        "output_index": index,
                        "delta": part.get("text", ""),
                    }
            yield {"type": "response.output_item.done", "output_index": index, "item": item}
        yield {
            "type": RESPONSE_COMPLETED,
            "response": {
                "id": "resp_fake",
                "output": output,
                "usage": {"input_tokens": 10, "output_tokens": 5, "total_tokens": 15},
            },
        }


# ---------------------------------------------------------------------------
# Item builders
# ---------------------------------------------------------------------------
def get_text_message(text: str) -> TInputItem:
    return {
        "type": "message",
        "id": "msg_1",
        "role": "assistant",
        "status": "completed",
        "content": [{"type": "output_text", "text": text, "annotations": []}],
    }


def get_function_tool_call(
    name: str, arguments: str | Dict[str, Any] = "{}", call_id: str | None = None
) -> TInputItem:
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {
        "type": "function_call",
        "id": "fc_1",
        "call_id": call_id or f"call_{name}",
        "name": name,
        "arguments": arguments,
    }


def get_handoff_tool_call(
    agent: Agent, arguments: str = "{}", call_id: str | None = None
) -> TInputItem:
    return get_function_tool_call(default_handoff_tool_name(agent), arguments, call_id)


# ---------------------------------------------------------------------------
# Computer
# ---------------------------------------------------------------------------
class FakeComputer(Computer):
    """Records every action it is asked to perform."""

    def __init__(self) -> None:
        self.actions: List[Tuple[Any, ...]] = []

    @property
    def environment(self):
        return "browser"

    @property
    def dimensions(self):
        return (1024, 768)

    async def screenshot(self) -> str:
        return "c2NyZWVu"

    async def click(self, x, y, button) -> None:
        self.actions.append(("click", x, y, button))

    async def double_click(self, x, y) -> None:
        self.actions.append(("double_click", x, y))

    async def scroll(self, x, y, scroll_x, scroll_y) -> None:
        self.actions.append(("scroll", x, y, scroll_x, scroll_y))

    async def type(self, text) -> None:
        self.actions.append(("type", text))

    async def wait(self) -> None:
        self.actions.append(("wait",))

    async def move(self, x, y) -> None:
        self.actions.append(("move", x, y))

    async def keypress(self, keys) -> None:
        self.actions.append(("keypress", keys))

    async def drag(self, path) -> None:
        self.actions.append(("drag", path))

