"""
Converter for the Chat-Completions dialect.

Chat Completions is a strict subset of what the engine can express: only function tools (and
hand-offs, which are function tools to the model) can be declared, and only messages, function
calls and function outputs can be carried in the history.  Anything else fails with
:class:`UnsupportedInDialectError` instead of being dropped.
"""

from __future__ import annotations

import json
import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Optional,
    Sequence,
)

from switchboard.core.exceptions import UnsupportedInDialectError
from switchboard.core.output_schema import OutputSchema
from switchboard.core.schema import TInputItem
from switchboard.models.converter import (
    CHAT_COMPLETIONS,
    FINAL_OUTPUT_NAME,
    HOSTED_TOOL_CHOICES,
    TOOL_CHOICE_MODES,
    ConvertedTools,
    WireConverter,
    empty_handoff_schema,
)
from switchboard.tools import (
    FunctionTool,
    Tool,
)

if TYPE_CHECKING:
    from switchboard.agent.handoffs import Handoff

logger = logging.getLogger(__name__)

FAKE_RESPONSES_ID = "__fake_id__"
"""Placeholder id for canonical items synthesised from a chat completion."""

_TEXT_PARTS = {"output_text", "input_text", "text"}


class ChatCompletionsConverter(WireConverter):
    """Maps canonical configuration and items onto Chat-Completions messages and tools."""

    dialect = CHAT_COMPLETIONS

    # ------------------------------------------------------------------ #
    # Tools
    # ------------------------------------------------------------------ #
    def convert_tools(
        self, tools: Sequence[Tool], handoffs: Sequence[Handoff]
    ) -> ConvertedTools:
        self.check_single_computer(tools)

        converted = ConvertedTools()
        for tool in tools:
            if not self.supports(tool) or not isinstance(tool, FunctionTool):
                raise UnsupportedInDialectError(
                    f"{type(tool).__name__} ('{tool.name}')", self.dialect
                )
            converted.tools.append(
                self._function(
                    tool.name, tool.description, tool.params_json_schema, tool.strict_json_schema
                )
            )

        for item in handoffs:
            converted.tools.append(
                self._function(
                    item.tool_name,
                    item.tool_description,
                    item.input_json_schema or empty_handoff_schema(),
                    item.strict_json_schema,
                )
            )
        return converted

    @staticmethod
    def _function(
        name: str, description: str, parameters: Dict[str, Any], strict: bool
    ) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": name,
                "description": description,
                "parameters": parameters,
                "strict": strict,
            },
        }

    # ------------------------------------------------------------------ #
    # Tool choice / response format
    # ------------------------------------------------------------------ #
    def convert_tool_choice(self, tool_choice: Optional[str]) -> Any:
        if not tool_choice:
            return None
        if tool_choice in TOOL_CHOICE_MODES:
            return tool_choice
        if tool_choice in HOSTED_TOOL_CHOICES:
            raise UnsupportedInDialectError(f"Hosted tool choice '{tool_choice}'", self.dialect)
        return {"type": "function", "function": {"name": tool_choice}}

    def get_response_format(self, output_schema: Optional[OutputSchema]) -> Any:
        if output_schema is None or output_schema.is_plain_text():
            return None
        return {
            "type": "json_schema",
            "json_schema": {
                "name": FINAL_OUTPUT_NAME,
                "strict": output_schema.is_strict_json_schema(),
                "schema": output_schema.json_schema(),
            },
        }

    # ------------------------------------------------------------------ #
    # Canonical items -> messages
    # ------------------------------------------------------------------ #
    def items_to_wire(self, items: Sequence[TInputItem]) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        assistant: Dict[str, Any] | None = None

        def flush() -> None:
            nonlocal assistant
            if assistant is not None:
                messages.append(assistant)
                assistant = None

        for item in items:
            item_type = item.get("type", "message")
            role = item.get("role")

            if item_type == "message" and role in ("user", "system", "developer"):
                flush()
                messages.append({"role": role, "content": self._input_content(item["content"])})

            elif item_type == "message" and role == "assistant":
                flush()
                assistant = {"role": "assistant"}
                self._fill_assistant_content(assistant, item.get("content"))

            elif item_type == "function_call":
                # consecutive calls belong to the same assistant turn
                if assistant is None:
                    assistant = {"role": "assistant"}
                assistant.setdefault("tool_calls", []).append(
                    {
                        "id": item["call_id"],
                        "type": "function",
                        "function": {
                            "name": item["name"],
                            "arguments": item.get("arguments") or "{}",
                        },
                    }
                )

            elif item_type == "function_call_output":
                flush()
                output = item.get("output")
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": item["call_id"],
                        "content": output if isinstance(output, str) else json.dumps(output),
                    }
                )

            elif item_type == "reasoning":
                # Chat Completions has no way to send reasoning back to the model
                logger.debug("Skipping reasoning item in chat completions input")

            else:
                raise UnsupportedInDialectError(f"Input item of type '{item_type}'", self.dialect)

        flush()
        return messages

    def _input_content(self, content: Any) -> Any:
        if isinstance(content, str):
            return content

        parts: List[Dict[str, Any]] = []
        for part in content:
            part_type = part.get("type")
            if part_type in _TEXT_PARTS:
                parts.append({"type": "text", "text": part["text"]})
            elif part_type == "input_image" and part.get("image_url"):
                parts.append(
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": part["image_url"],
                            "detail": part.get("detail") or "auto",
                        },
                    }
                )
            elif part_type == "input_file":
                file_param = {
                    key: part[key] for key in ("file_data", "file_id", "filename") if key in part
                }
                parts.append({"type": "file", "file": file_param})
            else:
                raise UnsupportedInDialectError(f"Content part of type '{part_type}'", self.dialect)
        return parts

    def _fill_assistant_content(self, message: Dict[str, Any], content: Any) -> None:
        if content is None:
            return
        if isinstance(content, str):
            message["content"] = content
            return

        texts: List[str] = []
        refusals: List[str] = []
        for part in content:
            part_type = part.get("type")
            if part_type in _TEXT_PARTS:
                texts.append(part["text"])
            elif part_type == "refusal":
                refusals.append(part["refusal"])
            else:
                raise UnsupportedInDialectError(
                    f"Assistant content part of type '{part_type}'", self.dialect
                )
        if texts:
            message["content"] = "".join(texts)
        if refusals:
            message["refusal"] = "".join(refusals)

    # ------------------------------------------------------------------ #
    # Chat message -> canonical items
    # ------------------------------------------------------------------ #
    def output_to_items(self, output: Any) -> List[TInputItem]:
        message = output.model_dump() if hasattr(output, "model_dump") else dict(output)
        items: List[TInputItem] = []

        reasoning = message.get("reasoning_content")
        if reasoning:
            items.append(
                {
                    "type": "reasoning",
                    "id": FAKE_RESPONSES_ID,
                    "summary": [{"type": "summary_text", "text": reasoning}],
                }
            )

        content: List[Dict[str, Any]] = []
        if message.get("content"):
            content.append({"type": "output_text", "text": message["content"], "annotations": []})
        if message.get("refusal"):
            content.append({"type": "refusal", "refusal": message["refusal"]})
        if content:
            items.append(
                {
                    "type": "message",
                    "id": FAKE_RESPONSES_ID,
                    "role": "assistant",
                    "status": "completed",
                    "content": content,
                }
            )

        for call in message.get("tool_calls") or []:
            if call.get("type", "function") != "function":
                raise UnsupportedInDialectError(
                    f"Tool call of type '{call.get('type')}'", self.dialect
                )
            function = call["function"]
            items.append(
                {
                    "type": "function_call",
                    "id": FAKE_RESPONSES_ID,
                    "call_id": call["id"],
                    "name": function["name"],
                    "arguments": function.get("arguments") or "",
                }
            )
        return items
