"""Converter for the Responses dialect."""

from __future__ import annotations

import copy
import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    assert_never,
)

from switchboard.core.output_schema import OutputSchema
from switchboard.core.schema import TInputItem
from switchboard.models.converter import (
    FINAL_OUTPUT_NAME,
    HOSTED_TOOL_CHOICES,
    RESPONSES,
    TOOL_CHOICE_MODES,
    ConvertedTools,
    WireConverter,
    empty_handoff_schema,
)
from switchboard.tools import (
    CodeInterpreterTool,
    ComputerTool,
    FileSearchTool,
    FunctionTool,
    HostedMCPTool,
    ImageGenerationTool,
    LocalShellTool,
    Tool,
    WebSearchTool,
)

if TYPE_CHECKING:
    from switchboard.agent.handoffs import Handoff

logger = logging.getLogger(__name__)

FILE_SEARCH_RESULTS_INCLUDE = "file_search_call.results"


class ResponsesConverter(WireConverter):
    """Builds Responses-API request fields; canonical items are already in this dialect."""

    dialect = RESPONSES

    # ------------------------------------------------------------------ #
    # Tools
    # ------------------------------------------------------------------ #
    def convert_tools(
        self, tools: Sequence[Tool], handoffs: Sequence[Handoff]
    ) -> ConvertedTools:
        self.check_single_computer(tools)

        converted = ConvertedTools()
        for tool in tools:
            descriptor, include = self._convert_tool(tool)
            converted.tools.append(descriptor)
            if include is not None and include not in converted.includes:
                converted.includes.append(include)

        for item in handoffs:
            converted.tools.append(self._convert_handoff(item))

        return converted

    def _convert_tool(self, tool: Tool) -> Tuple[Dict[str, Any], Optional[str]]:
        if isinstance(tool, FunctionTool):
            return {
                "type": "function",
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.params_json_schema,
                "strict": tool.strict_json_schema,
            }, None

        if isinstance(tool, FileSearchTool):
            descriptor: Dict[str, Any] = {
                "type": "file_search",
                "vector_store_ids": list(tool.vector_store_ids),
            }
            if tool.max_num_results is not None:
                descriptor["max_num_results"] = tool.max_num_results
            if tool.ranking_options is not None:
                descriptor["ranking_options"] = tool.ranking_options
            if tool.filters is not None:
                descriptor["filters"] = tool.filters
            include = FILE_SEARCH_RESULTS_INCLUDE if tool.include_search_results else None
            return descriptor, include

        if isinstance(tool, WebSearchTool):
            descriptor = {
                "type": "web_search_preview",
                "search_context_size": tool.search_context_size,
            }
            if tool.user_location is not None:
                descriptor["user_location"] = tool.user_location
            return descriptor, None

        if isinstance(tool, ComputerTool):
            width, height = tool.computer.dimensions
            return {
                "type": "computer_use_preview",
                "environment": tool.computer.environment,
                "display_width": width,
                "display_height": height,
            }, None

        if isinstance(tool, CodeInterpreterTool):
            return {**tool.tool_config, "type": "code_interpreter"}, None

        if isinstance(tool, ImageGenerationTool):
            return {**tool.tool_config, "type": "image_generation"}, None

        if isinstance(tool, LocalShellTool):
            return {"type": "local_shell"}, None

        if isinstance(tool, HostedMCPTool):
            return {**tool.tool_config, "type": "mcp"}, None

        assert_never(tool)

    @staticmethod
    def _convert_handoff(item: Handoff) -> Dict[str, Any]:
        return {
            "type": "function",
            "name": item.tool_name,
            "description": item.tool_description,
            "parameters": item.input_json_schema or empty_handoff_schema(),
            "strict": item.strict_json_schema,
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
            return {"type": tool_choice}
        return {"type": "function", "name": tool_choice}

    def get_response_format(self, output_schema: Optional[OutputSchema]) -> Any:
        if output_schema is None or output_schema.is_plain_text():
            return None
        return {
            "format": {
                "type": "json_schema",
                "name": FINAL_OUTPUT_NAME,
                "schema": output_schema.json_schema(),
                "strict": output_schema.is_strict_json_schema(),
            }
        }

    # ------------------------------------------------------------------ #
    # Items
    # ------------------------------------------------------------------ #
    def items_to_wire(self, items: Sequence[TInputItem]) -> List[Dict[str, Any]]:
        return [copy.deepcopy(item) for item in items]

    def output_to_items(self, output: Any) -> List[TInputItem]:
        items: List[TInputItem] = []
        for item in output or []:
            if hasattr(item, "model_dump"):
                items.append(item.model_dump(exclude_unset=True))
            else:
                items.append(dict(item))
        return items
