"""
Wire converter interface shared by the two supported API dialects.

A converter turns agent configuration (tools, hand-offs, tool choice, output schema) into the
request shape of its dialect, and translates conversation items between the canonical
(Responses-shaped) form used by the engine and the dialect's own wire items.
"""

from __future__ import annotations

from abc import (
    ABC,
    abstractmethod,
)
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    FrozenSet,
    List,
    Optional,
    Sequence,
    Type,
)

from switchboard.core.exceptions import ConfigurationError
from switchboard.core.output_schema import OutputSchema
from switchboard.core.schema import TInputItem
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

RESPONSES = "responses"
CHAT_COMPLETIONS = "chat_completions"

FINAL_OUTPUT_NAME = "final_output"

TOOL_CHOICE_MODES: FrozenSet[str] = frozenset({"auto", "required", "none"})

HOSTED_TOOL_CHOICES: FrozenSet[str] = frozenset(
    {
        "file_search",
        "web_search_preview",
        "web_search_preview_2025_03_11",
        "computer_use_preview",
        "image_generation",
        "code_interpreter",
        "mcp",
    }
)

# Which tool kinds each dialect can declare to the model.  Chat Completions is a strict subset.
DIALECT_CAPABILITIES: Dict[str, FrozenSet[Type[Any]]] = {
    RESPONSES: frozenset(
        {
            FunctionTool,
            FileSearchTool,
            WebSearchTool,
            ComputerTool,
            CodeInterpreterTool,
            ImageGenerationTool,
            LocalShellTool,
            HostedMCPTool,
        }
    ),
    CHAT_COMPLETIONS: frozenset({FunctionTool}),
}


def empty_handoff_schema() -> Dict[str, Any]:
    """Parameter schema of a hand-off that takes no input."""
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": {},
        "required": [],
    }


@dataclass
class ConvertedTools:
    """Tool descriptors for one request, plus the include flags they ask for."""

    tools: List[Dict[str, Any]] = field(default_factory=list)
    includes: List[str] = field(default_factory=list)


class WireConverter(ABC):
    """Converts engine-side configuration and items to and from one wire dialect."""

    dialect: str

    def supports(self, tool: Tool) -> bool:
        """Whether *tool* can be declared to the model in this dialect."""
        return type(tool) in DIALECT_CAPABILITIES[self.dialect]

    @staticmethod
    def check_single_computer(tools: Sequence[Tool]) -> None:
        """Raise :class:`ConfigurationError` if more than one computer tool is present."""
        if sum(1 for tool in tools if isinstance(tool, ComputerTool)) > 1:
            raise ConfigurationError("You can only provide one computer tool")

    @abstractmethod
    def convert_tools(
        self, tools: Sequence[Tool], handoffs: Sequence[Handoff]
    ) -> ConvertedTools:
        """Map every tool, then every hand-off, to a dialect tool descriptor."""

    @abstractmethod
    def convert_tool_choice(self, tool_choice: Optional[str]) -> Any:
        """Map a tool-choice string to the dialect value; ``None`` means unconstrained."""

    @abstractmethod
    def get_response_format(self, output_schema: Optional[OutputSchema]) -> Any:
        """Map an output schema to the dialect value; ``None`` means unconstrained."""

    @abstractmethod
    def items_to_wire(self, items: Sequence[TInputItem]) -> List[Dict[str, Any]]:
        """Convert canonical input items into the dialect's request input."""

    @abstractmethod
    def output_to_items(self, output: Any) -> List[TInputItem]:
        """Convert a dialect response payload into canonical output items."""
