"""Tests for the Chat-Completions converter."""

import pytest
from fake_model import FakeComputer
from pydantic import BaseModel

from switchboard.agent.agent import Agent
from switchboard.agent.handoffs import handoff
from switchboard.core.exceptions import (
    ConfigurationError,
    UnsupportedInDialectError,
)
from switchboard.core.output_schema import AgentOutputSchema
from switchboard.models.chatcmpl_converter import (
    FAKE_RESPONSES_ID,
    ChatCompletionsConverter,
)
from switchboard.models.converter import empty_handoff_schema
from switchboard.tools import (
    CodeInterpreterTool,
    ComputerTool,
    FileSearchTool,
    HostedMCPTool,
    ImageGenerationTool,
    LocalShellTool,
    WebSearchTool,
    function_tool,
)


@function_tool
def lookup(term: str) -> str:
    """Look a term up."""
    return term


class Reply(BaseModel):
    text: str


@pytest.fixture
def converter() -> ChatCompletionsConverter:
    return ChatCompletionsConverter()


def test_function_tools_and_handoffs(converter) -> None:
    """Function tools and hand-offs should both become chat function descriptors."""

    converted = converter.convert_tools([lookup], [handoff(Agent(name="Billing"))])

    assert converted.tools == [
        {
            "type": "function",
            "function": {
                "name": "lookup",
                "description": "Look a term up.",
                "parameters": lookup.params_json_schema,
                "strict": True,
            },
        },
        {
            "type": "function",
            "function": {
                "name": "transfer_to_billing",
                "description": "Handoff to the Billing agent to handle the request. ",
                "parameters": empty_handoff_schema(),
                "strict": True,
            },
        },
    ]
    assert converted.includes == []


@pytest.mark.parametrize(
    "tool",
    [
        FileSearchTool(vector_store_ids=["vs"]),
        WebSearchTool(),
        CodeInterpreterTool(),
        ImageGenerationTool(),
        LocalShellTool(executor=lambda request: ""),
        HostedMCPTool(tool_config={"server_label": "docs"}),
        ComputerTool(computer=FakeComputer()),
    ],
)
def test_hosted_tools_are_unsupported(converter, tool) -> None:
    """Every non-function tool should be rejected by the chat dialect."""

    with pytest.raises(UnsupportedInDialectError) as exc_info:
        converter.convert_tools([tool], [])
    assert exc_info.value.dialect == "chat_completions"
    assert isinstance(exc_info.value, ConfigurationError)


def test_tool_choice(converter) -> None:
    """Tool choices should map to chat values; hosted names should be rejected."""

    assert converter.convert_tool_choice(None) is None
    assert converter.convert_tool_choice("") is None
    assert converter.convert_tool_choice("required") == "required"
    assert converter.convert_tool_choice("lookup") == {
        "type": "function",
        "function": {"name": "lookup"},
    }
    with pytest.raises(UnsupportedInDialectError):
        converter.convert_tool_choice("web_search_preview")


def test_response_format(converter) -> None:
    """A structured schema should become a chat ``json_schema`` response format."""

    assert converter.get_response_format(None) is None

    schema = AgentOutputSchema(Reply)
    assert converter.get_response_format(schema) == {
        "type": "json_schema",
        "json_schema": {"name": "final_output", "strict": True, "schema": schema.json_schema()},
    }


def test_items_to_wire_merges_calls_into_assistant_message(converter) -> None:
    """Consecutive function calls should merge into the preceding assistant message."""

    items = [
        {"type": "message", "role": "user", "content": "weather?"},
        {
            "type": "message",
            "role": "assistant",
            "content": [{"type": "output_text", "text": "Checking.", "annotations": []}],
        },
        {"type": "function_call", "call_id": "c1", "name": "lookup", "arguments": '{"term": "a"}'},
        {"type": "function_call", "call_id": "c2", "name": "lookup", "arguments": '{"term": "b"}'},
        {"type": "function_call_output", "call_id": "c1", "output": "A"},
        {"type": "function_call_output", "call_id": "c2", "output": "B"},
        {"type": "reasoning", "id": "r1", "summary": []},
    ]

    assert converter.items_to_wire(items) == [
        {"role": "user", "content": "weather?"},
        {
            "role": "assistant",
            "content": "Checking.",
            "tool_calls": [
                {"id": "c1", "type": "function", "function": {"name": "lookup", "arguments": '{"term": "a"}'}},
                {"id": "c2", "type": "function", "function": {"name": "lookup", "arguments": '{"term": "b"}'}},
            ],
        },
        {"role": "tool", "tool_call_id": "c1", "content": "A"},
        {"role": "tool", "tool_call_id": "c2", "content": "B"},
    ]


def test_items_to_wire_content_parts(converter) -> None:
    """Text and image parts should map to chat content parts."""

    items = [
        {
            "type": "message",
            "role": "user",
            "content": [
                {"type": "input_text", "text": "what is this?"},
                {"type": "input_image", "image_url": "https://img", "detail": "low"},
            ],
        }
    ]

    assert converter.items_to_wire(items) == [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "what is this?"},
                {"type": "image_url", "image_url": {"url": "https://img", "detail": "low"}},
            ],
        }
    ]


def test_items_to_wire_rejects_hosted_items(converter) -> None:
    """Hosted call items should have no chat equivalent."""

    with pytest.raises(UnsupportedInDialectError):
        converter.items_to_wire([{"type": "file_search_call", "id": "fs1", "queries": []}])


def test_output_to_items(converter) -> None:
    """Reasoning, text and tool calls should become canonical items in that order."""

    message = {
        "role": "assistant",
        "content": "Let me check.",
        "reasoning_content": "thinking",
        "tool_calls": [
            {"id": "c1", "type": "function", "function": {"name": "lookup", "arguments": "{}"}}
        ],
    }

    assert converter.output_to_items(message) == [
        {
            "type": "reasoning",
            "id": FAKE_RESPONSES_ID,
            "summary": [{"type": "summary_text", "text": "thinking"}],
        },
        {
            "type": "message",
            "id": FAKE_RESPONSES_ID,
            "role": "assistant",
            "status": "completed",
            "content": [{"type": "output_text", "text": "Let me check.", "annotations": []}],
        },
        {
            "type": "function_call",
            "id": FAKE_RESPONSES_ID,
            "call_id": "c1",
            "name": "lookup",
            "arguments": "{}",
        },
    ]
