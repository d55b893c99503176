"""
Tool definitions.

A :data:`Tool` is one of a closed set of variants.  Function tools run locally and are the only
ones with an invocation function; hosted tools (file search, web search, code interpreter, image
generation, MCP) run on the model provider's side; the computer and local-shell tools are
declared to the model like hosted tools but their calls are executed locally.

Function tools are usually built with the :func:`function_tool` decorator, which derives the
parameter schema from the function signature:

    @function_tool
    def get_weather(city: str) -> str:
        \"\"\"Return the weather for *city*.\"\"\"
        return "sunny"
"""

import inspect
import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Literal,
    Optional,
    Union,
    get_type_hints,
    overload,
)

from pydantic import (
    ValidationError,
    create_model,
)

from switchboard.common import (
    MaybeAwaitable,
    maybe_await,
)
from switchboard.core.exceptions import InvalidToolArgumentsError
from switchboard.core.lifecycle import RunContextWrapper
from switchboard.core.output_schema import ensure_strict_json_schema
from switchboard.tools.computer import Computer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool variants
# ---------------------------------------------------------------------------
@dataclass
class FunctionTool:
    """A tool that wraps a local function."""

    name: str
    description: str
    params_json_schema: Dict[str, Any]
    on_invoke_tool: Callable[[RunContextWrapper[Any], str], Awaitable[Any]]
    """Receives the run context and the raw JSON arguments produced by the model."""
    strict_json_schema: bool = True


@dataclass
class FileSearchTool:
    """A hosted tool that searches the given vector stores."""

    vector_store_ids: List[str]
    max_num_results: Optional[int] = None
    include_search_results: bool = False
    """Ask the model to return the search results alongside the call."""
    ranking_options: Optional[Dict[str, Any]] = None
    filters: Optional[Dict[str, Any]] = None

    @property
    def name(self) -> str:
        return "file_search"


@dataclass
class WebSearchTool:
    """A hosted tool that searches the web."""

    user_location: Optional[Dict[str, Any]] = None
    search_context_size: Literal["low", "medium", "high"] = "medium"

    @property
    def name(self) -> str:
        return "web_search_preview"


@dataclass
class ComputerTool:
    """A tool that lets the model drive a computer; actions run against *computer* locally."""

    computer: Computer

    @property
    def name(self) -> str:
        return "computer_use_preview"


@dataclass
class CodeInterpreterTool:
    """A hosted tool that executes code in a sandboxed container."""

    tool_config: Dict[str, Any] = field(default_factory=lambda: {"container": {"type": "auto"}})

    @property
    def name(self) -> str:
        return "code_interpreter"


@dataclass
class ImageGenerationTool:
    """A hosted tool that generates images."""

    tool_config: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return "image_generation"


@dataclass
class LocalShellCommandRequest:
    """A request to execute a command on a shell."""

    ctx_wrapper: RunContextWrapper[Any]
    data: Dict[str, Any]
    """The ``local_shell_call`` item produced by the model."""


LocalShellExecutor = Callable[[LocalShellCommandRequest], MaybeAwaitable[str]]


@dataclass
class LocalShellTool:
    """A tool that lets the model run shell commands through *executor*."""

    executor: LocalShellExecutor

    @property
    def name(self) -> str:
        return "local_shell"


@dataclass
class HostedMCPTool:
    """A remote MCP server exposed to the model; ``tool_config`` is the raw ``mcp`` tool entry."""

    tool_config: Dict[str, Any]

    @property
    def name(self) -> str:
        return str(self.tool_config.get("server_label", "hosted_mcp"))


Tool = Union[
    FunctionTool,
    FileSearchTool,
    WebSearchTool,
    ComputerTool,
    CodeInterpreterTool,
    ImageGenerationTool,
    LocalShellTool,
    HostedMCPTool,
]
"""Closed set of tool kinds an agent can carry."""


# ---------------------------------------------------------------------------
# function_tool decorator
# ---------------------------------------------------------------------------
def _takes_context(param: inspect.Parameter, hint: Any) -> bool:
    if hint is RunContextWrapper or getattr(hint, "__origin__", None) is RunContextWrapper:
        return True
    return param.name in {"ctx", "context"} and hint is inspect.Parameter.empty


def _build_function_tool(
    func: Callable[..., Any],
    name_override: str | None,
    description_override: str | None,
    strict_json_schema: bool,
) -> FunctionTool:
    name = name_override or func.__name__
    sig = inspect.signature(func)
    type_hints = get_type_hints(func)

    params = list(sig.parameters.values())
    takes_context = bool(params) and _takes_context(
        params[0], type_hints.get(params[0].name, inspect.Parameter.empty)
    )
    if takes_context:
        params = params[1:]

    fields: Dict[str, Any] = {}
    for param in params:
        param_type = type_hints.get(param.name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param.name] = (param_type, default)

    args_model = create_model(f"{name}_args", **fields)
    schema = args_model.model_json_schema()
    if strict_json_schema:
        schema = ensure_strict_json_schema(schema)

    async def on_invoke_tool(ctx: RunContextWrapper[Any], args_json: str) -> Any:
        try:
            parsed = args_model.model_validate_json(args_json or "{}")
        except ValidationError as exc:
            logger.debug("Invalid arguments for tool '%s': %s", name, exc)
            raise InvalidToolArgumentsError(f"Invalid arguments for tool '{name}': {exc}") from exc

        kwargs = {param.name: getattr(parsed, param.name) for param in params}
        logger.debug("Executing tool '%s' with args=%s", name, kwargs)
        if takes_context:
            return await maybe_await(func(ctx, **kwargs))
        return await maybe_await(func(**kwargs))

    return FunctionTool(
        name=name,
        description=description_override or inspect.getdoc(func) or "",
        params_json_schema=schema,
        on_invoke_tool=on_invoke_tool,
        strict_json_schema=strict_json_schema,
    )


@overload
def function_tool(func: Callable[..., Any]) -> FunctionTool: ...


@overload
def function_tool(
    *,
    name_override: str | None = None,
    description_override: str | None = None,
    strict_json_schema: bool = True,
) -> Callable[[Callable[..., Any]], FunctionTool]: ...


def function_tool(
    func: Callable[..., Any] | None = None,
    *,
    name_override: str | None = None,
    description_override: str | None = None,
    strict_json_schema: bool = True,
) -> FunctionTool | Callable[[Callable[..., Any]], FunctionTool]:
    """
    Turn a plain (sync or async) function into a :class:`FunctionTool`.

    The function may be used bare (``@function_tool``) or with arguments
    (``@function_tool(name_override="lookup")``).  Its parameters, with their type hints and
    defaults, become the tool's JSON schema; the docstring becomes the description.  If the first
    parameter is annotated as :class:`RunContextWrapper` (or is an unannotated ``ctx`` /
    ``context``), the run context is passed in as well.

    Parameters
    ----------
    func:
        The function to wrap, when used without arguments.
    name_override:
        Tool name to expose instead of the function name.
    description_override:
        Description to expose instead of the docstring.
    strict_json_schema:
        Whether the parameter schema is sent in strict mode.

    Returns
    -------
    FunctionTool, or a decorator producing one.
    """

    def wrapper(fn: Callable[..., Any]) -> FunctionTool:
        logger.debug("Registering tool '%s'", name_override or fn.__name__)
        return _build_function_tool(fn, name_override, description_override, strict_json_schema)

    if func is not None:
        return wrapper(func)
    return wrapper
