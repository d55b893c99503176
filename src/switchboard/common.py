"""Common utility functions for the project."""

import inspect
import re
from enum import Enum
from typing import (
    Any,
    Awaitable,
    TypeVar,
    Union,
)

T = TypeVar("T")
MaybeAwaitable = Union[Awaitable[T], T]


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    print(f"{color.value}{text}\033[0m", *args, **kwargs)  # ANSI reset at the end


def transform_string_function_style(name: str) -> str:
    """
    Turn an arbitrary display name into something usable as a function name.

    Spaces become underscores, every other character outside ``[a-zA-Z0-9_]`` is replaced with an
    underscore, and the result is lower-cased.
    """
    name = name.replace(" ", "_")
    name = re.sub(r"[^a-zA-Z0-9_]", "_", name)
    return name.lower()


async def maybe_await(value: MaybeAwaitable[T]) -> T:
    """Await *value* if it is awaitable, otherwise return it as-is."""
    if inspect.isawaitable(value):
        return await value
    return value
