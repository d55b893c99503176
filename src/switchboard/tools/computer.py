"""Abstraction over a computer (or browser) that the computer-use tool can drive."""

from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    List,
    Literal,
    Tuple,
)

Environment = Literal["mac", "windows", "ubuntu", "linux", "browser"]
Button = Literal["left", "right", "wheel", "back", "forward"]


class Computer(ABC):
    """
    A computer the model can operate.

    ``environment`` and ``dimensions`` are read when the tool is declared to the model; the
    action methods are awaited when the model emits a ``computer_call``.  ``screenshot`` returns a
    base64-encoded PNG.
    """

    @property
    @abstractmethod
    def environment(self) -> Environment:
        """The kind of environment being driven."""

    @property
    @abstractmethod
    def dimensions(self) -> Tuple[int, int]:
        """Display ``(width, height)`` in pixels."""

    @abstractmethod
    async def screenshot(self) -> str: ...

    @abstractmethod
    async def click(self, x: int, y: int, button: Button) -> None: ...

    @abstractmethod
    async def double_click(self, x: int, y: int) -> None: ...

    @abstractmethod
    async def scroll(self, x: int, y: int, scroll_x: int, scroll_y: int) -> None: ...

    @abstractmethod
    async def type(self, text: str) -> None: ...

    @abstractmethod
    async def wait(self) -> None: ...

    @abstractmethod
    async def move(self, x: int, y: int) -> None: ...

    @abstractmethod
    async def keypress(self, keys: List[str]) -> None: ...

    @abstractmethod
    async def drag(self, path: List[Tuple[int, int]]) -> None: ...
