"""Named request handlers dispatched by the stdio server."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

ToolHandler = Callable[[dict[str, object]], dict[str, object]]


@dataclass(slots=True, frozen=True)
class ToolDispatchError(Exception):
    """A request could not be served; ``code`` is reported to the editor."""

    code: str
    message: str


class ToolRegistry:
    """Handler table for the ``kleio.*`` tools, kept in registration order."""

    def __init__(self) -> None:
        self._handlers: dict[str, ToolHandler] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def register(self, name: str, handler: ToolHandler) -> None:
        """Add ``handler`` under ``name``; a name can only be taken once."""
        if name in self._handlers:
            raise ValueError(f"Tool already registered: {name}")
        self._handlers[name] = handler

    def names(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def dispatch(self, name: str, arguments: dict[str, object]) -> dict[str, object]:
        try:
            handler = self._handlers[name]
        except KeyError:
            raise ToolDispatchError(code="UNKNOWN_TOOL", message=f"Unknown tool: {name}") from None
        return handler(arguments)
