"""A registry of named commands and the arguments they are run with."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


class CommandError(Exception):
    """A command could not be found or failed."""


@dataclass(frozen=True)
class Command:
    """A command name and its arguments."""

    name: str
    args: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


Handler = Callable[[Any, Command], None]


class Commands:
    """Maps command names to their handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        """Register ``handler`` under ``name``, replacing any earlier one."""
        self._handlers[name] = handler

    def run(self, state: Any, command: Command) -> None:
        """Run the handler registered for ``command.name``."""
        handler = self._handlers.get(command.name)
        if handler is None:
            raise CommandError("command not found")
        handler(state, command)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers