from __future__ import annotations

"""Command registry: the verb -> handler dispatch table for TinyMUD.

Routers register their verbs with a decorator that records everything the
parser and dispatcher need to know about a verb:

- its argument shape (no argument, free text, or target + argument),
- whether it is usable before authentication, after it, or both,
- the handler to call, plus description/usage text for `help`.

Pre-auth and post-auth namespaces are disjoint by declaration, not a
permission ladder: an authenticated session cannot `connect` again, and an
unauthenticated one cannot `say`. Anything the registry refuses gets the same
generic "Huh?" as an unknown verb.

Architecture:
1. Registration phase: router modules decorate their handlers at import time.
2. Dispatch phase: `command_parser.parse()` turns a line into a Command using
   the registered shapes, then `dispatch()` gates and routes it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from constants import MSG_HUH
from errors import MudError

if TYPE_CHECKING:
    from command_parser import Command
    from session import Session
    from world import World

logger = logging.getLogger(__name__)

HandlerFn = Callable[["World", "Session", "Command"], None]


class ArgumentShape(Enum):
    """How the text after the verb is split."""
    NONE = "none"          # trailing text ignored (quit)
    TEXT = "text"          # whole remainder is args (say)
    TARGETED = "targeted"  # target, then optional args (connect bob pw)


@dataclass
class CommandMetadata:
    """Complete metadata for a registered verb."""
    name: str
    handler: HandlerFn
    shape: ArgumentShape = ArgumentShape.NONE
    pre_auth: bool = False
    post_auth: bool = True
    description: str = ""
    usage: str = ""
    aliases: List[str] = field(default_factory=list)
    # TARGETED only: None splits on the first whitespace, else on this string
    separator: Optional[str] = None

    def generate_usage_text(self) -> str:
        return self.usage or self.name

    def usable_by(self, session: "Session") -> bool:
        if not session.authenticated:
            return self.pre_auth
        return self.post_auth


class CommandRegistry:
    """Central registry for all MUD verbs."""

    def __init__(self) -> None:
        self._commands: Dict[str, CommandMetadata] = {}
        self._aliases: Dict[str, str] = {}  # alias -> primary name

    def register_command(self, metadata: CommandMetadata) -> None:
        self._commands[metadata.name] = metadata
        for alias in metadata.aliases:
            self._aliases[alias] = metadata.name

    def command(
        self,
        name: str,
        shape: ArgumentShape = ArgumentShape.NONE,
        pre_auth: bool = False,
        post_auth: bool = True,
        description: str = "",
        usage: str = "",
        aliases: Optional[List[str]] = None,
        separator: Optional[str] = None,
    ):
        """Decorator for registering a verb handler."""
        def decorator(handler_func: HandlerFn) -> HandlerFn:
            self.register_command(CommandMetadata(
                name=name,
                handler=handler_func,
                shape=shape,
                pre_auth=pre_auth,
                post_auth=post_auth,
                description=description,
                usage=usage,
                aliases=aliases or [],
                separator=separator,
            ))
            return handler_func
        return decorator

    def get_command(self, name: str) -> Optional[CommandMetadata]:
        """Get command metadata by verb or alias."""
        return self._commands.get(self._aliases.get(name, name))

    def available_commands(self, session: "Session") -> List[CommandMetadata]:
        """Verbs the session may use in its current authentication state."""
        return sorted((c for c in self._commands.values() if c.usable_by(session)),
                      key=lambda c: c.name)

    def dispatch(self, world: "World", session: "Session", command: "Command") -> bool:
        """Route `command` to at most one handler.

        Returns True when a handler ran. Unknown verbs and verbs not usable
        in the session's auth state get "Huh?" and no mutation. MudErrors
        raised by a handler are reported to the invoking session.
        """
        metadata = self.get_command(command.verb) if command.verb else None
        if metadata is None or not metadata.usable_by(session):
            session.tell(MSG_HUH)
            return False
        try:
            metadata.handler(world, session, command)
        except MudError as e:
            logger.debug("%s: %s failed: %s", session, command.verb, e.message)
            session.tell(e.user_friendly)
        return True

    def generate_help_text(self, session: "Session", verb: str = "") -> List[str]:
        """Help lines for one verb, or for every verb usable right now."""
        if verb:
            metadata = self.get_command(verb.lower())
            if metadata is None or not metadata.usable_by(session):
                return [f"No help for {verb}."]
            lines = [metadata.generate_usage_text()]
            if metadata.description:
                lines.append("   " + metadata.description)
            if metadata.aliases:
                lines.append("   Aliases: " + ", ".join(metadata.aliases))
            return lines

        lines = ["Welcome to this experimental MUD!", "", "Basic commands are:"]
        for metadata in self.available_commands(session):
            lines.append(f"   {metadata.generate_usage_text():<28}{metadata.description}")
        if session.authenticated:
            lines.append(f"   {'<exit>':<28}Move through an exit by name")
        lines.append("")
        return lines


# Global registry instance
registry = CommandRegistry()


@registry.command(
    name="help",
    shape=ArgumentShape.TARGETED,
    pre_auth=True,
    post_auth=True,
    description="Show this help, or help for one command",
    usage="help [command]",
)
def help_command(world: "World", session: "Session", command: "Command") -> None:
    for line in registry.generate_help_text(session, command.target):
        session.tell(line)
