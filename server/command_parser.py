"""Command parsing: raw input line -> structured Command.

Parsing is independent of what handler will eventually run; it only needs
the registry (to know a verb's argument shape) and, for authenticated
sessions, the exits of the session's current room (so that a bare exit name
like `north` works as `move north`).

Rules, in order:
  1. Trim. `"hello` becomes `say hello`; `:waves` becomes `emote waves`.
  2. Split on the first whitespace into verb and remainder; lowercase verb.
  3. Unknown verb + authenticated session + token equal (case-sensitively)
     to an exit name here -> `move <token>`.
  4. Still unknown -> the empty Command (no dispatch).
  5. Split the remainder by the verb's shape. A TARGETED verb splits on its
     registered separator: the first whitespace by default, or the first
     '=' for verbs whose argument is free text (@desc, tell).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, TYPE_CHECKING

from command_registry import ArgumentShape, CommandRegistry
from constants import EMOTE_SHORTCUT, SAY_SHORTCUT

if TYPE_CHECKING:
    from session import Session
    from world import World


@dataclass(frozen=True)
class Command:
    verb: str = ""
    target: str = ""
    args: str = ""

    @property
    def empty(self) -> bool:
        return not self.verb


EMPTY_COMMAND = Command()


def split_first_word(text: str) -> Tuple[str, str]:
    """Split on the first run of whitespace; the remainder is left-stripped."""
    parts = text.split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1].lstrip()


def split_target(rest: str, separator: Optional[str] = None) -> Tuple[str, str]:
    """Split a targeted verb's remainder into (target, args).

    With no separator the split is on the first whitespace:
    `bob pa=ss` -> ('bob', 'pa=ss'), `east` -> ('east', '').
    With a separator the split is on its first occurrence only:
    `me=Tall and thin` -> ('me', 'Tall and thin'), `me` -> ('me', '').
    """
    if separator is None:
        target, args = split_first_word(rest)
        return target, args.strip()
    target, _, args = rest.partition(separator)
    return target.strip(), args.strip()


def _exit_shortcut(world: "World", session: "Session", token: str) -> Optional[Command]:
    if not session.authenticated:
        return None
    here = session.player.current_location()
    if here is None:
        return None
    if token in world.exit_names(here):
        return Command(verb="move", target=token)
    return None


def parse(registry: CommandRegistry, world: "World", session: "Session", raw_line: str) -> Command:
    line = raw_line.strip()
    if not line:
        return EMPTY_COMMAND

    if line.startswith(SAY_SHORTCUT):
        line = "say " + line[len(SAY_SHORTCUT):]
    elif line.startswith(EMOTE_SHORTCUT):
        line = "emote " + line[len(EMOTE_SHORTCUT):]

    token, rest = split_first_word(line)
    verb = token.lower()
    metadata = registry.get_command(verb)

    if metadata is None:
        shortcut = _exit_shortcut(world, session, token)
        if shortcut is not None and registry.get_command(shortcut.verb) is not None:
            return shortcut
        return EMPTY_COMMAND

    if metadata.shape is ArgumentShape.NONE:
        return Command(verb=verb)
    if metadata.shape is ArgumentShape.TEXT:
        return Command(verb=verb, args=rest.rstrip())
    target, args = split_target(rest, metadata.separator)
    return Command(verb=verb, target=target, args=args)
