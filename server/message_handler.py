"""Line handler: one raw input line in, replies and world mutations out.

This is the whole per-line pipeline the connection loop calls:

    raw line -> length check -> command_parser.parse() -> registry.dispatch()

Importing this module imports every router, which is what registers their
verbs with the global registry.
"""
from __future__ import annotations

import logging
from typing import Optional

import admin_router  # noqa: F401  (registers verbs)
import auth_router  # noqa: F401
import dialogue_router  # noqa: F401
import movement_router  # noqa: F401
from command_parser import parse
from command_registry import CommandRegistry, registry
from constants import DEFAULT_MAX_MESSAGE_LENGTH, MSG_HUH, MSG_INTERNAL_ERROR
from session import Session
from world import World

logger = logging.getLogger(__name__)


def handle_line(world: World, session: Session, line: str,
                max_len: int = DEFAULT_MAX_MESSAGE_LENGTH,
                commands: Optional[CommandRegistry] = None) -> None:
    """Parse and dispatch one line of input from `session`.

    Blank lines are ignored. Unrecognized input gets "Huh?". A handler that
    raises something outside the MudError taxonomy is logged and reported as
    a generic failure; the connection and every other session carry on.
    """
    commands = commands or registry
    if len(line) > max_len:
        session.tell("Message too long (>%d chars).", max_len)
        return
    if not line.strip():
        return

    command = parse(commands, world, session, line)
    if command.empty:
        session.tell(MSG_HUH)
        return

    try:
        commands.dispatch(world, session, command)
    except Exception:
        logger.exception("%s: unhandled error running %r", session, command.verb)
        session.tell(MSG_INTERNAL_ERROR)
