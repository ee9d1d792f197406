from __future__ import annotations

"""Movement & look router.

Handles:
  - move|go|walk <exit>   (a bare exit name is rewritten to `move` by the parser)
  - look|l [target]
  - examine|ex [target]

Movement announces the departure to the old room, performs the atomic
World.move_player(), announces the arrival to the new room, then shows the
mover where they ended up.
"""

import logging

from command_parser import Command
from command_registry import ArgumentShape, registry
from errors import NotFoundError, ValidationError
from look_service import format_examine, format_look
from session import Session
from world import World

logger = logging.getLogger(__name__)


@registry.command(
    name="move",
    shape=ArgumentShape.TARGETED,
    description="Move to a new room",
    usage="go <exit>",
    aliases=["go", "walk"],
)
def do_move(world: World, session: Session, command: Command) -> None:
    if not command.target:
        raise ValidationError("move: no exit given", user_friendly="Go where?")
    player = session.player
    here = player.current_location()
    exit_ = world.find_exit(here, command.target) if here is not None else None
    if exit_ is None:
        raise NotFoundError(f"no exit {command.target!r}",
                            user_friendly="There's no exit in that direction!")

    world.tell_all_but_me(player, f"{player.name} has left.")
    destination = world.move_player(player, exit_.destination)
    logger.debug("player #%d moved #%d -> #%d via exit #%d",
                 player.key, here.key, destination.key, exit_.key)
    world.tell_all_but_me(player, f"{player.name} has arrived.")
    for line in format_look(destination):
        session.tell(line)


@registry.command(
    name="look",
    shape=ArgumentShape.TARGETED,
    description="Look around, or at something",
    usage="look [target]",
    aliases=["l"],
)
def do_look(world: World, session: Session, command: Command) -> None:
    target = world.find_target(session, command)
    for line in format_look(target):
        session.tell(line)


@registry.command(
    name="examine",
    shape=ArgumentShape.TARGETED,
    description="Show the details of something",
    usage="examine [target]",
    aliases=["ex"],
)
def do_examine(world: World, session: Session, command: Command) -> None:
    target = world.find_target(session, command)
    for line in format_examine(target):
        session.tell(line)
