from __future__ import annotations

"""Building & administration router.

Handles:
  - @desc <target>=<text>       self, owner or wizard
  - @dig <exit> <room name>     builder or wizard
  - @link <exit> <room #>       builder or wizard
  - @set <target> [!]<flag>     wizard only

Every verb validates its fields first, then resolves the target, then checks
permission, and only then mutates the world. A refusal at any step leaves the
world untouched.
"""

import logging

from command_parser import Command
from command_registry import ArgumentShape, registry
from constants import TARGET_SEPARATOR
from errors import NotFoundError, PermissionDeniedError, ValidationError
from session import Session
from world import FLAG_NAMES, Flags, Object, Player, World

logger = logging.getLogger(__name__)


def can_modify(player: Player, target: Object) -> bool:
    """A player may change themselves, what they own, or anything if a wizard."""
    return target is player or target.owner is player or player.is_set(Flags.WIZARD)


def _require_builder(player: Player) -> None:
    if not player.has_build_permission():
        raise PermissionDeniedError(f"player #{player.key} is not a builder",
                                    user_friendly="Sorry, you don't have permission to do that.")


@registry.command(
    name="@desc",
    shape=ArgumentShape.TARGETED,
    description="Describe something you own",
    usage="@desc <target>=<text>",
    aliases=["@describe"],
    separator=TARGET_SEPARATOR,
)
def do_desc(world: World, session: Session, command: Command) -> None:
    if not command.args:
        raise ValidationError("@desc: no description", user_friendly="Try: @desc <target>=<text>")
    target = world.find_target(session, command)
    if not can_modify(session.player, target):
        raise PermissionDeniedError(f"cannot describe #{target.key}", user_friendly="You can't do that.")
    target.description = command.args
    session.tell("Description set.")


@registry.command(
    name="@dig",
    shape=ArgumentShape.TARGETED,
    description="Dig a new room",
    usage="@dig <exit> <name>",
)
def do_dig(world: World, session: Session, command: Command) -> None:
    if not command.target or not command.args:
        raise ValidationError("@dig: missing exit or room name", user_friendly="Dig what?")
    player = session.player
    _require_builder(player)
    here = player.current_location()
    room, exit_ = world.dig(here, command.target, command.args, owner=player)
    logger.info("player #%d dug room #%d %r via exit #%d %r",
                player.key, room.key, room.name, exit_.key, exit_.name)
    session.tell("Dug. %s is room #%d.", room.name, room.key)


@registry.command(
    name="@link",
    shape=ArgumentShape.TARGETED,
    description="Create a new exit to room #",
    usage="@link <exit> <room_number>",
)
def do_link(world: World, session: Session, command: Command) -> None:
    if not command.target or not command.args:
        raise ValidationError("@link: missing exit or room number", user_friendly="Link what?")
    try:
        room_number = int(command.args.lstrip("#"))
    except ValueError:
        raise ValidationError(f"bad room number {command.args!r}",
                              user_friendly="I didn't understand that room number.")
    destination = world.get_room(room_number)
    if destination is None:
        raise NotFoundError(f"no room #{room_number}", user_friendly="That destination doesn't exist.")
    player = session.player
    _require_builder(player)
    here = player.current_location()
    exit_ = world.create_exit(here, command.target, destination, owner=player)
    logger.info("player #%d linked exit #%d %r from #%d to #%d",
                player.key, exit_.key, exit_.name, here.key, destination.key)
    session.tell("Linked.")


@registry.command(
    name="@set",
    shape=ArgumentShape.TARGETED,
    description="Set or clear a flag",
    usage="@set <target> [!]<flag>",
)
def do_set(world: World, session: Session, command: Command) -> None:
    flag_spec = command.args.strip()
    if not flag_spec or flag_spec == "!":
        raise ValidationError("@set: no flag", user_friendly="What do you want to set?")
    clearing = flag_spec.startswith("!")
    flag = FLAG_NAMES.get(flag_spec.lstrip("!").strip().lower())
    if flag is None:
        raise ValidationError(f"unknown flag {flag_spec!r}", user_friendly="I don't know that flag.")

    target = world.find_target(session, command)
    player = session.player
    if not player.is_set(Flags.WIZARD):
        raise PermissionDeniedError(f"player #{player.key} is not a wizard",
                                    user_friendly="You don't have permission to do that!")

    if clearing:
        target.clear_flag(flag)
        session.tell("Flag cleared.")
    else:
        target.set_flag(flag)
        session.tell("Flag set.")
    logger.info("player #%d %s %s on #%d", player.key,
                "cleared" if clearing else "set", flag.name, target.key)
