from __future__ import annotations

"""Authentication router: connect, newplayer, quit.

`connect` and `newplayer` are pre-auth only; once a session holds a player it
cannot switch to another one on the same connection. `quit` works in both
states and only raises the session's quit flag: the connection loop notices
it, closes the transport, and runs the same detach path as a dropped
connection.

Failure replies are deliberately distinct: "No such player!",
"Incorrect password." and "Already connected!".
"""

import logging

from command_parser import Command
from command_registry import ArgumentShape, registry
from constants import TARGET_SEPARATOR
from errors import AuthError, NotFoundError, ValidationError
from look_service import format_look
from session import Session
from world import Player, World, normalize_name

logger = logging.getLogger(__name__)

# Names that find_target() gives a special meaning to, already normalized
RESERVED_NAMES = frozenset({"me", "here"})


def is_valid_player_name(name: str) -> bool:
    """One word, and no '=' so `tell <name>=<text>` can always reach it."""
    return bool(name) and TARGET_SEPARATOR not in name and not any(ch.isspace() for ch in name)


def connect_player(world: World, session: Session, player: Player) -> None:
    """Attach `session` to `player`, greet them and tell the room."""
    if not world.attach_session(player, session):
        raise AuthError(f"player #{player.key} already has a session",
                        user_friendly="Already connected!")
    logger.info("%s logged in as player #%d %r", session.peer, player.key, player.name)
    session.tell("Welcome, %s!", player.name)
    here = player.current_location()
    if here is not None:
        for line in format_look(here):
            session.tell(line)
    world.tell_all_but_me(player, f"{player.name} has connected.")


@registry.command(
    name="connect",
    shape=ArgumentShape.TARGETED,
    pre_auth=True,
    post_auth=False,
    description="Log in as an existing character",
    usage="connect <name> <password>",
)
def do_connect(world: World, session: Session, command: Command) -> None:
    if not command.target or not command.args:
        raise ValidationError("connect: missing name or password",
                              user_friendly="Try: connect <player> <password>")

    player = world.find_player(command.target)
    if player is None:
        logger.info("%s: connect to unknown player %r", session.peer, command.target)
        raise NotFoundError(f"no player named {command.target!r}", user_friendly="No such player!")

    if not player.check_password(command.args):
        logger.info("%s: bad password for player #%d", session.peer, player.key)
        raise AuthError("password mismatch", user_friendly="Incorrect password.")

    connect_player(world, session, player)


@registry.command(
    name="newplayer",
    shape=ArgumentShape.TARGETED,
    pre_auth=True,
    post_auth=False,
    description="Create a new character and log in",
    usage="newplayer <name> <password>",
)
def do_newplayer(world: World, session: Session, command: Command) -> None:
    if not command.target or not command.args:
        raise ValidationError("newplayer: missing name or password",
                              user_friendly="Try: newplayer <player> <password>")
    if normalize_name(command.target) in RESERVED_NAMES:
        raise ValidationError(f"reserved name {command.target!r}",
                              user_friendly="Sorry, that name is in use.")
    if not is_valid_player_name(command.target):
        raise ValidationError(f"illegal player name {command.target!r}",
                              user_friendly="Sorry, that isn't a legal player name.")

    start = world.start_room()
    if start is None:
        logger.warning("newplayer refused: the world has no rooms")
        session.tell("Sorry, we can't create any players right now.")
        return

    # NameTakenError propagates to the dispatcher as "Sorry, that name is in use."
    player = world.create_player(command.target, command.args, start)
    connect_player(world, session, player)


@registry.command(
    name="quit",
    shape=ArgumentShape.NONE,
    pre_auth=True,
    post_auth=True,
    description="Leave the game",
    usage="quit",
)
def do_quit(world: World, session: Session, command: Command) -> None:
    session.quit_requested = True
    session.tell("Goodbye!")
