from __future__ import annotations

"""Dialogue & social command router.

Features handled:
  - say <text>            (also the `"text` shortcut)
  - emote <text>          (also the `:text` shortcut)
  - tell <player>=<text>  private, any room

Player text is always passed to Session.tell() pre-formatted so a '%' typed
by a player is never treated as a format directive.
"""

from command_parser import Command
from command_registry import ArgumentShape, registry
from constants import TARGET_SEPARATOR
from errors import NotFoundError, ValidationError
from session import Session
from world import World


@registry.command(
    name="say",
    shape=ArgumentShape.TEXT,
    description="Say something to the room",
    usage="say <text>",
)
def do_say(world: World, session: Session, command: Command) -> None:
    if not command.args:
        raise ValidationError("say: nothing to say", user_friendly="Say what?")
    player = session.player
    session.tell(f'You say, "{command.args}"')
    world.tell_all_but_me(player, f'{player.name} says, "{command.args}"')


@registry.command(
    name="emote",
    shape=ArgumentShape.TEXT,
    description="Act something out",
    usage="emote <text>",
    aliases=["pose"],
)
def do_emote(world: World, session: Session, command: Command) -> None:
    if not command.args:
        raise ValidationError("emote: nothing to emote", user_friendly="Emote what?")
    player = session.player
    line = f"{player.name} {command.args}"
    session.tell(line)
    world.tell_all_but_me(player, line)


@registry.command(
    name="tell",
    shape=ArgumentShape.TARGETED,
    description="Send a private message to a player anywhere",
    usage="tell <player>=<text>",
    aliases=["page"],
    separator=TARGET_SEPARATOR,
)
def do_tell(world: World, session: Session, command: Command) -> None:
    if not command.target or not command.args:
        raise ValidationError("tell: missing player or text", user_friendly="Try: tell <player>=<text>")
    target = world.find_player(command.target)
    if target is None:
        raise NotFoundError(f"no player named {command.target!r}", user_friendly="No such player!")
    # Read once; the target may disconnect at any moment
    target_session = target.session
    if target_session is None:
        session.tell(f"{target.name} is asleep.")
        return
    me = session.player
    target_session.tell(f'{me.name} tells you, "{command.args}"')
    session.tell(f'You tell {target.name}, "{command.args}"')
