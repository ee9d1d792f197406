from __future__ import annotations

"""
look_service.py: what a player sees when they look at or examine something.

Small, pure formatting functions: each takes an entity and returns the lines
to send. No sockets, no globals, no side effects. Rooms are read through
`Room.contents()`, so the exit and occupant lists are a consistent snapshot
even while other connections move around.
"""

from typing import List

from world import Exit, Object, Player, Room


def _player_label(player: Player) -> str:
    return player.name if player.awake else f"{player.name} (asleep)"


def format_look(target: Object) -> List[str]:
    """Lines describing `target` the way `look` shows it.

    Rooms list their exits and every player present (asleep ones marked);
    exits and players show their name and description.
    """
    lines = [target.name, target.description]
    if isinstance(target, Room):
        exits, players = target.contents()
        if exits:
            lines.append("Exits: " + ", ".join(sorted(e.name for e in exits)))
        if players:
            lines.append("Players:")
            for p in sorted(players, key=lambda p: p.normal_name):
                lines.append("   " + _player_label(p))
    elif isinstance(target, Player) and not target.awake:
        lines.append(f"{target.name} is asleep.")
    return lines


def _flag_names(target: Object) -> str:
    names = [f.name.lower() for f in type(target.flags) if f in target.flags]
    return " ".join(names) if names else "none"


def format_examine(target: Object) -> List[str]:
    """Lines for `examine`: look output plus key, type, owner and flags."""
    owner = target.owner
    lines = [
        f"{target.name} (#{target.key}, {target.kind})",
        f"Owner: {owner.name if owner is not None else 'nobody'}",
        f"Flags: {_flag_names(target)}",
        target.description,
    ]
    if isinstance(target, Room):
        exits, players = target.contents()
        for e in sorted(exits, key=lambda e: e.key):
            lines.append(f"Exit: {e.name} (#{e.key}) -> {e.destination.name} (#{e.destination.key})")
        for p in sorted(players, key=lambda p: p.key):
            lines.append(f"Player: {_player_label(p)} (#{p.key})")
    elif isinstance(target, Exit):
        lines.append(f"Destination: {target.destination.name} (#{target.destination.key})")
    elif isinstance(target, Player):
        here = target.current_location()
        if here is not None:
            lines.append(f"Location: {here.name} (#{here.key})")
        lines.append("Awake" if target.awake else "Asleep")
    return lines
