"""World model for the TinyMUD (small, in-memory, shared by every connection).

Concepts:
- Object: the capability every entity shares. A unique integer key, a display
  name plus its case-folded form for lookups, a description, capability flags
  and an optional owning Player.
- Room: a place. Holds the exits leaving it and the players standing in it.
- Exit: a one-way link from a Room to a destination Room.
- Player: a character a connection logs in as. Always located in one Room.
- World: owns every collection and the key allocator, and is the only place
  that mutates the room/exit/player graph.

Locking rules (see concurrency_utils for the primitives):
- Each entity has its own RWLock (`entity.lock`).
- Moving a player takes the player's write lock, then the write locks of the
  old and new room in ascending key order.
- Nobody takes a player lock while holding a room lock.
- `World._lock` guards the three world collections. It is always the
  innermost lock and is never held while acquiring an entity lock.
"""

from __future__ import annotations

import enum
import hashlib
import hmac
import logging
import threading
import weakref
from typing import Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING, TypeVar

from concurrency_utils import KeyAllocator, RWLock, write_locked_in_order
from constants import DEFAULT_DESCRIPTION, MSG_NOT_HERE
from errors import DuplicateExitError, NameTakenError, NotFoundError

if TYPE_CHECKING:  # import only for typing to avoid runtime cycles
    from command_parser import Command
    from session import Session

logger = logging.getLogger(__name__)


class Flags(enum.IntFlag):
    """Capability grants carried by every Object."""
    WIZARD = 1
    BUILDER = 2
    PROGRAMMER = 4


# Names accepted by @set, lowercase
FLAG_NAMES: Dict[str, Flags] = {
    "wizard": Flags.WIZARD,
    "builder": Flags.BUILDER,
    "programmer": Flags.PROGRAMMER,
}


def normalize_name(name: str) -> str:
    return name.casefold()


def hash_password(raw: str) -> bytes:
    """Fixed-width SHA-512 digest of a raw password."""
    return hashlib.sha512(raw.encode("utf-8")).digest()


class Object:
    """Attributes and behavior shared by Rooms, Exits and Players."""

    kind = "object"

    def __init__(self, key: int, name: str, description: str = "") -> None:
        self._key = key
        self.lock = RWLock()
        self._name = name
        self._normal_name = normalize_name(name)
        self._description = description
        self._flags = Flags(0)
        self._owner_ref: Optional[weakref.ReferenceType] = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} #{self._key} {self._name!r}>"

    @property
    def key(self) -> int:
        return self._key

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        with self.lock.write():
            self._name = value
            self._normal_name = normalize_name(value)

    @property
    def normal_name(self) -> str:
        return self._normal_name

    @property
    def description(self) -> str:
        """The description, or a placeholder when none was ever set."""
        return self._description or DEFAULT_DESCRIPTION

    @description.setter
    def description(self, value: str) -> None:
        with self.lock.write():
            self._description = value

    @property
    def owner(self) -> Optional["Player"]:
        # Weak so ownership never keeps a player alive on its own
        return self._owner_ref() if self._owner_ref is not None else None

    @owner.setter
    def owner(self, player: Optional["Player"]) -> None:
        with self.lock.write():
            self._owner_ref = weakref.ref(player) if player is not None else None

    @property
    def flags(self) -> Flags:
        return self._flags

    def set_flag(self, flag: Flags) -> None:
        with self.lock.write():
            self._flags |= flag

    def clear_flag(self, flag: Flags) -> None:
        with self.lock.write():
            self._flags &= ~flag

    def is_set(self, flag: Flags) -> bool:
        return bool(self._flags & flag)


class Room(Object):
    kind = "room"

    def __init__(self, key: int, name: str, description: str = "") -> None:
        super().__init__(key, name, description)
        self.exits: Dict[int, Exit] = {}
        self.players: Dict[int, Player] = {}

    def contents(self) -> Tuple[List["Exit"], List["Player"]]:
        """Snapshot of (exits, players) taken under the room's read lock."""
        with self.lock.read():
            return list(self.exits.values()), list(self.players.values())

    def occupants(self) -> List["Player"]:
        with self.lock.read():
            return list(self.players.values())


class Exit(Object):
    kind = "exit"

    def __init__(self, key: int, name: str, destination: Room) -> None:
        super().__init__(key, name)
        self.destination = destination


class Player(Object):
    """A character. `awake` is true exactly while a session is attached."""

    kind = "player"

    def __init__(self, key: int, name: str, raw_password: str) -> None:
        super().__init__(key, name)
        self.password_hash = hash_password(raw_password)
        self.location: Optional[Room] = None
        self.session: Optional["Session"] = None

    @property
    def awake(self) -> bool:
        return self.session is not None

    def check_password(self, raw: str) -> bool:
        return hmac.compare_digest(self.password_hash, hash_password(raw))

    def current_location(self) -> Optional[Room]:
        with self.lock.read():
            return self.location

    def has_build_permission(self) -> bool:
        return self.is_set(Flags.WIZARD) or self.is_set(Flags.BUILDER)


E = TypeVar("E", bound=Object)


def find_by_normalized_name(entities: Iterable[E], name: str) -> Optional[E]:
    """Return the first entity whose normalized name matches `name`."""
    wanted = normalize_name(name)
    for entity in entities:
        if entity.normal_name == wanted:
            return entity
    return None


class World:
    def __init__(self) -> None:
        self.keys = KeyAllocator()
        self.rooms: Dict[int, Room] = {}
        self.exits: Dict[int, Exit] = {}
        self.players: Dict[int, Player] = {}
        # Guards the three collections above; always innermost
        self._lock = threading.Lock()
        # Serializes player creation so a name can only be claimed once
        self._registration = threading.Lock()

    # --- Creation ---
    def create_room(self, name: str, owner: Optional[Player] = None) -> Room:
        room = Room(self.keys.next(), name)
        if owner is not None:
            room.owner = owner
        with self._lock:
            self.rooms[room.key] = room
        logger.debug("created room #%d %r", room.key, name)
        return room

    def create_exit(self, source: Room, name: str, destination: Room,
                    owner: Optional[Player] = None) -> Exit:
        """Create an exit from `source` to `destination`.

        Raises DuplicateExitError when `source` already has an exit with the
        same case-insensitive name; nothing is committed in that case.
        """
        with source.lock.write():
            self._check_exit_free(source, name)
            return self._add_exit(source, name, destination, owner)

    def dig(self, source: Room, exit_name: str, room_name: str,
            owner: Optional[Player] = None) -> Tuple[Room, Exit]:
        """Create a new room and an exit to it from `source` in one step.

        The exit name is checked before the room is created, under the same
        lock, so a duplicate leaves no orphan room behind.
        """
        with source.lock.write():
            self._check_exit_free(source, exit_name)
            room = self.create_room(room_name, owner)
            exit_ = self._add_exit(source, exit_name, room, owner)
        return room, exit_

    def _check_exit_free(self, source: Room, name: str) -> None:
        # Caller holds source's write lock
        if find_by_normalized_name(source.exits.values(), name) is not None:
            raise DuplicateExitError(name, source.key)

    def _add_exit(self, source: Room, name: str, destination: Room,
                  owner: Optional[Player]) -> Exit:
        # Caller holds source's write lock
        exit_ = Exit(self.keys.next(), name, destination)
        if owner is not None:
            exit_.owner = owner
        source.exits[exit_.key] = exit_
        with self._lock:
            self.exits[exit_.key] = exit_
        logger.debug("created exit #%d %r from #%d to #%d", exit_.key, name, source.key, destination.key)
        return exit_

    def create_player(self, name: str, raw_password: str, starting_location: Room) -> Player:
        """Create a player and place them in `starting_location`.

        Raises NameTakenError when any player already has the same
        case-insensitive name. The player is placed in the room before being
        published in `players`, so nobody can observe a roomless player.
        """
        with self._registration:
            with self._lock:
                taken = find_by_normalized_name(list(self.players.values()), name)
            if taken is not None:
                raise NameTakenError(name)
            player = Player(self.keys.next(), name, raw_password)
            self.move_player(player, starting_location)
            with self._lock:
                self.players[player.key] = player
        logger.info("created player #%d %r", player.key, name)
        return player

    # --- Movement ---
    def move_player(self, player: Player, destination: Room) -> Room:
        """Move `player` into `destination` and return the new location.

        Takes the player's write lock, then the old and new room write locks
        in ascending key order, so the move is atomic to every reader and two
        concurrent moves can never deadlock.
        """
        with player.lock.write():
            old_room = player.location
            with write_locked_in_order([old_room, destination]):
                if old_room is not None:
                    old_room.players.pop(player.key, None)
                destination.players[player.key] = player
                player.location = destination
        return destination

    # --- Lookup ---
    def get_room(self, key: int) -> Optional[Room]:
        with self._lock:
            return self.rooms.get(key)

    def start_room(self) -> Optional[Room]:
        """The room new players start in: the lowest-keyed room."""
        with self._lock:
            if not self.rooms:
                return None
            return self.rooms[min(self.rooms)]

    def find_player(self, name: str) -> Optional[Player]:
        with self._lock:
            candidates = list(self.players.values())
        return find_by_normalized_name(candidates, name)

    def find_target(self, session: "Session", command: "Command") -> Object:
        """Resolve `command.target` from the point of view of `session`.

        "" or "here" is the current room, "me" is the session's own player,
        otherwise exits of the current room win over players in it.
        Raises NotFoundError when nothing matches.
        """
        player = session.player
        if player is None:
            raise NotFoundError("session has no player", user_friendly=MSG_NOT_HERE)
        target = normalize_name(command.target.strip())
        here = player.current_location()
        if here is None:
            raise NotFoundError("player has no location", user_friendly=MSG_NOT_HERE)

        if target in ("", "here"):
            return here
        if target == "me":
            return player

        exits, occupants = here.contents()
        found: Optional[Object] = find_by_normalized_name(exits, target)
        if found is None:
            found = find_by_normalized_name(occupants, target)
        if found is None:
            raise NotFoundError(f"target {command.target!r} not found",
                                user_friendly=MSG_NOT_HERE)
        return found

    def find_exit(self, room: Room, name: str) -> Optional[Exit]:
        exits, _ = room.contents()
        return find_by_normalized_name(exits, name)

    def exit_names(self, room: Room) -> List[str]:
        exits, _ = room.contents()
        return [e.name for e in exits]

    # --- Sessions & messaging ---
    def attach_session(self, player: Player, session: "Session") -> bool:
        """Link `session` to `player` unless another session already holds it."""
        with player.lock.write():
            if player.session is not None:
                return False
            player.session = session
        session.player = player
        return True

    def detach_session(self, session: "Session") -> Optional[Player]:
        """Put the session's player to sleep and tell the room they left.

        Safe to call more than once; only the first call has any effect.
        Returns the player that was detached, if any.
        """
        player = session.player
        if player is None:
            return None
        session.player = None
        with player.lock.write():
            owned = player.session is session
            if owned:
                player.session = None
        if not owned:
            return None
        self.tell_all_but_me(player, f"{player.name} has disconnected.")
        logger.info("player #%d %r disconnected", player.key, player.name)
        return player

    def tell_all_but_me(self, me: Player, message: str, *args) -> None:
        """Deliver a message to every other awake player in `me`'s room.

        Occupants are snapshotted under the room's read lock; delivery happens
        after the lock is released. Asleep players are skipped.
        """
        room = me.current_location()
        if room is None:
            return
        for player in room.occupants():
            if player is me:
                continue
            session = player.session
            if session is not None:
                session.tell(message, *args)

    # --- Integrity ---
    def validate(self) -> List[str]:
        """Check the room/exit/player invariants and return any violations.

        Only meaningful on a quiescent world (tests, debugging).
        """
        errors: List[str] = []
        with self._lock:
            rooms = list(self.rooms.values())
            exits = dict(self.exits)
            players = dict(self.players)

        exit_homes: Dict[int, int] = {}
        player_homes: Dict[int, List[int]] = {}
        for room in rooms:
            room_exits, room_players = room.contents()
            for e in room_exits:
                if e.key in exit_homes:
                    errors.append(f"Exit #{e.key} leaves rooms #{exit_homes[e.key]} and #{room.key}")
                exit_homes[e.key] = room.key
                if e.key not in exits:
                    errors.append(f"Exit #{e.key} in room #{room.key} is missing from the world")
            for p in room_players:
                player_homes.setdefault(p.key, []).append(room.key)

        for key in exits:
            if key not in exit_homes:
                errors.append(f"Exit #{key} does not leave any room")
        for key, player in players.items():
            homes = player_homes.get(key, [])
            if len(homes) != 1:
                errors.append(f"Player #{key} is in {len(homes)} rooms")
            elif player.location is None or player.location.key != homes[0]:
                errors.append(f"Player #{key} location does not match room #{homes[0]}")
        return errors
