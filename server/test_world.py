"""Tests for the world model: creation, movement, lookup and broadcast."""

import gc
import threading

import pytest

from command_parser import Command
from constants import DEFAULT_DESCRIPTION
from errors import DuplicateExitError, NameTakenError, NotFoundError
from world import Flags, Player, World, find_by_normalized_name, hash_password


# ============================================================================
# Creation
# ============================================================================

def test_keys_strictly_increase_across_entity_kinds(world):
    hall = world.create_room("The Hall")
    den = world.create_room("The Den")
    east = world.create_exit(hall, "east", den)
    bob = world.create_player("bob", "foo", hall)
    west = world.create_exit(den, "west", hall)
    keys = [hall.key, den.key, east.key, bob.key, west.key]
    assert keys == sorted(keys)
    assert len(set(keys)) == len(keys)
    assert hall.key == 1


def test_create_room_normalizes_name(world):
    room = world.create_room("The Great HALL")
    assert room.name == "The Great HALL"
    assert room.normal_name == "the great hall"
    assert world.rooms[room.key] is room


def test_rename_recomputes_normal_name(hall):
    hall.name = "Grand Foyer"
    assert hall.normal_name == "grand foyer"


def test_empty_description_renders_placeholder(hall):
    assert hall.description == DEFAULT_DESCRIPTION
    hall.description = "A lovely hall."
    assert hall.description == "A lovely hall."


def test_create_player_places_them_in_start_room(world, hall):
    bob = world.create_player("bob", "foo", hall)
    assert bob.location is hall
    assert hall.players == {bob.key: bob}
    assert world.players == {bob.key: bob}
    assert not bob.awake
    assert bob.session is None


def test_password_is_stored_as_digest(world, hall):
    bob = world.create_player("bob", "foo", hall)
    assert bob.password_hash == hash_password("foo")
    assert len(bob.password_hash) == 64
    assert b"foo" != bob.password_hash
    assert bob.check_password("foo")
    assert not bob.check_password("bar")


def test_duplicate_player_name_is_rejected_case_insensitively(world, hall):
    world.create_player("Bob", "foo", hall)
    before = dict(world.players)
    with pytest.raises(NameTakenError) as info:
        world.create_player("bOB", "bar", hall)
    assert info.value.user_friendly == "Sorry, that name is in use."
    assert world.players == before
    assert len(hall.players) == 1


def test_concurrent_creation_of_same_name_succeeds_once(world, hall):
    results = []
    start = threading.Barrier(8, timeout=5)

    def create():
        start.wait()
        try:
            world.create_player("twin", "pw", hall)
            results.append("ok")
        except NameTakenError:
            results.append("taken")

    threads = [threading.Thread(target=create) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)
    assert results.count("ok") == 1
    assert len(world.players) == 1
    assert world.validate() == []


def test_create_exit_updates_world_and_source(world, hall):
    den = world.create_room("The Den")
    east = world.create_exit(hall, "east", den)
    assert world.exits == {east.key: east}
    assert hall.exits == {east.key: east}
    assert den.exits == {}
    assert east.destination is den


def test_duplicate_exit_name_is_rejected_and_nothing_changes(world, hall):
    den = world.create_room("The Den")
    world.create_exit(hall, "East", den)
    world_exits, room_exits = dict(world.exits), dict(hall.exits)
    with pytest.raises(DuplicateExitError):
        world.create_exit(hall, "EAST", den)
    assert world.exits == world_exits
    assert hall.exits == room_exits


def test_same_exit_name_allowed_from_different_rooms(world, hall):
    den = world.create_room("The Den")
    world.create_exit(hall, "door", den)
    world.create_exit(den, "door", hall)
    assert len(world.exits) == 2


def test_dig_creates_owned_room_and_exit(world, hall):
    bob = world.create_player("bob", "foo", hall)
    room, exit_ = world.dig(hall, "east", "The Den", owner=bob)
    assert room.owner is bob and exit_.owner is bob
    assert exit_.destination is room
    assert hall.exits[exit_.key] is exit_


def test_dig_with_taken_exit_name_creates_no_room(world, hall):
    den = world.create_room("The Den")
    world.create_exit(hall, "east", den)
    rooms_before = dict(world.rooms)
    with pytest.raises(DuplicateExitError):
        world.dig(hall, "East", "Another Den")
    assert world.rooms == rooms_before


def test_flags_set_and_clear_independently(world, hall):
    bob = world.create_player("bob", "foo", hall)
    bob.set_flag(Flags.WIZARD)
    bob.set_flag(Flags.BUILDER)
    bob.clear_flag(Flags.BUILDER)
    assert bob.is_set(Flags.WIZARD)
    assert not bob.is_set(Flags.BUILDER)
    bob.clear_flag(Flags.BUILDER)
    assert not bob.is_set(Flags.BUILDER)


def test_build_permission_from_builder_or_wizard(world, hall):
    jim = world.create_player("jim", "foo", hall)
    assert not jim.has_build_permission()
    jim.set_flag(Flags.BUILDER)
    assert jim.has_build_permission()
    jim.clear_flag(Flags.BUILDER)
    jim.set_flag(Flags.WIZARD)
    assert jim.has_build_permission()


def test_start_room_is_lowest_key(world):
    assert world.start_room() is None
    first = world.create_room("First")
    world.create_room("Second")
    assert world.start_room() is first


# ============================================================================
# Movement
# ============================================================================

def test_move_player_updates_both_rooms_and_location(world, hall):
    den = world.create_room("The Den")
    bob = world.create_player("bob", "foo", hall)
    assert world.move_player(bob, den) is den
    assert bob.location is den
    assert bob.key not in hall.players
    assert den.players[bob.key] is bob
    assert world.validate() == []


def test_move_to_same_room_is_harmless(world, hall):
    bob = world.create_player("bob", "foo", hall)
    world.move_player(bob, hall)
    assert hall.players == {bob.key: bob}


def test_concurrent_moves_over_same_rooms_complete(world, hall):
    den = world.create_room("The Den")
    bob = world.create_player("bob", "foo", hall)
    jim = world.create_player("jim", "foo", den)

    def shuttle(player, first, second):
        for _ in range(300):
            world.move_player(player, first)
            world.move_player(player, second)

    t1 = threading.Thread(target=shuttle, args=(bob, den, hall))
    t2 = threading.Thread(target=shuttle, args=(jim, hall, den))
    t1.start()
    t2.start()
    t1.join(20)
    t2.join(20)
    assert not t1.is_alive() and not t2.is_alive()
    assert bob.location is hall and jim.location is den
    assert world.validate() == []


def test_observer_never_sees_player_in_zero_or_two_rooms(world, hall):
    den = world.create_room("The Den")
    bob = world.create_player("bob", "foo", hall)
    stop = threading.Event()
    bad = []

    def mover():
        while not stop.is_set():
            world.move_player(bob, den)
            world.move_player(bob, hall)

    def observer():
        for _ in range(2000):
            # Same ascending-key order the mover uses
            with hall.lock.read():
                with den.lock.read():
                    count = (bob.key in hall.players) + (bob.key in den.players)
                    where = hall if bob.key in hall.players else den
                    if count != 1 or bob.location is not where:
                        bad.append(count)

    m = threading.Thread(target=mover)
    m.start()
    try:
        observer()
    finally:
        stop.set()
        m.join(10)
    assert bad == []


# ============================================================================
# Lookup
# ============================================================================

def test_find_by_normalized_name_is_case_insensitive(world, hall):
    bob = world.create_player("Bob", "foo", hall)
    assert find_by_normalized_name([hall, bob], "BOB") is bob
    assert find_by_normalized_name([hall, bob], "nobody") is None


def test_find_player(world, hall):
    bob = world.create_player("Bob", "foo", hall)
    assert world.find_player("bob") is bob
    assert world.find_player("jim") is None


def test_find_target_precedence(world, hall, connect):
    den = world.create_room("The Den")
    bob = world.create_player("bob", "foo", hall)
    jim = world.create_player("jim", "foo", hall)
    east = world.create_exit(hall, "east", den)
    # An exit sharing a player's name wins over the player
    jim_exit = world.create_exit(hall, "Jim", den)
    session, _ = connect("bob")

    assert world.find_target(session, Command("look", "")) is hall
    assert world.find_target(session, Command("look", "here")) is hall
    assert world.find_target(session, Command("look", "me")) is bob
    assert world.find_target(session, Command("look", "EAST")) is east
    assert world.find_target(session, Command("look", "jim")) is jim_exit
    assert jim.location is hall


def test_find_target_only_searches_current_room(world, hall, connect):
    den = world.create_room("The Den")
    world.create_player("bob", "foo", hall)
    world.create_player("sally", "foo", den)
    session, _ = connect("bob")
    with pytest.raises(NotFoundError) as info:
        world.find_target(session, Command("look", "sally"))
    assert info.value.user_friendly == "I don't see that here."


# ============================================================================
# Sessions & broadcast
# ============================================================================

def test_attach_session_refuses_second_session(world, hall, new_session):
    bob = world.create_player("bob", "foo", hall)
    first, _ = new_session()
    second, _ = new_session()
    assert world.attach_session(bob, first)
    assert not world.attach_session(bob, second)
    assert bob.session is first
    assert second.player is None
    assert bob.awake


def test_tell_all_but_me_skips_self_asleep_and_other_rooms(world, hall, connect_all):
    den = world.create_room("The Den")
    world.create_player("bob", "foo", hall)
    world.create_player("jim", "foo", hall)
    world.create_player("zed", "foo", hall)  # never connects
    world.create_player("sally", "foo", den)
    (bob_s, bob_c), (jim_s, jim_c), (sally_s, sally_c) = connect_all("bob", "jim", "sally")

    world.tell_all_but_me(bob_s.player, "Hello there.")

    assert bob_c.output() == ""
    assert jim_c.output() == "Hello there.\r\n"
    assert sally_c.output() == ""


def test_detach_session_sleeps_player_and_notifies_once(world, hall, connect):
    world.create_player("bob", "foo", hall)
    world.create_player("jim", "foo", hall)
    bob_s, _ = connect("bob")
    jim_s, jim_c = connect("jim")
    bob = bob_s.player

    assert world.detach_session(bob_s) is bob
    assert world.detach_session(bob_s) is None

    assert not bob.awake
    assert bob.session is None
    assert bob_s.player is None
    assert jim_c.output().count("bob has disconnected.") == 1
    # Still in the world, still in the room
    assert world.players[bob.key] is bob
    assert hall.players[bob.key] is bob


def test_validate_reports_corrupted_occupancy(world, hall):
    den = world.create_room("The Den")
    bob = world.create_player("bob", "foo", hall)
    den.players[bob.key] = bob  # corrupt on purpose
    assert any("2 rooms" in e for e in world.validate())


def test_owner_is_not_a_strong_reference():
    w = World()
    room = w.create_room("Room")
    ghost = Player(999, "ghost", "pw")
    room.owner = ghost
    assert room.owner is ghost
    del ghost
    gc.collect()
    assert room.owner is None
