"""
Small concurrency helpers for the threaded TinyMUD server.

Why this exists:
- Every connection runs on its own thread and they all read and mutate the
  same world graph. Each entity (room, exit, player) therefore carries its
  own read/write lock instead of the world having one big lock.
- The only operation that needs several entity locks at once is moving a
  player. `write_locked_in_order()` acquires them in ascending key order so
  two concurrent moves over the same pair of rooms can never deadlock.
- `KeyAllocator` hands out the unique, increasing integer keys entities are
  identified (and lock-ordered) by.

Usage:
    from concurrency_utils import RWLock, write_locked_in_order

    with room.lock.read():
        occupants = list(room.players.values())

    with player.lock.write():
        with write_locked_in_order([old_room, new_room]):
            ... mutate all three ...

Design notes:
- Locks are not reentrant. Callers never take a lock they already hold; the
  world module documents which of its methods acquire which locks.
- Writers get preference over newly arriving readers so a busy room cannot
  starve a movement.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List


class RWLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold a shared lock for the duration of the block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the exclusive lock for the duration of the block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


def lock_order(entities: Iterable[Any]) -> List[Any]:
    """Return the distinct entities sorted by ascending `key`.

    Entities are deduplicated by key so a room that is both source and
    destination of a move is locked once.
    """
    unique = {}
    for entity in entities:
        if entity is not None:
            unique[entity.key] = entity
    return [unique[k] for k in sorted(unique)]


@contextmanager
def write_locked_in_order(entities: Iterable[Any]) -> Iterator[None]:
    """Acquire the write locks of several entities in a stable order.

    Locks are sorted by entity key to guarantee a consistent acquisition
    order and are released in reverse order on every exit path.
    """
    ordered = lock_order(entities)
    acquired: List[Any] = []
    try:
        for entity in ordered:
            entity.lock.acquire_write()
            acquired.append(entity)
        yield
    finally:
        for entity in reversed(acquired):
            entity.lock.release_write()


class KeyAllocator:
    """Issues unique, strictly increasing integer keys starting at 1.

    Keys are never reused. Safe to call from any number of threads.
    """

    def __init__(self, start: int = 1) -> None:
        self._next = start
        self._guard = threading.Lock()

    def next(self) -> int:
        with self._guard:
            key = self._next
            self._next += 1
            return key

    def peek(self) -> int:
        """Return the key the next call to `next()` will hand out."""
        with self._guard:
            return self._next
