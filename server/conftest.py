from __future__ import annotations
"""Pytest shared fixtures.

Tests talk to the world through real Session objects bound to an in-memory
FakeConnection, so everything a handler writes can be asserted on exactly
as a telnet client would receive it (CRLF line endings included).
"""
from typing import List, Optional

import pytest

import message_handler  # noqa: F401  (registers every verb)
from command_parser import Command
from safe_utils import reset_seen_exceptions
from session import Session
from world import World


class FakeConnection:
    """Socket stand-in: scripted recv() chunks, captured sendall() bytes."""

    def __init__(self, chunks: Optional[List[bytes]] = None, error: Optional[Exception] = None):
        self.chunks = list(chunks or [])
        self.error = error
        self.sent = bytearray()
        self.closed = False

    def recv(self, size: int) -> bytes:
        if self.chunks:
            return self.chunks.pop(0)
        if self.error is not None:
            raise self.error
        return b""

    def sendall(self, data: bytes) -> None:
        if self.closed:
            raise OSError("send on closed connection")
        self.sent.extend(data)

    def close(self) -> None:
        self.closed = True

    def output(self) -> str:
        return self.sent.decode("utf-8")

    def lines(self) -> List[str]:
        return [ln for ln in self.output().split("\r\n") if ln]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture(autouse=True)
def _quiet_safe_utils(monkeypatch):
    monkeypatch.delenv("DEBUG_RAISE_EXCEPTIONS", raising=False)
    reset_seen_exceptions()
    yield


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def hall(world):
    """Room #1, where every test player starts."""
    return world.create_room("The Hall")


@pytest.fixture
def new_session():
    """Factory: new_session() -> (Session, FakeConnection)."""
    def _make(peer: str = "test"):
        conn = FakeConnection()
        return Session(conn, peer), conn
    return _make


@pytest.fixture
def connect(world, new_session):
    """Factory: connect('bob') logs a fresh session in as an existing player.

    Returns (session, conn) with the login chatter already cleared from conn.
    """
    from auth_router import do_connect

    def _connect(name: str, password: str = "foo"):
        session, conn = new_session(name)
        do_connect(world, session, Command("connect", name, password))
        assert session.player is not None, conn.output()
        conn.clear()
        return session, conn
    return _connect


@pytest.fixture
def connect_all(connect):
    """Factory: connect_all('bob', 'jim') logs each in, then clears every conn.

    Later logins announce themselves to earlier ones; clearing at the end
    leaves every connection empty before the test acts.
    """
    def _connect_all(*names: str):
        pairs = [connect(name) for name in names]
        for _, conn in pairs:
            conn.clear()
        return pairs
    return _connect_all
