"""Per-connection session state.

A Session is the thin carrier between a transport and the world: which player
(if any) the connection is logged in as, whether `quit` was requested, and a
`tell()` that writes one CRLF-terminated line to the peer.

The transport only needs a `sendall(bytes)` method, so a real socket and the
in-memory fake used by the tests are interchangeable.
"""

from __future__ import annotations

import itertools
import threading
from typing import Any, Optional, TYPE_CHECKING

from constants import ENCODING, LINE_ENDING
from safe_utils import safe_call

if TYPE_CHECKING:
    from world import Player

_session_ids = itertools.count(1)


class Session:
    def __init__(self, conn: Any, peer: str = "local") -> None:
        self.id = next(_session_ids)
        self.conn = conn
        self.peer = peer
        self.player: Optional["Player"] = None
        self.quit_requested = False
        # One message at a time per recipient
        self._write_lock = threading.Lock()

    def __repr__(self) -> str:
        who = self.player.name if self.authenticated else "unauthenticated"
        return f"<Session {self.id} {self.peer} {who}>"

    @property
    def authenticated(self) -> bool:
        return self.player is not None

    def tell(self, message: str, *args: Any) -> None:
        """Write one line to the peer.

        `args`, when given, are %-interpolated into `message`. Text from
        players is always passed pre-formatted with no args, so a stray '%'
        in it is never interpreted.
        """
        text = message % args if args else message
        data = (text + LINE_ENDING).encode(ENCODING, errors="replace")
        with self._write_lock:
            # A vanished peer must not break the thread that is talking to it
            safe_call(self.conn.sendall, data)
