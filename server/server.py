from __future__ import annotations

"""
Threaded TCP server for TinyMUD.

What this file does (in plain English):
- Listens on a TCP port. Every accepted connection gets its own thread.
- Each thread reads newline-terminated lines from its socket and hands them
  to message_handler.handle_line(), which parses and dispatches them against
  the one shared World.
- When the peer sends `quit`, closes the connection, or the socket errors
  out, the thread puts the player to sleep, tells their room, and exits.

Configuration comes from environment variables (optionally from a .env file):

    MUD_HOST / MUD_PORT             where to listen (127.0.0.1:4201)
    MUD_MAX_MESSAGE_LEN             longest accepted input line (1000)
    MUD_START_ROOM_NAME             name of room #1 ("The Void")
    MUD_WIZARD_NAME / _PASSWORD     create a wizard owning room #1 at boot
    MUD_LOG_LEVEL / MUD_LOG_FORMAT  logging level, and 'text' or 'json'

Run it with `python server/server.py` or the `tinymud` console script.
"""

import json
import logging
import os
import socket
import threading
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple

from dotenv import load_dotenv

from constants import (
    DEFAULT_HOST,
    DEFAULT_MAX_MESSAGE_LENGTH,
    DEFAULT_PORT,
    DEFAULT_START_ROOM_NAME,
    ENCODING,
    ENV_HOST,
    ENV_LOG_FORMAT,
    ENV_LOG_LEVEL,
    ENV_MAX_MESSAGE_LEN,
    ENV_PORT,
    ENV_START_ROOM_NAME,
    ENV_WIZARD_NAME,
    ENV_WIZARD_PASSWORD,
    RECV_CHUNK_SIZE,
    WELCOME_BANNER,
)
from message_handler import handle_line
from safe_utils import safe_call, safe_call_with_default
from session import Session
from world import Flags, World

logger = logging.getLogger(__name__)


# Structured logging (env-driven):
# - MUD_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR|CRITICAL (default INFO)
# - MUD_LOG_FORMAT: 'json' or 'text' (default text)
class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'ts': self.formatTime(record, datefmt='%Y-%m-%dT%H:%M:%S'),
            'level': record.levelname,
            'name': record.name,
            'thread': record.threadName,
            'message': record.getMessage(),
        }
        if record.exc_info:
            payload['exc'] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _setup_logging() -> None:
    """Configure the root logger from the environment."""
    level_name = (os.getenv(ENV_LOG_LEVEL) or 'INFO').strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt_mode = (os.getenv(ENV_LOG_FORMAT) or 'text').strip().lower()
    if fmt_mode == 'json':
        handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
        root = logging.getLogger()
        root.handlers = [handler]
        root.setLevel(level)
    else:
        logging.basicConfig(level=level, format='[%(levelname)s] %(threadName)s %(name)s: %(message)s')


def _env_str(name: str, default: str) -> str:
    """Get environment variable as string with fallback to default."""
    v = os.getenv(name)
    return default if v is None else str(v)


def _env_int(name: str, default: int) -> int:
    return safe_call_with_default(int, default, _env_str(name, str(default)))


@dataclass
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_message_len: int = DEFAULT_MAX_MESSAGE_LENGTH
    start_room_name: str = DEFAULT_START_ROOM_NAME
    wizard_name: Optional[str] = None
    wizard_password: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ServerConfig":
        return cls(
            host=_env_str(ENV_HOST, DEFAULT_HOST),
            port=_env_int(ENV_PORT, DEFAULT_PORT),
            max_message_len=_env_int(ENV_MAX_MESSAGE_LEN, DEFAULT_MAX_MESSAGE_LENGTH),
            start_room_name=_env_str(ENV_START_ROOM_NAME, DEFAULT_START_ROOM_NAME),
            wizard_name=os.getenv(ENV_WIZARD_NAME) or None,
            wizard_password=os.getenv(ENV_WIZARD_PASSWORD) or None,
        )


def build_world(config: ServerConfig) -> World:
    """Create the boot world: room #1, plus an optional wizard who owns it."""
    world = World()
    start = world.create_room(config.start_room_name)
    if config.wizard_name and config.wizard_password:
        wizard = world.create_player(config.wizard_name, config.wizard_password, start)
        wizard.set_flag(Flags.WIZARD)
        wizard.set_flag(Flags.BUILDER)
        start.owner = wizard
        logger.info("Created wizard #%d %r", wizard.key, wizard.name)
    return world


def read_lines(conn: Any) -> Iterator[str]:
    """Yield decoded lines from a socket-like object until EOF.

    Trailing CR/LF is stripped; undecodable bytes are replaced. A partial
    last line without a newline is still yielded at EOF. Transport errors
    (OSError) propagate to the caller.
    """
    buf = b''
    while True:
        chunk = conn.recv(RECV_CHUNK_SIZE)
        if not chunk:
            break
        buf += chunk
        while b'\n' in buf:
            raw, buf = buf.split(b'\n', 1)
            yield raw.decode(ENCODING, errors='replace').rstrip('\r')
    if buf:
        yield buf.decode(ENCODING, errors='replace').rstrip('\r')


def serve_connection(world: World, conn: Any, peer: str = 'local',
                     max_len: int = DEFAULT_MAX_MESSAGE_LENGTH) -> Session:
    """Run one connection until quit, EOF or a transport error.

    Whatever ends the loop, the session is detached from its player (asleep,
    link cleared, disconnect notice to the room) and the socket is closed.
    """
    session = Session(conn, peer)
    logger.info("Connection opened: %s", peer)
    try:
        for line in WELCOME_BANNER:
            session.tell(line)
        for line in read_lines(conn):
            handle_line(world, session, line, max_len=max_len)
            if session.quit_requested:
                break
    except OSError as e:
        logger.info("Connection %s lost: %s", peer, e)
    finally:
        world.detach_session(session)
        safe_call(conn.close)
        logger.info("Connection closed: %s", peer)
    return session


class MudServer:
    """Accept loop that hands each connection to its own thread."""

    def __init__(self, world: World, config: ServerConfig) -> None:
        self.world = world
        self.config = config
        self._sock: Optional[socket.socket] = None
        self._stopping = threading.Event()
        # Live connection threads and their sockets, pruned on each accept
        self._live: List[Tuple[threading.Thread, socket.socket]] = []
        self._live_lock = threading.Lock()

    @property
    def address(self) -> tuple:
        return self._sock.getsockname() if self._sock is not None else (self.config.host, self.config.port)

    def bind(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((self.config.host, self.config.port))
        sock.listen(16)
        # Lets serve_forever() notice shutdown() without a connection arriving
        sock.settimeout(1.0)
        self._sock = sock
        logger.info("Listening on %s:%d", *self.address[:2])

    def serve_forever(self) -> None:
        if self._sock is None:
            self.bind()
        # shutdown() clears self._sock from another thread
        sock = self._sock
        while not self._stopping.is_set():
            try:
                conn, addr = sock.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._stopping.is_set():
                    break
                raise
            if self._stopping.is_set():
                safe_call(conn.close)
                break
            conn.settimeout(None)
            peer = f"{addr[0]}:{addr[1]}"
            t = threading.Thread(
                target=serve_connection,
                args=(self.world, conn, peer, self.config.max_message_len),
                name=f"conn-{peer}",
                daemon=True,
            )
            with self._live_lock:
                self._live = [(th, c) for th, c in self._live if th.is_alive()]
                self._live.append((t, conn))
            t.start()

    def live_connections(self) -> int:
        with self._live_lock:
            return sum(1 for th, _ in self._live if th.is_alive())

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop accepting, end every live connection and wait for its thread.

        Shutting a socket down makes its thread's recv() return EOF, so each
        connection leaves through the usual detach path.
        """
        self._stopping.set()
        if self._sock is not None:
            safe_call(self._sock.close)
            self._sock = None
        with self._live_lock:
            live = [(t, c) for t, c in self._live if t.is_alive()]
            self._live = []
        for _, conn in live:
            safe_call(conn.shutdown, socket.SHUT_RDWR)
        for t, _ in live:
            t.join(timeout)
            if t.is_alive():
                logger.warning("Connection thread %s did not exit within %.1fs", t.name, timeout)
        logger.info("Server stopped; %d connection(s) closed", len(live))


def main() -> None:
    load_dotenv()
    _setup_logging()
    config = ServerConfig.from_env()
    world = build_world(config)
    server = MudServer(world, config)
    server.bind()
    print("\n=== TinyMUD Server Starting ===")
    print(f"Listening on: {config.host}:{config.port}")
    print(f"Connect with: telnet {config.host} {config.port}")
    print("===============================\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        server.shutdown()


# --- Run the Server ---
if __name__ == '__main__':
    main()
