"""
Best-effort execution helpers for the transport edges of the server.

Writing to a socket whose peer has vanished, closing a socket twice, or
parsing a malformed environment variable should never take a connection
thread (let alone the server) down. These helpers run such operations, log
the first failure of each kind per call site, and return a fallback value.

Environment Opt-In (Debug Raising):
    Set DEBUG_RAISE_EXCEPTIONS to '1', 'true', 'yes' or 'on' to re-raise
    after the (still logged) failure. Read at call time, so tests can toggle
    it with monkeypatch.setenv.

Usage:
    safe_call(sock.close)
    port = safe_call_with_default(int, 4201, os.getenv('MUD_PORT'))
"""

import logging
import os
from typing import Callable, Optional, Set, TypeVar

# Call-site/exception-type pairs already logged this process
_seen_exceptions: Set[str] = set()

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _debug_raise_enabled() -> bool:
    return os.getenv('DEBUG_RAISE_EXCEPTIONS', '').strip().lower() in ('1', 'true', 'yes', 'on')


def _fn_name(fn: Callable) -> str:
    return getattr(fn, '__qualname__', None) or getattr(fn, '__name__', None) or str(fn)


def _note_failure(fn: Callable, exc: Exception, outcome: str) -> None:
    exc_type = type(exc).__name__
    exc_key = f"{_fn_name(fn)}:{exc_type}"
    if exc_key not in _seen_exceptions:
        _seen_exceptions.add(exc_key)
        logger.warning(
            "%s failed with %s: %s (%s; further %s from this call site are silent)",
            _fn_name(fn), exc_type, exc, outcome, exc_type,
        )


def safe_call(fn: Callable[..., T], *args, **kwargs) -> Optional[T]:
    """Run `fn`, returning None instead of raising on failure."""
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        _note_failure(fn, e, "returning None")
        if _debug_raise_enabled():
            raise
        return None


def safe_call_with_default(fn: Callable[..., T], default: T, *args, **kwargs) -> T:
    """Run `fn`, returning `default` instead of raising on failure.

    Example:
        port = safe_call_with_default(int, DEFAULT_PORT, os.getenv('MUD_PORT'))
    """
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        _note_failure(fn, e, f"returning default {default!r}")
        if _debug_raise_enabled():
            raise
        return default


def reset_seen_exceptions() -> None:
    """Forget which failures were logged. Used by tests."""
    _seen_exceptions.clear()
