"""Error taxonomy for the TinyMUD core.

World operations and handlers raise these; routers catch them and tell the
invoking session `user_friendly`. None of them is meant to reach the
connection loop, which only deals with transport failures.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class MudError(Exception):
    """Base exception for all recoverable, user-facing MUD errors."""

    def __init__(self, message: str, user_friendly: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.user_friendly = user_friendly or message
        self.details = details or {}


class ValidationError(MudError):
    """Missing or malformed command arguments. Reported as a usage hint."""


class NotFoundError(MudError):
    """A named target, exit, room or player does not exist."""


class ConflictError(MudError):
    """Creation refused because the name is already taken."""


class NameTakenError(ConflictError):
    def __init__(self, name: str):
        super().__init__(f"player name {name!r} already exists",
                         user_friendly="Sorry, that name is in use.",
                         details={"name": name})


class DuplicateExitError(ConflictError):
    def __init__(self, name: str, room_key: int):
        super().__init__(f"exit {name!r} already leaves room #{room_key}",
                         user_friendly="An exit with that name already exists.",
                         details={"name": name, "room": room_key})


class PermissionDeniedError(MudError):
    """The actor lacks the required flag or ownership."""


class AuthError(MudError):
    """Wrong password, or the player is already connected elsewhere."""
