"""Errors raised by the booking core and mapped to RPC responses."""
from __future__ import annotations

from typing import Iterable


class AgendaError(Exception):
    """Base class carrying the HTTP status used in the RPC response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationFailure(AgendaError):
    status_code = 401


class AuthorizationFailure(AgendaError):
    status_code = 403


class ValidationFailure(AgendaError):
    status_code = 400


class NotFound(AgendaError):
    status_code = 404


class InternalFailure(AgendaError):
    status_code = 500


class ConflictFailure(AgendaError):
    """Raised when a room is already reserved on the requested time range."""

    status_code = 409

    def __init__(
        self,
        rooms: Iterable[str],
        session_ids: Iterable[int] = (),
        message: str | None = None,
    ) -> None:
        self.rooms = list(rooms)
        self.session_ids = list(session_ids)
        super().__init__(message or describe_busy_rooms(self.rooms))


def describe_busy_rooms(rooms: list[str]) -> str:
    if len(rooms) > 1:
        return (
            f"Les salles {', '.join(rooms)} sont déjà réservées pour ce créneau."
        )
    if rooms:
        return f"La salle {rooms[0]} est déjà réservée pour ce créneau."
    return "La salle est déjà réservée pour ce créneau."
