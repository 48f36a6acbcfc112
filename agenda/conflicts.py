"""Room double-booking detection.

Time ranges are half-open: a session ending at 11:00 and another starting at
11:00 in the same room do not conflict.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy import not_, or_, select

from . import db
from .errors import ConflictFailure, NotFound
from .models import Reservation, Room, Session, room_code


@dataclass(frozen=True)
class Availability:
    room_id: int
    available: bool
    conflicting_session_id: Optional[int] = None


@dataclass(frozen=True)
class OverlapViolation:
    room_id: int
    room_code: str
    first_session_id: int
    second_session_id: int


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    return not (a_end <= b_start or a_start >= b_end)


def lock_room(room_id: int) -> Room:
    """Take a row lock on the room for the rest of the current transaction.

    Concurrent bookings of the same room then queue behind each other between
    the availability check and the insert. SQLite ignores ``FOR UPDATE``;
    there ``transaction()`` holds the database write lock from its start.
    """

    room = db.session.execute(
        select(Room).where(Room.room_id == room_id).with_for_update()
    ).scalar_one_or_none()
    if room is None:
        raise NotFound(f"Salle {room_id} introuvable")
    return room


def find_conflict(
    room_id: int,
    start: datetime,
    end: datetime,
    *,
    exclude_session_id: int | None = None,
    lock: bool = False,
) -> Availability:
    """First session holding the room on ``[start, end)``.

    With ``lock`` the scan is a locking read: it sees rows committed after the
    transaction snapshot and keeps them until commit.
    """

    stmt = (
        select(Reservation.session_id)
        .join(Session, Session.session_id == Reservation.session_id)
        .where(
            Reservation.room_id == room_id,
            not_(or_(Session.ends_at <= start, Session.starts_at >= end)),
        )
        .order_by(Session.starts_at, Session.session_id)
        .limit(1)
    )
    if exclude_session_id is not None:
        stmt = stmt.where(Reservation.session_id != exclude_session_id)
    if lock:
        stmt = stmt.with_for_update()
    conflicting = db.session.scalar(stmt)
    if conflicting is None:
        return Availability(room_id, True)
    return Availability(room_id, False, conflicting)


def ensure_rooms_available(
    room_ids: Iterable[int],
    start: datetime,
    end: datetime,
    *,
    exclude_session_id: int | None = None,
    lock: bool = False,
) -> None:
    """Raise ``ConflictFailure`` naming every room busy on ``[start, end)``."""

    busy_rooms: list[str] = []
    busy_sessions: list[int] = []
    for room_id in dict.fromkeys(room_ids):
        room = lock_room(room_id) if lock else db.session.get(Room, room_id)
        if room is None:
            raise NotFound(f"Salle {room_id} introuvable")
        availability = find_conflict(
            room_id, start, end, exclude_session_id=exclude_session_id, lock=lock
        )
        if availability.available:
            continue
        current_app.logger.info(
            "Room %s busy between %s and %s (session %s)",
            room.code,
            start,
            end,
            availability.conflicting_session_id,
        )
        busy_rooms.append(room.code)
        busy_sessions.append(availability.conflicting_session_id)
    if busy_rooms:
        raise ConflictFailure(busy_rooms, busy_sessions)


def audit_overlaps() -> list[OverlapViolation]:
    """List every pair of reservations breaking the no-overlap rule."""

    rows = db.session.execute(
        select(
            Reservation.room_id,
            Room.building,
            Room.room_number,
            Session.session_id,
            Session.starts_at,
            Session.ends_at,
        )
        .join(Room, Room.room_id == Reservation.room_id)
        .join(Session, Session.session_id == Reservation.session_id)
        .order_by(Reservation.room_id, Session.starts_at, Session.session_id)
    ).all()

    by_room: dict[int, list] = defaultdict(list)
    for row in rows:
        by_room[row.room_id].append(row)

    violations: list[OverlapViolation] = []
    for room_id, bookings in by_room.items():
        active: list = []
        for booking in bookings:
            active = [item for item in active if item.ends_at > booking.starts_at]
            for other in active:
                violations.append(
                    OverlapViolation(
                        room_id=room_id,
                        room_code=room_code(booking.building, booking.room_number),
                        first_session_id=other.session_id,
                        second_session_id=booking.session_id,
                    )
                )
            active.append(booking)
    return violations
