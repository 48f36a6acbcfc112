from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .errors import ValidationFailure


MAX_OFFSET_MINUTES = 14 * 60


class Role(str, enum.Enum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Actor:
    role: Role
    actor_id: Optional[int] = None
    email: Optional[str] = None

    @classmethod
    def forbidden(cls, email: str | None = None) -> "Actor":
        return cls(Role.FORBIDDEN, None, email)

    @property
    def is_forbidden(self) -> bool:
        return self.role is Role.FORBIDDEN

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class RequestContext:
    """Everything a request needs, passed explicitly instead of stored globally.

    ``tz_offset_minutes`` follows the JavaScript ``getTimezoneOffset``
    convention (UTC minus local time, so Paris in winter is ``-60``). When it
    is ``None`` datetimes are stored and rendered exactly as received.
    """

    actor: Actor
    tz_offset_minutes: Optional[int] = None

    @property
    def client_timezone(self) -> timezone | None:
        if self.tz_offset_minutes is None:
            return None
        return timezone(-timedelta(minutes=self.tz_offset_minutes))

    def to_storage(self, value: datetime | str) -> datetime:
        """Convert a client datetime into the naive UTC value kept in the store."""
        if isinstance(value, str):
            dt = parse_iso_datetime(value)
        elif isinstance(value, datetime):
            dt = value
        else:
            raise ValidationFailure("Format de date invalide")
        if dt.tzinfo is not None:
            return dt.astimezone(timezone.utc).replace(tzinfo=None)
        if self.tz_offset_minutes is None:
            return dt
        return dt + timedelta(minutes=self.tz_offset_minutes)

    def for_display(self, value: datetime) -> str:
        tz = self.client_timezone
        if tz is None:
            return value.isoformat()
        return value.replace(tzinfo=timezone.utc).astimezone(tz).isoformat()


def parse_iso_datetime(value: str) -> datetime:
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationFailure(f"Format de date invalide : {value}") from exc


def parse_offset_header(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        minutes = int(raw.strip())
    except ValueError as exc:
        raise ValidationFailure("En-tête X-Timezone-Offset invalide") from exc
    if abs(minutes) > MAX_OFFSET_MINUTES:
        raise ValidationFailure("En-tête X-Timezone-Offset invalide")
    return minutes
