"""All-day calendar markers that are not courses (celebrations, holidays)."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Protocol

from flask import current_app

from .filters import DECORATION_CLASS


DECORATION_COLOR = "green"


class HolidaySource(Protocol):
    def holidays(self, year: int) -> list[tuple[date, str]]:  # pragma: no cover - interface
        """Return ``(day, local name)`` pairs of public holidays."""


class NoHolidays:
    """Default source: public holidays come from an external service."""

    def holidays(self, year: int) -> list[tuple[date, str]]:
        return []


def nth_sunday(year: int, month: int, n: int) -> date:
    first = date(year, month, 1)
    first_sunday = first + timedelta(days=(6 - first.weekday()) % 7)
    return first_sunday + timedelta(weeks=n - 1)


def _decoration(event_id: str, title: str, day: date) -> dict[str, object]:
    return {
        "id": event_id,
        "title": title,
        "start": day.isoformat(),
        "allDay": True,
        "display": "block",
        "backgroundColor": DECORATION_COLOR,
        "borderColor": DECORATION_COLOR,
        "textColor": "#fff",
        "classNames": [DECORATION_CLASS],
        "extendedProps": {
            "decoration": True,
            "session_type": "",
            "modules": [],
            "instructors": [],
            "instructor_ids": [],
            "rooms": [],
        },
    }


def celebration_events(year: int) -> list[dict[str, object]]:
    mothers_day = nth_sunday(year, 5, 2)
    fathers_day = nth_sunday(year, 6, 3)
    return [
        _decoration(f"fete-meres-{mothers_day.isoformat()}", "Fête des Mères", mothers_day),
        _decoration(f"fete-peres-{fathers_day.isoformat()}", "Fête des Pères", fathers_day),
    ]


def decoration_events(year: int, source: HolidaySource | None = None) -> list[dict[str, object]]:
    events: list[dict[str, object]] = []
    try:
        for day, name in (source or NoHolidays()).holidays(year):
            events.append(_decoration(f"hol-{day.isoformat()}", name, day))
    except Exception:
        current_app.logger.warning("Unable to load public holidays for %s", year, exc_info=True)
    events.extend(celebration_events(year))
    return events
