from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .context import Actor, Role
from .errors import ValidationFailure
from .models import MODULE_ROLES, TRACK_ALL, TRACK_CHOICES


DECORATION_CLASS = "holiday-event"


@dataclass(frozen=True)
class FilterCriteria:
    modules: frozenset[tuple[int, str]] = frozenset()
    tracks: frozenset[str] = frozenset()
    mine_only: bool = False

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any] | None) -> "FilterCriteria":
        if not raw:
            return cls()
        if not isinstance(raw, Mapping):
            raise ValidationFailure("Les filtres doivent être un objet")
        modules = frozenset(_parse_module_key(item) for item in _list_field(raw, "modules"))
        tracks = _list_field(raw, "tracks")
        if not all(isinstance(track, str) for track in tracks):
            raise ValidationFailure("Les parcours doivent être des libellés")
        tracks = frozenset(tracks)
        unknown = tracks - set(TRACK_CHOICES)
        if unknown:
            raise ValidationFailure(f"Parcours inconnu : {', '.join(sorted(unknown))}")
        return cls(modules=modules, tracks=tracks, mine_only=bool(raw.get("mine_only")))


def _list_field(raw: Mapping[str, Any], name: str) -> list[Any]:
    value = raw.get(name) or []
    if not isinstance(value, (list, tuple)):
        raise ValidationFailure(f"Le filtre {name} doit être une liste")
    return list(value)


def _parse_module_key(item: Any) -> tuple[int, str]:
    # Accepts {"module_id": 3, "module_role": "major"} or the compact "3-major".
    if isinstance(item, Mapping):
        module_id, module_role = item.get("module_id"), item.get("module_role")
    elif isinstance(item, str) and "-" in item:
        module_id, module_role = item.split("-", 1)
    else:
        raise ValidationFailure(f"Filtre de module invalide : {item}")
    try:
        module_id = int(module_id)
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"Filtre de module invalide : {item}") from exc
    if module_role not in MODULE_ROLES:
        raise ValidationFailure(f"Filtre de module invalide : {item}")
    return module_id, module_role


def is_decoration(event: Mapping[str, Any]) -> bool:
    if DECORATION_CLASS in (event.get("classNames") or ()):
        return True
    return bool((event.get("extendedProps") or {}).get("decoration"))


def _matches_modules(event: Mapping[str, Any], wanted: frozenset[tuple[int, str]]) -> bool:
    modules = (event.get("extendedProps") or {}).get("modules") or ()
    return any((module["module_id"], module["module_role"]) in wanted for module in modules)


def _matches_tracks(event: Mapping[str, Any], wanted: frozenset[str]) -> bool:
    track = (event.get("extendedProps") or {}).get("track")
    return track == TRACK_ALL or track in wanted


def _is_mine(event: Mapping[str, Any], instructor_id: int | None) -> bool:
    instructor_ids = (event.get("extendedProps") or {}).get("instructor_ids") or ()
    return instructor_id in instructor_ids


def filter_events(
    events: Iterable[Mapping[str, Any]], criteria: FilterCriteria, actor: Actor
) -> list[Mapping[str, Any]]:
    """Narrow an already built event list for display.

    Module and track filters apply to staff only and let decorations through;
    "mine only" is an instructor filter and drops everything not taught by them.
    """

    displayed = list(events)
    staff = actor.role in (Role.ADMIN, Role.INSTRUCTOR)

    if staff and criteria.modules:
        displayed = [
            event
            for event in displayed
            if is_decoration(event) or _matches_modules(event, criteria.modules)
        ]

    if staff and criteria.tracks:
        displayed = [
            event
            for event in displayed
            if is_decoration(event) or _matches_tracks(event, criteria.tracks)
        ]

    if actor.role is Role.INSTRUCTOR and criteria.mine_only and actor.actor_id is not None:
        displayed = [event for event in displayed if _is_mine(event, actor.actor_id)]

    return displayed
