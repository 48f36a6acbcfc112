"""Multi-step session bookings built on the gateway primitives.

A session, its teachers, modules and rooms are written as separate committed
statements. When a later step fails (typically a busy room) the steps already
committed are undone by compensating writes, see ``Saga``.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from flask import current_app
from sqlalchemy import select

from . import db
from .conflicts import ensure_rooms_available
from .context import RequestContext, Role
from .entities import RESERVATIONS, SESSION_MODULES, SESSIONS, TEACHING_ASSIGNMENTS
from .errors import AuthorizationFailure, ConflictFailure, NotFound, ValidationFailure
from .gateway import Gateway
from .models import MODULE_ROLES, Reservation, Session, SessionModule, TeachingAssignment
from .saga import Saga


SESSION_FIELDS = ("subject", "session_type", "starts_at", "ends_at", "description", "track")


def _require_admin(ctx: RequestContext) -> None:
    if ctx.actor.is_forbidden:
        raise AuthorizationFailure("Accès refusé : utilisateur non enregistré")
    if ctx.actor.role is Role.STUDENT:
        raise AuthorizationFailure("Les élèves ne peuvent pas modifier le planning")
    if ctx.actor.role is not Role.ADMIN:
        raise AuthorizationFailure("Action réservée aux administrateurs")


def _require_mapping(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationFailure("Le champ 'payload' est requis")
    return payload


def _id_list(payload: Mapping[str, Any], key: str) -> list[int]:
    raw = payload.get(key) or []
    if not isinstance(raw, (list, tuple)):
        raise ValidationFailure(f"Le champ {key} doit être une liste")
    try:
        return list(dict.fromkeys(int(value) for value in raw))
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"Identifiant invalide dans {key}") from exc


def _module_links(raw: Any) -> list[tuple[int, str]]:
    """Accept ``{"major": [..], "minor": [..]}`` or a list of link objects."""

    links: list[tuple[int, str]] = []
    try:
        if isinstance(raw, Mapping):
            for module_role in MODULE_ROLES:
                links.extend((int(module_id), module_role) for module_id in raw.get(module_role) or ())
        elif isinstance(raw, (list, tuple)):
            for item in raw:
                links.append((int(item["module_id"]), str(item["module_role"])))
        elif raw is not None:
            raise ValidationFailure("Format de modules invalide")
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationFailure("Format de modules invalide") from exc
    for _, module_role in links:
        if module_role not in MODULE_ROLES:
            raise ValidationFailure(f"Rôle de module invalide : {module_role}")
    return list(dict.fromkeys(links))


def _as_utc(value: datetime) -> datetime:
    # Stored values are naive UTC; marking them keeps ``to_storage`` from shifting them again.
    return value.replace(tzinfo=timezone.utc)


def _link_teachers(saga: Saga, gateway: Gateway, session_id: int, instructor_ids: list[int]) -> None:
    for instructor_id in instructor_ids:
        row = {"session_id": session_id, "instructor_id": instructor_id}
        saga.step(
            f"enseignant {instructor_id}",
            lambda row=row: gateway.insert(TEACHING_ASSIGNMENTS, row),
            lambda _result, row=row: gateway.delete(TEACHING_ASSIGNMENTS, row),
        )


def _link_modules(
    saga: Saga, gateway: Gateway, session_id: int, links: list[tuple[int, str]]
) -> None:
    for module_id, module_role in links:
        row = {"session_id": session_id, "module_id": module_id, "module_role": module_role}
        saga.step(
            f"module {module_id}-{module_role}",
            lambda row=row: gateway.insert(SESSION_MODULES, row),
            lambda _result, row=row: gateway.delete(SESSION_MODULES, row),
        )


def _reserve_rooms(saga: Saga, gateway: Gateway, session_id: int, room_ids: list[int]) -> None:
    """Reserve every room, then fail once with all the busy ones."""

    busy_rooms: list[str] = []
    busy_sessions: list[int] = []
    for room_id in room_ids:
        row = {"session_id": session_id, "room_id": room_id}
        try:
            saga.step(
                f"salle {room_id}",
                lambda row=row: gateway.insert(RESERVATIONS, row),
                lambda _result, row=row: gateway.delete(RESERVATIONS, row),
            )
        except ConflictFailure as exc:
            busy_rooms.extend(exc.rooms)
            busy_sessions.extend(exc.session_ids)
    if busy_rooms:
        raise ConflictFailure(busy_rooms, busy_sessions)


def schedule_session(ctx: RequestContext, payload: Any) -> int:
    """Create a session with its teachers, modules and rooms."""

    _require_admin(ctx)
    payload = _require_mapping(payload)
    instructor_ids = _id_list(payload, "instructor_ids")
    module_links = _module_links(payload.get("modules"))
    room_ids = _id_list(payload, "room_ids")
    if not module_links:
        raise ValidationFailure("Veuillez choisir un module")
    fields = {key: payload[key] for key in SESSION_FIELDS if key in payload}

    gateway = Gateway(ctx)
    with Saga("schedule_session") as saga:
        session_id = saga.step(
            "séance",
            lambda: gateway.insert(SESSIONS, fields),
            lambda new_id: gateway.delete(SESSIONS, {"session_id": new_id}),
        )
        _link_teachers(saga, gateway, session_id, instructor_ids)
        _link_modules(saga, gateway, session_id, module_links)
        _reserve_rooms(saga, gateway, session_id, room_ids)
    current_app.logger.info("Session %s scheduled in room(s) %s", session_id, room_ids)
    return session_id


def reschedule_session(ctx: RequestContext, payload: Any) -> None:
    """Update a session and replace the link sets present in the payload."""

    _require_admin(ctx)
    payload = _require_mapping(payload)
    try:
        session_id = int(payload["session_id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationFailure("Le champ session_id est requis") from exc
    session = db.session.get(Session, session_id)
    if session is None:
        raise NotFound(f"Séance {session_id} introuvable")

    changes = {key: payload[key] for key in SESSION_FIELDS if key in payload}
    previous = {
        "session_id": session_id,
        "subject": session.subject,
        "session_type": session.session_type,
        "starts_at": _as_utc(session.starts_at),
        "ends_at": _as_utc(session.ends_at),
        "description": session.description,
        "track": session.track,
    }
    new_start = ctx.to_storage(changes["starts_at"]) if "starts_at" in changes else session.starts_at
    new_end = ctx.to_storage(changes["ends_at"]) if "ends_at" in changes else session.ends_at
    old_rooms = list(
        db.session.scalars(select(Reservation.room_id).where(Reservation.session_id == session_id))
    )
    old_teachers = list(
        db.session.scalars(
            select(TeachingAssignment.instructor_id).where(
                TeachingAssignment.session_id == session_id
            )
        )
    )
    old_modules = [
        (row.module_id, row.module_role)
        for row in db.session.execute(
            select(SessionModule.module_id, SessionModule.module_role).where(
                SessionModule.session_id == session_id
            )
        )
    ]

    replace_rooms = "room_ids" in payload
    room_ids = _id_list(payload, "room_ids") if replace_rooms else old_rooms
    replace_teachers = "instructor_ids" in payload
    instructor_ids = _id_list(payload, "instructor_ids")
    replace_modules = "modules" in payload
    module_links = _module_links(payload.get("modules"))
    if replace_modules and not module_links:
        raise ValidationFailure("Veuillez choisir un module")
    if new_end <= new_start:
        raise ValidationFailure("L'heure de fin doit être postérieure à l'heure de début")
    ensure_rooms_available(room_ids, new_start, new_end, exclude_session_id=session_id)

    gateway = Gateway(ctx)
    with Saga("reschedule_session") as saga:
        if replace_rooms:
            saga.step(
                "libération des salles",
                lambda: gateway.delete(RESERVATIONS, {"session_id": session_id}),
                lambda _result: _insert_rows(
                    gateway,
                    RESERVATIONS,
                    [{"session_id": session_id, "room_id": room_id} for room_id in old_rooms],
                ),
            )
        if changes:
            saga.step(
                "séance",
                lambda: gateway.update(SESSIONS, {"session_id": session_id, **changes}),
                lambda _result: gateway.update(SESSIONS, previous),
            )
        if replace_teachers:
            saga.step(
                "retrait des enseignants",
                lambda: gateway.delete(TEACHING_ASSIGNMENTS, {"session_id": session_id}),
                lambda _result: _insert_rows(
                    gateway,
                    TEACHING_ASSIGNMENTS,
                    [
                        {"session_id": session_id, "instructor_id": instructor_id}
                        for instructor_id in old_teachers
                    ],
                ),
            )
            _link_teachers(saga, gateway, session_id, instructor_ids)
        if replace_modules:
            saga.step(
                "retrait des modules",
                lambda: gateway.delete(SESSION_MODULES, {"session_id": session_id}),
                lambda _result: _insert_rows(
                    gateway,
                    SESSION_MODULES,
                    [
                        {"session_id": session_id, "module_id": module_id, "module_role": module_role}
                        for module_id, module_role in old_modules
                    ],
                ),
            )
            _link_modules(saga, gateway, session_id, module_links)
        if replace_rooms:
            _reserve_rooms(saga, gateway, session_id, room_ids)
    current_app.logger.info("Session %s rescheduled", session_id)


def _insert_rows(gateway: Gateway, entity: str, rows: list[dict[str, Any]]) -> None:
    for row in rows:
        gateway.insert(entity, row)


def cancel_session(ctx: RequestContext, payload: Any) -> None:
    """Delete a session; its links go first."""

    _require_admin(ctx)
    payload = _require_mapping(payload)
    try:
        session_id = int(payload["session_id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationFailure("Le champ session_id est requis") from exc
    deleted = Gateway(ctx).delete(SESSIONS, {"session_id": session_id})
    if not deleted:
        raise NotFound(f"Séance {session_id} introuvable")
    current_app.logger.info("Session %s cancelled", session_id)
