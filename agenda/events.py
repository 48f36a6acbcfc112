"""Read model: sessions joined with rooms, instructors and modules.

Each table is fetched on its own and joined in memory through lookup maps,
so duplicate link rows never leak into the calendar events.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import select

from . import db
from .context import Actor, RequestContext, Role
from .errors import AuthorizationFailure
from .models import (
    MODULE_MAJOR,
    MODULE_MINOR,
    TRACK_ALL,
    Enrollment,
    Instructor,
    InstructorModule,
    Module,
    ModuleAssociation,
    ModuleColor,
    Reservation,
    Room,
    Session,
    SessionModule,
    Student,
    TeachingAssignment,
)


@dataclass
class CalendarSnapshot:
    sessions: list[Session]
    rooms: dict[int, Room]
    instructors: dict[int, Instructor]
    module_names: dict[int, str]
    module_colors: dict[int, str]
    rooms_by_session: dict[int, list[int]] = field(default_factory=dict)
    teachers_by_session: dict[int, list[int]] = field(default_factory=dict)
    modules_by_session: dict[int, list[tuple[int, str]]] = field(default_factory=dict)

    @classmethod
    def load(cls) -> "CalendarSnapshot":
        sessions = db.session.scalars(
            select(Session).order_by(Session.starts_at, Session.session_id)
        ).all()
        rooms = {room.room_id: room for room in db.session.scalars(select(Room))}
        instructors = {
            instructor.instructor_id: instructor
            for instructor in db.session.scalars(select(Instructor))
        }
        module_names = dict(db.session.execute(select(Module.module_id, Module.name)).all())
        module_colors = dict(
            db.session.execute(select(ModuleColor.module_id, ModuleColor.color)).all()
        )

        rooms_by_session: dict[int, list[int]] = defaultdict(list)
        for session_id, room_id in db.session.execute(
            select(Reservation.session_id, Reservation.room_id).order_by(
                Reservation.session_id, Reservation.room_id
            )
        ):
            rooms_by_session[session_id].append(room_id)

        teachers_by_session: dict[int, list[int]] = defaultdict(list)
        for session_id, instructor_id in db.session.execute(
            select(TeachingAssignment.session_id, TeachingAssignment.instructor_id).order_by(
                TeachingAssignment.session_id, TeachingAssignment.instructor_id
            )
        ):
            teachers_by_session[session_id].append(instructor_id)

        modules_by_session: dict[int, list[tuple[int, str]]] = defaultdict(list)
        for session_id, module_id, module_role in db.session.execute(
            select(
                SessionModule.session_id, SessionModule.module_id, SessionModule.module_role
            ).order_by(SessionModule.session_id, SessionModule.module_role, SessionModule.module_id)
        ):
            modules_by_session[session_id].append((module_id, module_role))

        return cls(
            sessions=list(sessions),
            rooms=rooms,
            instructors=instructors,
            module_names=module_names,
            module_colors=module_colors,
            rooms_by_session=dict(rooms_by_session),
            teachers_by_session=dict(teachers_by_session),
            modules_by_session=dict(modules_by_session),
        )


def _unique_room_labels(snapshot: CalendarSnapshot, room_ids: Iterable[int]) -> tuple[list[int], list[str]]:
    seen: set[int] = set()
    ids: list[int] = []
    labels: list[str] = []
    for room_id in room_ids:
        room = snapshot.rooms.get(room_id)
        if room is None or room_id in seen:
            continue
        seen.add(room_id)
        ids.append(room_id)
        labels.append(room.label)
    return ids, labels


def _unique_instructors(
    snapshot: CalendarSnapshot, instructor_ids: Iterable[int]
) -> tuple[list[int], list[str]]:
    seen: set[int] = set()
    ids: list[int] = []
    names: list[str] = []
    for instructor_id in instructor_ids:
        if instructor_id in seen:
            continue
        seen.add(instructor_id)
        ids.append(instructor_id)
        instructor = snapshot.instructors.get(instructor_id)
        if instructor is not None:
            names.append(instructor.full_name)
    return ids, names


def _unique_modules(
    snapshot: CalendarSnapshot, links: Iterable[tuple[int, str]]
) -> list[dict[str, object]]:
    seen: set[tuple[int, str]] = set()
    modules: list[dict[str, object]] = []
    for module_id, module_role in links:
        key = (module_id, module_role)
        if key in seen:
            continue
        seen.add(key)
        modules.append(
            {
                "module_id": module_id,
                "module_name": snapshot.module_names.get(module_id, "?"),
                "module_role": module_role,
            }
        )
    return modules


def build_event(
    snapshot: CalendarSnapshot, session: Session, ctx: RequestContext
) -> dict[str, object]:
    room_ids, room_labels = _unique_room_labels(
        snapshot, snapshot.rooms_by_session.get(session.session_id, [])
    )
    instructor_ids, instructor_names = _unique_instructors(
        snapshot, snapshot.teachers_by_session.get(session.session_id, [])
    )
    modules = _unique_modules(snapshot, snapshot.modules_by_session.get(session.session_id, []))

    event: dict[str, object] = {
        "id": str(session.session_id),
        "title": session.subject,
        "start": ctx.for_display(session.starts_at),
        "end": ctx.for_display(session.ends_at),
        "extendedProps": {
            "session_type": session.session_type or "",
            "description": session.description or "",
            "track": session.track,
            "room": ", ".join(room_labels),
            "rooms": room_labels,
            "room_ids": room_ids,
            "instructors": instructor_names,
            "instructor_ids": instructor_ids,
            "modules": modules,
        },
    }
    if modules:
        color = snapshot.module_colors.get(modules[0]["module_id"])
        if color:
            event["backgroundColor"] = color
            event["borderColor"] = color
            event["textColor"] = "#fff"
    return event


def instructor_session_ids(snapshot: CalendarSnapshot, instructor_id: int) -> set[int]:
    """Sessions the instructor teaches or that cover one of their modules."""

    owned_modules = set(
        db.session.scalars(
            select(InstructorModule.module_id).where(
                InstructorModule.instructor_id == instructor_id
            )
        )
    )
    visible: set[int] = set()
    for session in snapshot.sessions:
        session_id = session.session_id
        if instructor_id in snapshot.teachers_by_session.get(session_id, ()):
            visible.add(session_id)
            continue
        if any(
            module_id in owned_modules
            for module_id, _ in snapshot.modules_by_session.get(session_id, ())
        ):
            visible.add(session_id)
    return visible


def student_session_ids(snapshot: CalendarSnapshot, student_id: int) -> set[int]:
    """Sessions matching the student's major/minor modules and track."""

    student = db.session.get(Student, student_id)
    enrollment = db.session.get(Enrollment, student_id)
    if student is None or enrollment is None:
        return set()
    wanted = {
        (enrollment.major_module_id, MODULE_MAJOR),
        (enrollment.minor_module_id, MODULE_MINOR),
    }
    visible: set[int] = set()
    for session in snapshot.sessions:
        if session.track not in (TRACK_ALL, student.track):
            continue
        links = snapshot.modules_by_session.get(session.session_id, ())
        if any(link in wanted for link in links):
            visible.add(session.session_id)
    return visible


def visible_session_ids(snapshot: CalendarSnapshot, actor: Actor) -> set[int]:
    if actor.role is Role.ADMIN:
        return {session.session_id for session in snapshot.sessions}
    if actor.role is Role.INSTRUCTOR:
        return instructor_session_ids(snapshot, actor.actor_id)
    if actor.role is Role.STUDENT:
        return student_session_ids(snapshot, actor.actor_id)
    raise AuthorizationFailure("Accès refusé : utilisateur non enregistré")


def build_events(ctx: RequestContext) -> list[dict[str, object]]:
    if ctx.actor.is_forbidden:
        raise AuthorizationFailure("Accès refusé : utilisateur non enregistré")
    snapshot = CalendarSnapshot.load()
    visible = visible_session_ids(snapshot, ctx.actor)
    return [
        build_event(snapshot, session, ctx)
        for session in snapshot.sessions
        if session.session_id in visible
    ]


def build_module_options(ctx: RequestContext) -> list[dict[str, object]]:
    """Major and minor choices derived from the major/minor association table.

    Instructors only get the modules they own.
    """

    if ctx.actor.is_forbidden:
        raise AuthorizationFailure("Accès refusé : utilisateur non enregistré")
    module_names = dict(db.session.execute(select(Module.module_id, Module.name)).all())
    pairs = db.session.execute(
        select(ModuleAssociation.major_module_id, ModuleAssociation.minor_module_id).order_by(
            ModuleAssociation.association_id
        )
    ).all()

    allowed: set[int] | None = None
    if ctx.actor.role is Role.INSTRUCTOR:
        allowed = set(
            db.session.scalars(
                select(InstructorModule.module_id).where(
                    InstructorModule.instructor_id == ctx.actor.actor_id
                )
            )
        )

    seen: set[tuple[int, str]] = set()
    options: list[dict[str, object]] = []
    for major_id, minor_id in pairs:
        for module_id, module_role in ((major_id, MODULE_MAJOR), (minor_id, MODULE_MINOR)):
            if allowed is not None and module_id not in allowed:
                continue
            key = (module_id, module_role)
            if key in seen:
                continue
            seen.add(key)
            options.append(
                {
                    "module_id": module_id,
                    "module_name": module_names.get(module_id, "?"),
                    "module_role": module_role,
                }
            )
    return options
