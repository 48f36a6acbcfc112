"""Allow-list of the relations reachable through the RPC endpoint."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import Table

from . import db
from .context import Role
from .models import (
    MODULE_ROLES,
    STUDENT_TRACKS,
    TRACK_CHOICES,
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
from .errors import ValidationFailure


EVERYONE = frozenset({Role.ADMIN, Role.INSTRUCTOR, Role.STUDENT})
STAFF = frozenset({Role.ADMIN, Role.INSTRUCTOR})
ADMIN_ONLY = frozenset({Role.ADMIN})


@dataclass(frozen=True)
class EntitySpec:
    name: str
    model: Optional[type[db.Model]]
    key: Optional[str] = None
    generated_key: bool = False
    writable: tuple[str, ...] = ()
    choices: dict[str, tuple[str, ...]] = field(default_factory=dict)
    readable_by: frozenset[Role] = EVERYONE
    # Rows of these (model, column) pairs referencing the entity are removed first on delete.
    dependents: tuple[tuple[type[db.Model], str], ...] = ()

    @property
    def table(self) -> Table:
        if self.model is None:
            raise ValidationFailure(f"L'entité {self.name} est en lecture seule")
        return self.model.__table__

    @property
    def is_virtual(self) -> bool:
        return self.model is None


SESSIONS = "sessions"
ROOMS = "rooms"
RESERVATIONS = "reservations"
TEACHING_ASSIGNMENTS = "teaching_assignments"
MODULES = "modules"
SESSION_MODULES = "session_modules"
INSTRUCTORS = "instructors"
INSTRUCTOR_MODULES = "instructor_modules"
STUDENTS = "students"
ENROLLMENTS = "enrollments"
MODULE_ASSOCIATIONS = "module_associations"
MODULE_COLORS = "module_colors"
MODULE_OPTIONS = "module_options"


_SPECS = (
    EntitySpec(
        SESSIONS,
        Session,
        key="session_id",
        generated_key=True,
        writable=("subject", "session_type", "starts_at", "ends_at", "description", "track"),
        choices={"track": TRACK_CHOICES},
        dependents=(
            (Reservation, "session_id"),
            (TeachingAssignment, "session_id"),
            (SessionModule, "session_id"),
        ),
    ),
    EntitySpec(
        ROOMS,
        Room,
        key="room_id",
        generated_key=True,
        writable=("building", "room_number", "capacity"),
    ),
    EntitySpec(
        RESERVATIONS,
        Reservation,
        key="session_id",
        writable=("session_id", "room_id"),
    ),
    EntitySpec(
        TEACHING_ASSIGNMENTS,
        TeachingAssignment,
        key="session_id",
        writable=("session_id", "instructor_id"),
    ),
    EntitySpec(
        MODULES,
        Module,
        key="module_id",
        generated_key=True,
        writable=("name",),
    ),
    EntitySpec(
        SESSION_MODULES,
        SessionModule,
        key="session_id",
        writable=("session_id", "module_id", "module_role"),
        choices={"module_role": MODULE_ROLES},
    ),
    EntitySpec(
        INSTRUCTORS,
        Instructor,
        key="instructor_id",
        generated_key=True,
        writable=("first_name", "last_name", "is_referent", "email"),
        dependents=(
            (TeachingAssignment, "instructor_id"),
            (InstructorModule, "instructor_id"),
        ),
    ),
    EntitySpec(
        INSTRUCTOR_MODULES,
        InstructorModule,
        key="instructor_id",
        writable=("instructor_id", "module_id"),
    ),
    EntitySpec(
        STUDENTS,
        Student,
        key="student_id",
        generated_key=True,
        writable=("first_name", "last_name", "email", "track"),
        choices={"track": STUDENT_TRACKS},
        readable_by=ADMIN_ONLY,
        dependents=((Enrollment, "student_id"),),
    ),
    EntitySpec(
        ENROLLMENTS,
        Enrollment,
        key="student_id",
        writable=("student_id", "major_module_id", "minor_module_id"),
        readable_by=ADMIN_ONLY,
    ),
    EntitySpec(
        MODULE_ASSOCIATIONS,
        ModuleAssociation,
        key="association_id",
        generated_key=True,
        writable=("major_module_id", "minor_module_id"),
    ),
    EntitySpec(
        MODULE_COLORS,
        ModuleColor,
        key="color_id",
        generated_key=True,
        writable=("module_id", "color"),
    ),
    EntitySpec(MODULE_OPTIONS, None),
)

ENTITIES: dict[str, EntitySpec] = {spec.name: spec for spec in _SPECS}


def get_entity(name: object) -> EntitySpec:
    if not isinstance(name, str) or not name:
        raise ValidationFailure("Le champ 'entity' est requis")
    spec = ENTITIES.get(name)
    if spec is None:
        raise ValidationFailure(f"Entité inconnue : {name}")
    return spec


def is_identifier(column_name: str) -> bool:
    return column_name == "id" or column_name.endswith("_id")
