from __future__ import annotations

import unittest
from datetime import datetime

from agenda import create_app, db
from agenda.context import Actor, RequestContext, Role
from agenda.models import (
    TRACK_ALL,
    Enrollment,
    Instructor,
    InstructorModule,
    Module,
    ModuleAssociation,
    Reservation,
    Room,
    Session,
    SessionModule,
    Student,
    TeachingAssignment,
)
from config import TestConfig


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, day, hour, minute)


def context_for(role: Role, actor_id: int | None = None, offset: int | None = None) -> RequestContext:
    return RequestContext(Actor(role, actor_id), tz_offset_minutes=offset)


ADMIN = context_for(Role.ADMIN, 1)


class DatabaseTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.app = create_app(TestConfig)
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()

    def tearDown(self) -> None:
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    def _add(self, obj):
        db.session.add(obj)
        db.session.commit()
        return obj

    def make_room(self, building: str = "B", room_number: str = "101") -> Room:
        return self._add(Room(building=building, room_number=room_number, capacity=30))

    def make_module(self, name: str) -> Module:
        return self._add(Module(name=name))

    def make_session(
        self, subject: str, starts_at: datetime, ends_at: datetime, track: str = TRACK_ALL
    ) -> Session:
        return self._add(
            Session(subject=subject, starts_at=starts_at, ends_at=ends_at, track=track)
        )

    def make_instructor(
        self, first_name: str, email: str, is_referent: bool = False, last_name: str = "Martin"
    ) -> Instructor:
        return self._add(
            Instructor(
                first_name=first_name,
                last_name=last_name,
                email=email,
                is_referent=is_referent,
            )
        )

    def make_student(self, first_name: str, email: str, track: str = "Apprenti") -> Student:
        return self._add(
            Student(first_name=first_name, last_name="Petit", email=email, track=track)
        )

    def reserve(self, session: Session, room: Room) -> None:
        self._add(Reservation(session_id=session.session_id, room_id=room.room_id))

    def assign(self, session: Session, instructor: Instructor) -> None:
        self._add(
            TeachingAssignment(
                session_id=session.session_id, instructor_id=instructor.instructor_id
            )
        )

    def link_module(self, session: Session, module: Module, module_role: str) -> None:
        self._add(
            SessionModule(
                session_id=session.session_id,
                module_id=module.module_id,
                module_role=module_role,
            )
        )

    def own_module(self, instructor: Instructor, module: Module) -> None:
        self._add(
            InstructorModule(instructor_id=instructor.instructor_id, module_id=module.module_id)
        )

    def enroll(self, student: Student, major: Module, minor: Module) -> None:
        self._add(
            Enrollment(
                student_id=student.student_id,
                major_module_id=major.module_id,
                minor_module_id=minor.module_id,
            )
        )

    def associate(self, major: Module, minor: Module) -> None:
        self._add(
            ModuleAssociation(major_module_id=major.module_id, minor_module_id=minor.module_id)
        )
