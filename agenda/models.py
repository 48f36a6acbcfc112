from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import db


TRACK_ALL = "Tous"
STUDENT_TRACKS: tuple[str, ...] = ("Apprenti", "Intégré")
TRACK_CHOICES: tuple[str, ...] = STUDENT_TRACKS + (TRACK_ALL,)

MODULE_MAJOR = "major"
MODULE_MINOR = "minor"
MODULE_ROLES: tuple[str, ...] = (MODULE_MAJOR, MODULE_MINOR)


class Session(db.Model):
    __tablename__ = "sessions"

    session_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    session_type: Mapped[Optional[str]] = mapped_column(String(50))
    starts_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    track: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TRACK_ALL, server_default=TRACK_ALL
    )

    reservations: Mapped[List["Reservation"]] = relationship(back_populates="session")

    __table_args__ = (
        CheckConstraint("ends_at > starts_at", name="chk_session_range"),
    )

    @property
    def duration_hours(self) -> float:
        return (self.ends_at - self.starts_at).total_seconds() / 3600

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Session {self.subject} {self.starts_at:%Y-%m-%d %H:%M}>"


class Room(db.Model):
    __tablename__ = "rooms"

    room_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    building: Mapped[str] = mapped_column(String(20), nullable=False)
    room_number: Mapped[str] = mapped_column(String(20), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    reservations: Mapped[List["Reservation"]] = relationship(back_populates="room")

    __table_args__ = (
        UniqueConstraint("building", "room_number", name="uq_room_building_number"),
    )

    @property
    def label(self) -> str:
        return room_label(self.building, self.room_number)

    @property
    def code(self) -> str:
        return room_code(self.building, self.room_number)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Room {self.code}>"


def room_label(building: str, room_number: str) -> str:
    """Compact label shown on calendar events, e.g. ``B101``."""
    return f"{building}{room_number}"


def room_code(building: str, room_number: str) -> str:
    """Label used in booking messages, e.g. ``B-101``."""
    return f"{building}-{room_number}"


class Reservation(db.Model):
    __tablename__ = "reservations"

    session_id: Mapped[int] = mapped_column(
        ForeignKey("sessions.session_id"), primary_key=True
    )
    room_id: Mapped[int] = mapped_column(
        ForeignKey("rooms.room_id"), primary_key=True, index=True
    )

    session: Mapped[Session] = relationship(back_populates="reservations")
    room: Mapped[Room] = relationship(back_populates="reservations")


class Module(db.Model):
    __tablename__ = "modules"

    module_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Module {self.name}>"


class SessionModule(db.Model):
    __tablename__ = "session_modules"

    session_id: Mapped[int] = mapped_column(
        ForeignKey("sessions.session_id"), primary_key=True
    )
    module_id: Mapped[int] = mapped_column(
        ForeignKey("modules.module_id"), primary_key=True
    )
    module_role: Mapped[str] = mapped_column(String(10), primary_key=True)

    __table_args__ = (
        CheckConstraint(
            "module_role IN ('major', 'minor')", name="chk_session_module_role"
        ),
    )


class Instructor(db.Model):
    __tablename__ = "instructors"

    instructor_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    is_referent: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="0"
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Instructor {self.full_name}>"


class TeachingAssignment(db.Model):
    __tablename__ = "teaching_assignments"

    session_id: Mapped[int] = mapped_column(
        ForeignKey("sessions.session_id"), primary_key=True
    )
    instructor_id: Mapped[int] = mapped_column(
        ForeignKey("instructors.instructor_id"), primary_key=True, index=True
    )


class InstructorModule(db.Model):
    __tablename__ = "instructor_modules"

    instructor_id: Mapped[int] = mapped_column(
        ForeignKey("instructors.instructor_id"), primary_key=True
    )
    module_id: Mapped[int] = mapped_column(
        ForeignKey("modules.module_id"), primary_key=True
    )


class Student(db.Model):
    __tablename__ = "students"

    student_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    track: Mapped[str] = mapped_column(String(20), nullable=False)

    enrollment: Mapped[Optional["Enrollment"]] = relationship(
        back_populates="student", uselist=False
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Student {self.first_name} {self.last_name}>"


class Enrollment(db.Model):
    """A student's single major/minor module pair."""

    __tablename__ = "enrollments"

    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.student_id"), primary_key=True
    )
    major_module_id: Mapped[int] = mapped_column(
        ForeignKey("modules.module_id"), nullable=False
    )
    minor_module_id: Mapped[int] = mapped_column(
        ForeignKey("modules.module_id"), nullable=False
    )

    student: Mapped[Student] = relationship(back_populates="enrollment")


class ModuleAssociation(db.Model):
    __tablename__ = "module_associations"

    association_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    major_module_id: Mapped[int] = mapped_column(
        ForeignKey("modules.module_id"), nullable=False
    )
    minor_module_id: Mapped[int] = mapped_column(
        ForeignKey("modules.module_id"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "major_module_id", "minor_module_id", name="uq_module_association_pair"
        ),
    )


class ModuleColor(db.Model):
    __tablename__ = "module_colors"

    color_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    module_id: Mapped[int] = mapped_column(
        ForeignKey("modules.module_id"), nullable=False, unique=True
    )
    color: Mapped[str] = mapped_column(String(20), nullable=False)
