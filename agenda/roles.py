"""Map a verified email to the actor making the request."""
from __future__ import annotations

from sqlalchemy import func, select

from . import db
from .context import Actor, Role
from .models import Instructor, Student


def _normalise_email(email: str | None) -> str:
    return (email or "").strip().lower()


def resolve_role(email: str | None) -> Actor:
    """Return the actor for ``email``.

    Referent instructors resolve to administrators before any other match is
    considered; an email found nowhere yields the forbidden actor.
    """

    address = _normalise_email(email)
    if not address:
        return Actor.forbidden(email)

    referent_id = db.session.scalar(
        select(Instructor.instructor_id)
        .where(func.lower(Instructor.email) == address, Instructor.is_referent.is_(True))
        .limit(1)
    )
    if referent_id is not None:
        return Actor(Role.ADMIN, referent_id, address)

    instructor_id = db.session.scalar(
        select(Instructor.instructor_id)
        .where(func.lower(Instructor.email) == address)
        .limit(1)
    )
    if instructor_id is not None:
        return Actor(Role.INSTRUCTOR, instructor_id, address)

    student_id = db.session.scalar(
        select(Student.student_id).where(func.lower(Student.email) == address).limit(1)
    )
    if student_id is not None:
        return Actor(Role.STUDENT, student_id, address)

    return Actor.forbidden(address)
