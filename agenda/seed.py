from __future__ import annotations

from datetime import datetime, timedelta

from . import db
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


def seed_data() -> None:
    """Insert a small sample calendar when the database has no instructor yet."""

    if db.session.query(Instructor.instructor_id).first():
        return

    rooms = [
        Room(building="B", room_number="101", capacity=30),
        Room(building="B", room_number="102", capacity=24),
        Room(building="A", room_number="012", capacity=60),
    ]
    modules = [
        Module(name="Algorithmique"),
        Module(name="Réseaux"),
        Module(name="Gestion de projet"),
    ]
    db.session.add_all(rooms + modules)
    db.session.flush()
    algo, network, project = modules

    db.session.add_all(
        [
            ModuleAssociation(major_module_id=algo.module_id, minor_module_id=project.module_id),
            ModuleAssociation(major_module_id=network.module_id, minor_module_id=project.module_id),
            ModuleColor(module_id=algo.module_id, color="#3b82f6"),
            ModuleColor(module_id=network.module_id, color="#f97316"),
        ]
    )

    referent = Instructor(
        first_name="Claire", last_name="Dubois", email="claire.dubois@example.com", is_referent=True
    )
    instructor = Instructor(
        first_name="Marc", last_name="Leroy", email="marc.leroy@example.com"
    )
    student = Student(
        first_name="Inès", last_name="Moreau", email="ines.moreau@example.com", track="Apprenti"
    )
    db.session.add_all([referent, instructor, student])
    db.session.flush()

    db.session.add_all(
        [
            InstructorModule(instructor_id=instructor.instructor_id, module_id=algo.module_id),
            Enrollment(
                student_id=student.student_id,
                major_module_id=algo.module_id,
                minor_module_id=project.module_id,
            ),
        ]
    )

    monday = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0)
    monday -= timedelta(days=monday.weekday())
    sessions = [
        (Session(subject="Algorithmique", session_type="CM", starts_at=monday,
                 ends_at=monday + timedelta(hours=2), track=TRACK_ALL),
         rooms[0], algo, MODULE_MAJOR),
        (Session(subject="Conduite de projet", session_type="TD",
                 starts_at=monday + timedelta(days=1), ends_at=monday + timedelta(days=1, hours=3),
                 track="Apprenti"),
         rooms[1], project, MODULE_MINOR),
    ]
    for session, room, module, module_role in sessions:
        db.session.add(session)
        db.session.flush()
        db.session.add_all(
            [
                Reservation(session_id=session.session_id, room_id=room.room_id),
                TeachingAssignment(
                    session_id=session.session_id, instructor_id=instructor.instructor_id
                ),
                SessionModule(
                    session_id=session.session_id,
                    module_id=module.module_id,
                    module_role=module_role,
                ),
            ]
        )

    db.session.commit()
