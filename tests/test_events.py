import unittest

from agenda import db
from agenda.context import Role
from agenda.errors import AuthorizationFailure
from agenda.events import CalendarSnapshot, build_event, build_events, build_module_options
from agenda.models import MODULE_MAJOR, MODULE_MINOR, ModuleColor
from tests.helpers import ADMIN, DatabaseTestCase, at, context_for


class StudentVisibilityTestCase(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.m1 = self.make_module("Algorithmique")
        self.m2 = self.make_module("Gestion de projet")
        self.student = self.make_student("Inès", "ines@example.com", track="Apprenti")
        self.enroll(self.student, self.m1, self.m2)

        self.s1 = self.make_session("S1", at(4, 9), at(4, 10))
        self.link_module(self.s1, self.m1, MODULE_MAJOR)
        self.s2 = self.make_session("S2", at(4, 10), at(4, 11))
        self.link_module(self.s2, self.m1, MODULE_MINOR)
        self.s3 = self.make_session("S3", at(4, 11), at(4, 12), track="Intégré")
        self.link_module(self.s3, self.m1, MODULE_MAJOR)
        self.s4 = self.make_session("S4", at(4, 13), at(4, 14), track="Apprenti")
        self.link_module(self.s4, self.m2, MODULE_MINOR)

    def test_student_sees_role_matched_sessions_of_their_track(self) -> None:
        events = build_events(context_for(Role.STUDENT, self.student.student_id))

        self.assertEqual([event["title"] for event in events], ["S1", "S4"])

    def test_student_without_enrollment_sees_nothing(self) -> None:
        other = self.make_student("Léo", "leo@example.com")

        self.assertEqual(build_events(context_for(Role.STUDENT, other.student_id)), [])

    def test_admin_sees_every_session(self) -> None:
        events = build_events(ADMIN)

        self.assertEqual([event["title"] for event in events], ["S1", "S2", "S3", "S4"])

    def test_forbidden_actor_gets_an_error(self) -> None:
        with self.assertRaises(AuthorizationFailure):
            build_events(context_for(Role.FORBIDDEN))


class InstructorScopeTestCase(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.instructor = self.make_instructor("Marc", "marc@example.com")
        self.colleague = self.make_instructor("Lina", "lina@example.com")
        self.owned = self.make_module("Réseaux")
        self.other = self.make_module("Anglais")
        self.own_module(self.instructor, self.owned)

        self.taught = self.make_session("Taught", at(5, 9), at(5, 10))
        self.assign(self.taught, self.instructor)
        self.link_module(self.taught, self.other, MODULE_MAJOR)

        self.covered = self.make_session("Covered", at(5, 10), at(5, 11))
        self.assign(self.covered, self.colleague)
        self.link_module(self.covered, self.owned, MODULE_MINOR)

        self.unrelated = self.make_session("Unrelated", at(5, 11), at(5, 12))
        self.assign(self.unrelated, self.colleague)
        self.link_module(self.unrelated, self.other, MODULE_MAJOR)

    def test_instructor_sees_taught_or_covered_sessions(self) -> None:
        events = build_events(context_for(Role.INSTRUCTOR, self.instructor.instructor_id))

        self.assertEqual([event["title"] for event in events], ["Taught", "Covered"])

    def test_module_options_are_limited_to_owned_modules(self) -> None:
        self.associate(self.owned, self.other)
        self.associate(self.other, self.owned)

        options = build_module_options(context_for(Role.INSTRUCTOR, self.instructor.instructor_id))

        self.assertEqual(
            [(option["module_id"], option["module_role"]) for option in options],
            [(self.owned.module_id, MODULE_MAJOR), (self.owned.module_id, MODULE_MINOR)],
        )


class EventShapeTestCase(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.room = self.make_room("B", "101")
        self.second_room = self.make_room("A", "012")
        self.module = self.make_module("Algorithmique")
        self.instructor = self.make_instructor("Marc", "marc@example.com", last_name="Leroy")
        self.session = self.make_session("Algorithmique", at(1, 9), at(1, 10))
        self.reserve(self.session, self.room)
        self.reserve(self.session, self.second_room)
        self.assign(self.session, self.instructor)
        self.link_module(self.session, self.module, MODULE_MAJOR)
        self.link_module(self.session, self.module, MODULE_MINOR)
        db.session.add(ModuleColor(module_id=self.module.module_id, color="#3b82f6"))
        db.session.commit()

    def test_event_carries_rooms_instructors_and_modules(self) -> None:
        (event,) = build_events(ADMIN)
        props = event["extendedProps"]

        self.assertEqual(event["id"], str(self.session.session_id))
        self.assertEqual(event["start"], "2024-03-01T09:00:00")
        self.assertEqual(props["room"], "B101, A012")
        self.assertEqual(props["instructors"], ["Marc Leroy"])
        self.assertEqual(
            [(module["module_id"], module["module_role"]) for module in props["modules"]],
            [(self.module.module_id, MODULE_MAJOR), (self.module.module_id, MODULE_MINOR)],
        )
        self.assertEqual(props["track"], "Tous")
        self.assertEqual(event["backgroundColor"], "#3b82f6")

    def test_duplicate_link_rows_are_collapsed(self) -> None:
        snapshot = CalendarSnapshot.load()
        session_id = self.session.session_id
        snapshot.rooms_by_session[session_id] *= 2
        snapshot.teachers_by_session[session_id] *= 3
        snapshot.modules_by_session[session_id] *= 2

        event = build_event(snapshot, snapshot.sessions[0], ADMIN)
        props = event["extendedProps"]

        self.assertEqual(props["rooms"], ["B101", "A012"])
        self.assertEqual(props["instructor_ids"], [self.instructor.instructor_id])
        self.assertEqual(len(props["modules"]), 2)

    def test_times_are_shown_in_the_client_offset(self) -> None:
        (event,) = build_events(context_for(Role.ADMIN, 1, offset=-60))

        self.assertEqual(event["start"], "2024-03-01T10:00:00+01:00")
        self.assertEqual(event["end"], "2024-03-01T11:00:00+01:00")


if __name__ == "__main__":
    unittest.main()
