import unittest

from agenda.context import Role
from agenda.roles import resolve_role
from tests.helpers import DatabaseTestCase


class RoleResolverTestCase(DatabaseTestCase):
    def test_referent_instructor_is_administrator(self) -> None:
        referent = self.make_instructor("Claire", "claire@example.com", is_referent=True)

        actor = resolve_role("claire@example.com")

        self.assertIs(actor.role, Role.ADMIN)
        self.assertEqual(actor.actor_id, referent.instructor_id)

    def test_plain_instructor(self) -> None:
        instructor = self.make_instructor("Marc", "marc@example.com")

        actor = resolve_role("marc@example.com")

        self.assertIs(actor.role, Role.INSTRUCTOR)
        self.assertEqual(actor.actor_id, instructor.instructor_id)

    def test_student(self) -> None:
        student = self.make_student("Inès", "ines@example.com")

        actor = resolve_role("ines@example.com")

        self.assertIs(actor.role, Role.STUDENT)
        self.assertEqual(actor.actor_id, student.student_id)

    def test_instructor_wins_over_student_with_same_email(self) -> None:
        instructor = self.make_instructor("Sam", "sam@example.com")
        self.make_student("Sam", "sam@example.com")

        actor = resolve_role("sam@example.com")

        self.assertIs(actor.role, Role.INSTRUCTOR)
        self.assertEqual(actor.actor_id, instructor.instructor_id)

    def test_email_match_ignores_case_and_spaces(self) -> None:
        self.make_instructor("Claire", "Claire.Dubois@Example.com", is_referent=True)

        self.assertIs(resolve_role("  claire.dubois@example.COM ").role, Role.ADMIN)

    def test_unknown_email_is_forbidden(self) -> None:
        self.make_student("Inès", "ines@example.com")

        actor = resolve_role("nobody@example.com")

        self.assertTrue(actor.is_forbidden)
        self.assertIsNone(actor.actor_id)
        self.assertTrue(resolve_role("").is_forbidden)


if __name__ == "__main__":
    unittest.main()
