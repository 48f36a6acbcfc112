import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

import jwt

from agenda import db
from agenda.models import MODULE_MAJOR, ModuleColor
from config import TestConfig
from tests.helpers import DatabaseTestCase


def _token(email: str, expires_in: timedelta = timedelta(hours=1), key: str = TestConfig.AUTH_JWT_KEY) -> str:
    claims = {"email": email, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(claims, key, algorithm="HS256")


class ApiTestCase(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = self.app.test_client()
        self.referent = self.make_instructor("Claire", "claire@example.com", is_referent=True)
        self.instructor = self.make_instructor("Marc", "marc@example.com")
        self.m7 = self.make_module("Algorithmique")
        self.own_module(self.instructor, self.m7)
        self.b101 = self.make_room("B", "101")

    def call(self, body, email="claire@example.com", headers=None):
        all_headers = {"Authorization": f"Bearer {_token(email)}"}
        all_headers.update(headers or {})
        return self.client.post("/api", json=body, headers=all_headers)

    def _schedule(self, start: str, end: str):
        return self.call(
            {
                "action": "schedule",
                "entity": "sessions",
                "payload": {
                    "subject": "Algorithmics",
                    "starts_at": start,
                    "ends_at": end,
                    "room_ids": [self.b101.room_id],
                    "modules": {"major": [self.m7.module_id]},
                },
            }
        )

    def test_booking_then_calendar_then_conflict(self) -> None:
        created = self._schedule("2024-03-01T09:00:00", "2024-03-01T10:00:00")
        self.assertEqual(created.status_code, 200)
        self.assertTrue(created.get_json()["success"])
        self.assertIsInstance(created.get_json()["insertedId"], int)

        listed = self.call({"action": "list", "entity": "sessions"}, email="marc@example.com")
        events = listed.get_json()["data"]
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["title"], "Algorithmics")
        self.assertEqual(events[0]["extendedProps"]["room"], "B101")
        self.assertEqual(
            events[0]["extendedProps"]["modules"][0]["module_role"], MODULE_MAJOR
        )

        refused = self._schedule("2024-03-01T09:30:00", "2024-03-01T09:45:00")
        self.assertEqual(refused.status_code, 409)
        body = refused.get_json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"], "La salle B-101 est déjà réservée pour ce créneau.")
        self.assertEqual(body["rooms"], ["B-101"])

        following = self._schedule("2024-03-01T10:00:00", "2024-03-01T11:00:00")
        self.assertEqual(following.status_code, 200)

    def test_get_role(self) -> None:
        response = self.call({"action": "getRole"}, email="marc@example.com")

        self.assertEqual(response.get_json(), {"success": True, "role": "instructor", "id": self.instructor.instructor_id})

    def test_unknown_email_is_forbidden(self) -> None:
        response = self.call({"action": "getRole"}, email="intrus@example.com")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["error"], "Adresse e-mail non autorisée")
        self.assertEqual(
            self.call({"action": "list", "entity": "rooms"}, email="intrus@example.com").status_code,
            403,
        )

    def test_missing_invalid_or_expired_token(self) -> None:
        missing = self.client.post("/api", json={"action": "getRole"})
        self.assertEqual(missing.status_code, 401)
        self.assertEqual(missing.get_json()["error"], "Token manquant ou mal formé")

        forged = self.client.post(
            "/api",
            json={"action": "getRole"},
            headers={"Authorization": f"Bearer {_token('claire@example.com', key='another-key-of-sufficient-length-987654321')}"},
        )
        self.assertEqual(forged.status_code, 401)

        expired = self.client.post(
            "/api",
            json={"action": "getRole"},
            headers={"Authorization": f"Bearer {_token('claire@example.com', timedelta(minutes=-5))}"},
        )
        self.assertEqual(expired.status_code, 401)
        self.assertEqual(expired.get_json()["error"], "Token invalide ou expiré")

    def test_malformed_requests_are_rejected(self) -> None:
        self.assertEqual(self.call({"action": "drop"}).status_code, 400)
        self.assertEqual(self.call({"action": "list", "entity": "users"}).status_code, 400)
        self.assertEqual(self.call({"action": "insert", "entity": "rooms"}).status_code, 400)
        self.assertEqual(self.call({"action": "delete", "entity": "rooms", "payload": {}}).status_code, 400)
        self.assertEqual(
            self.call({"action": "getRole"}, headers={"X-Timezone-Offset": "abc"}).status_code, 400
        )

    def test_instructor_cannot_write(self) -> None:
        response = self.call(
            {"action": "insert", "entity": "modules", "payload": {"name": "Réseaux"}},
            email="marc@example.com",
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["error"], "Action réservée aux administrateurs")

    def test_timezone_offset_applies_to_storage_and_display(self) -> None:
        paris = {"X-Timezone-Offset": "-60"}
        created = self.call(
            {
                "action": "insert",
                "entity": "sessions",
                "payload": {
                    "subject": "Réseaux",
                    "starts_at": "2024-03-04T10:00:00",
                    "ends_at": "2024-03-04T11:00:00",
                },
            },
            headers=paris,
        )
        self.assertEqual(created.status_code, 200)

        utc_view = self.call({"action": "list", "entity": "sessions"}).get_json()["data"]
        local_view = self.call({"action": "list", "entity": "sessions"}, headers=paris).get_json()["data"]

        self.assertEqual(utc_view[0]["start"], "2024-03-04T09:00:00")
        self.assertEqual(local_view[0]["start"], "2024-03-04T10:00:00+01:00")

    def test_update_and_delete_round_trip(self) -> None:
        created = self.call(
            {"action": "insert", "entity": "rooms", "payload": {"building": "C", "room_number": "201"}}
        )
        room_id = created.get_json()["insertedId"]

        updated = self.call(
            {"action": "update", "entity": "rooms", "payload": {"room_id": room_id, "capacity": 12}}
        )
        self.assertEqual(updated.get_json(), {"success": True})
        rooms = self.call({"action": "list", "entity": "rooms"}).get_json()["data"]
        self.assertEqual([room["capacity"] for room in rooms if room["room_id"] == room_id], [12])

        deleted = self.call({"action": "delete", "entity": "rooms", "payload": {"room_id": room_id}})
        self.assertEqual(deleted.get_json(), {"success": True, "deleted": 1})

    def test_configured_identity_verifier_is_used(self) -> None:
        class StaticVerifier:
            def verify(self, token):
                return "marc@example.com" if token == "opaque-token" else "intrus@example.com"

        self.app.config["IDENTITY_VERIFIER"] = StaticVerifier()

        response = self.client.post(
            "/api", json={"action": "getRole"}, headers={"Authorization": "Bearer opaque-token"}
        )

        self.assertEqual(response.get_json()["role"], "instructor")

    def test_malformed_filters_and_year_are_rejected(self) -> None:
        for options in (
            {"filters": {"tracks": [["Apprenti"]]}},
            {"filters": {"modules": 5}},
            {"decorations": True, "year": "abc"},
        ):
            with self.subTest(options=options):
                response = self.call({"action": "list", "entity": "sessions", "payload": options})
                self.assertEqual(response.status_code, 400)
                self.assertFalse(response.get_json()["success"])

    def test_store_failure_on_read_is_a_json_error(self) -> None:
        ModuleColor.__table__.drop(db.engine)

        with self.assertLogs("agenda", level="ERROR"):
            response = self.call({"action": "list", "entity": "sessions"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"success": False, "error": "Erreur de base de données"})
        self.assertEqual(self.call({"action": "getRole"}).status_code, 200)

    def test_unexpected_error_is_a_json_error(self) -> None:
        with mock.patch("agenda.routes.dispatch", side_effect=RuntimeError("boom")):
            with self.assertLogs("agenda", level="ERROR"):
                response = self.call({"action": "getRole"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"success": False, "error": "Erreur interne du serveur"})
        self.assertEqual(self.client.get("/api").status_code, 405)

    def test_health_and_cors_preflight(self) -> None:
        health = self.client.get("/health")
        self.assertEqual(health.get_json(), {"status": "ok", "database": "ok"})

        preflight = self.client.options(
            "/api",
            headers={
                "Origin": "https://agenda.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, X-Timezone-Offset",
            },
        )
        self.assertEqual(preflight.headers.get("Access-Control-Allow-Origin"), "*")


if __name__ == "__main__":
    unittest.main()
