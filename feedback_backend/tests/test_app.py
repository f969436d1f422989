import unittest

from bson import ObjectId
from fastapi.testclient import TestClient

from feedback_backend.app import create_app
from feedback_backend.config import Settings
from feedback_backend.dependencies import (
    get_feedback_store,
    get_improvement_store,
    get_session_store,
)
from feedback_backend.errors import PersistenceError
from feedback_backend.records import FEEDBACK, IMPROVEMENT
from feedback_backend.sessions import Identity, InMemorySessionStore, sign_session_token
from feedback_backend.store import InMemoryRecordStore

SECRET = "test-secret"
FEEDBACK_BODY = {"studentName": "Riya", "house": "Megh", "rating": 4, "comment": "Nice"}
IMPROVEMENT_BODY = {"problem": "Noisy hall", "solution": "Rugs", "submittedBy": "Ana"}


class BrokenStore(InMemoryRecordStore):
    def list_all(self):
        raise PersistenceError("Failed to load feedback")


class ApiTestCase(unittest.TestCase):
    require_auth = False

    def setUp(self):
        settings = Settings(
            use_in_memory_backends=True,
            require_auth=self.require_auth,
            session_secret=SECRET,
        )
        self.settings = settings
        self.app = create_app(settings)
        self.feedback = InMemoryRecordStore(FEEDBACK)
        self.improvements = InMemoryRecordStore(IMPROVEMENT)
        self.sessions = InMemorySessionStore()
        self.app.dependency_overrides[get_feedback_store] = lambda: self.feedback
        self.app.dependency_overrides[get_improvement_store] = lambda: self.improvements
        self.app.dependency_overrides[get_session_store] = lambda: self.sessions
        self.client = TestClient(self.app)

    def sign_in(self):
        record = self.sessions.create(
            Identity(id="42", name="Ms Rao", email="rao@example.com")
        )
        self.client.cookies.set(
            self.settings.session_cookie_name, sign_session_token(record, SECRET)
        )
        return record


class FeedbackApiTests(ApiTestCase):
    def test_create_returns_stored_record(self):
        response = self.client.post("/api/feedback", json=FEEDBACK_BODY)
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertTrue(ObjectId.is_valid(payload["_id"]))
        self.assertIn("timestamp", payload)
        for key, value in FEEDBACK_BODY.items():
            self.assertEqual(payload[key], value)

    def test_defaults_for_minimal_payload(self):
        response = self.client.post(
            "/api/feedback", json={"studentName": "Riya", "house": "Megh", "rating": 3}
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["comment"], "")
        self.assertEqual(len(self.feedback.records), 1)

    def test_rating_out_of_range_is_rejected(self):
        for rating in (0, 6):
            response = self.client.post(
                "/api/feedback", json={**FEEDBACK_BODY, "rating": rating}
            )
            self.assertEqual(response.status_code, 400)
            self.assertIn("rating", response.json()["error"])
        self.assertEqual(self.client.get("/api/feedback").json(), [])

    def test_unknown_house_is_rejected(self):
        response = self.client.post(
            "/api/feedback", json={**FEEDBACK_BODY, "house": "Ravenclaw"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.json())
        self.assertEqual(self.feedback.records, {})

    def test_malformed_body(self):
        response = self.client.post(
            "/api/feedback",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.post("/api/feedback").status_code, 400)

    def test_extra_fields_are_ignored(self):
        response = self.client.post(
            "/api/feedback", json={**FEEDBACK_BODY, "_id": "abc", "isAdmin": True}
        )
        self.assertEqual(response.status_code, 201)
        self.assertNotIn("isAdmin", response.json())
        self.assertNotEqual(response.json()["_id"], "abc")

    def test_list_is_newest_first(self):
        first = self.client.post("/api/feedback", json={**FEEDBACK_BODY, "studentName": "A"})
        second = self.client.post("/api/feedback", json={**FEEDBACK_BODY, "studentName": "B"})
        listed = self.client.get("/api/feedback")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(
            [r["_id"] for r in listed.json()],
            [second.json()["_id"], first.json()["_id"]],
        )

    def test_roundtrip_through_listing(self):
        created = self.client.post("/api/feedback", json=FEEDBACK_BODY).json()
        self.assertEqual(self.client.get("/api/feedback").json(), [created])

    def test_update(self):
        created = self.client.post("/api/feedback", json=FEEDBACK_BODY).json()
        response = self.client.put(
            f"/api/feedback/{created['_id']}",
            json={"studentName": "Riya S", "house": "Bhairav", "rating": 5},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["house"], "Bhairav")
        self.assertEqual(payload["comment"], "")
        self.assertEqual(payload["timestamp"], created["timestamp"])

    def test_update_invalid_payload(self):
        created = self.client.post("/api/feedback", json=FEEDBACK_BODY).json()
        response = self.client.put(
            f"/api/feedback/{created['_id']}", json={**FEEDBACK_BODY, "rating": 10}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/api/feedback").json(), [created])

    def test_update_unknown_id_is_404_and_creates_nothing(self):
        response = self.client.put(f"/api/feedback/{ObjectId()}", json=FEEDBACK_BODY)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Feedback not found"})
        self.assertEqual(self.client.get("/api/feedback").json(), [])

    def test_delete_twice(self):
        created = self.client.post("/api/feedback", json=FEEDBACK_BODY).json()
        first = self.client.delete(f"/api/feedback/{created['_id']}")
        self.assertEqual(first.status_code, 200)
        self.assertEqual(
            first.json(),
            {"message": "Feedback deleted successfully", "deleted": created},
        )
        second = self.client.delete(f"/api/feedback/{created['_id']}")
        self.assertEqual(second.status_code, 404)

    def test_malformed_id_is_400(self):
        self.assertEqual(self.client.delete("/api/feedback/not-an-id").status_code, 400)
        self.assertEqual(
            self.client.put("/api/feedback/123", json=FEEDBACK_BODY).status_code, 400
        )

    def test_store_failure_is_500_without_details(self):
        self.app.dependency_overrides[get_feedback_store] = lambda: BrokenStore(FEEDBACK)
        response = self.client.get("/api/feedback")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Failed to load feedback"})


class ImprovementApiTests(ApiTestCase):
    def test_crud_cycle(self):
        created = self.client.post("/api/improvements", json=IMPROVEMENT_BODY)
        self.assertEqual(created.status_code, 201)
        record_id = created.json()["_id"]

        updated = self.client.put(
            f"/api/improvements/{record_id}",
            json={**IMPROVEMENT_BODY, "solution": "  Carpets  "},
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["solution"], "Carpets")

        listed = self.client.get("/api/improvements").json()
        self.assertEqual([r["_id"] for r in listed], [record_id])

        deleted = self.client.delete(f"/api/improvements/{record_id}")
        self.assertEqual(deleted.json()["message"], "Improvement deleted successfully")
        self.assertEqual(self.client.get("/api/improvements").json(), [])

    def test_missing_field(self):
        response = self.client.post(
            "/api/improvements", json={"problem": "x", "solution": "y"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("submittedBy", response.json()["error"])

    def test_not_found(self):
        response = self.client.delete(f"/api/improvements/{ObjectId()}")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Improvement not found"})


class ProtectedApiTests(ApiTestCase):
    require_auth = True

    def test_create_without_session_is_401_and_not_persisted(self):
        response = self.client.post("/api/feedback", json=FEEDBACK_BODY)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Authentication required"})
        self.assertEqual(self.feedback.records, {})

    def test_gate_runs_before_body_is_read(self):
        response = self.client.post(
            "/api/improvements",
            content=b"{broken",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 401)

    def test_reads_are_open(self):
        self.assertEqual(self.client.get("/api/feedback").status_code, 200)
        self.assertEqual(self.client.get("/api/improvements").status_code, 200)

    def test_update_and_delete_are_gated(self):
        created = self.feedback.create(FEEDBACK_BODY)
        self.assertEqual(
            self.client.put(f"/api/feedback/{created.id}", json=FEEDBACK_BODY).status_code,
            401,
        )
        self.assertEqual(
            self.client.delete(f"/api/feedback/{created.id}").status_code, 401
        )
        self.assertEqual(len(self.feedback.records), 1)

    def test_signed_in_user_can_write(self):
        self.sign_in()
        response = self.client.post("/api/feedback", json=FEEDBACK_BODY)
        self.assertEqual(response.status_code, 201)

    def test_forged_cookie_is_rejected(self):
        record = self.sign_in()
        self.client.cookies.set(
            self.settings.session_cookie_name, sign_session_token(record, "wrong")
        )
        self.assertEqual(
            self.client.post("/api/feedback", json=FEEDBACK_BODY).status_code, 401
        )

    def test_ended_session_is_rejected(self):
        record = self.sign_in()
        self.sessions.delete(record.session_id)
        self.assertEqual(
            self.client.post("/api/feedback", json=FEEDBACK_BODY).status_code, 401
        )


class HealthTests(ApiTestCase):
    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})


if __name__ == "__main__":
    unittest.main()
