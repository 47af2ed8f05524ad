"""
Integration test: the HTTP API end to end on a memory repository.
"""

import csv
import io

import pytest

from vetverify.app import create_app
from vetverify.notifications import LoggingMailer
from vetverify.repositories import MemoryRepository


@pytest.fixture
def mailer():
    return LoggingMailer()


@pytest.fixture
def client(settings, mailer):
    app = create_app(repository=MemoryRepository(), settings=settings, mailer=mailer)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def register(client):
    def _register(account_id, role="veterinarian", **extra):
        body = {"id": account_id, "email": f"{account_id}@example.com", "role": role, **extra}
        response = client.post("/api/accounts", json=body)
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _register


@pytest.fixture
def submit(client, register, vet_data, vet_uploads, vendor_data, vendor_uploads):
    def _submit(account_id, role="veterinarian", **overrides):
        register(account_id, role)
        if role == "vendor":
            profile, documents = dict(vendor_data), vendor_uploads
        else:
            profile, documents = dict(vet_data), vet_uploads
        profile.update(overrides)
        response = client.post(f"/api/accounts/{account_id}/profile",
                               json={"profile": profile, "documents": documents})
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _submit


class TestProfessionalRoutes:

    def test_register_and_get(self, client, register):
        register("vet-1")

        response = client.get("/api/accounts/vet-1")

        data = response.get_json()
        assert response.status_code == 200
        assert data["state"] == "unsubmitted"
        assert data["profile"] is None

    def test_register_duplicate(self, client, register):
        register("vet-1")
        response = client.post("/api/accounts", json={"id": "vet-1", "email": "x@example.com",
                                                      "role": "veterinarian"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "validation_error"

    def test_unknown_account(self, client):
        response = client.get("/api/accounts/ghost")
        assert response.status_code == 404
        assert response.get_json()["error"] == "account_not_found"

    def test_submit(self, client, submit):
        profile = submit("vet-1")

        assert profile["status"] == "pending"
        assert profile["role"] == "veterinarian"
        assert client.get("/api/accounts/vet-1").get_json()["state"] == "pending"

    def test_submit_invalid_fields(self, client, register, vet_data, vet_uploads):
        register("vet-1")
        vet_data["license_number"] = "V1"

        response = client.post("/api/accounts/vet-1/profile",
                               json={"profile": vet_data, "documents": vet_uploads})

        assert response.status_code == 400
        assert "license_number" in response.get_json()["fields"]

    def test_submit_missing_documents(self, client, register, vet_data, vet_uploads):
        register("vet-1")

        response = client.post("/api/accounts/vet-1/profile",
                               json={"profile": vet_data, "documents": vet_uploads[:1]})

        data = response.get_json()
        assert response.status_code == 400
        assert data["error"] == "documents_incomplete"
        assert data["missing_types"] == ["degree"]

    def test_submit_twice_conflicts(self, client, submit, vet_data, vet_uploads):
        submit("vet-1")

        response = client.post("/api/accounts/vet-1/profile",
                               json={"profile": vet_data, "documents": vet_uploads})

        assert response.status_code == 409
        assert response.get_json()["error"] == "invalid_transition"

    def test_non_object_body(self, client, register):
        register("vet-1")
        response = client.post("/api/accounts/vet-1/profile", json=["not", "an", "object"])
        assert response.status_code == 400

    def test_upload_documents_then_submit(self, client, register, vet_data, data_dir):
        register("vet-1")
        uploaded = []
        for name in ("vci_license.pdf", "bvsc_degree.pdf"):
            response = client.post("/api/accounts/vet-1/documents",
                                   data={"file": (io.BytesIO(b"%PDF-1.4 scan"), name)},
                                   content_type="multipart/form-data")
            assert response.status_code == 201, response.get_json()
            uploaded.append(response.get_json())

        assert [u["document_type"] for u in uploaded] == ["license", "degree"]
        assert (data_dir / "documents" / "vet-1" / "vci_license.pdf").read_bytes() == b"%PDF-1.4 scan"

        response = client.post("/api/accounts/vet-1/profile", json={"profile": vet_data, "documents": uploaded})
        assert response.status_code == 201

    def test_upload_empty_file(self, client, register):
        register("vet-1")
        response = client.post("/api/accounts/vet-1/documents",
                               data={"file": (io.BytesIO(b""), "vci_license.pdf")},
                               content_type="multipart/form-data")
        assert response.status_code == 400
        assert response.get_json()["fields"]["file"] == "file is empty"

    def test_upload_unknown_account(self, client):
        response = client.post("/api/accounts/ghost/documents",
                               data={"file": (io.BytesIO(b"x"), "license.pdf")},
                               content_type="multipart/form-data")
        assert response.status_code == 404

    def test_edit_profile(self, client, submit):
        submit("vet-1")

        response = client.patch("/api/accounts/vet-1/profile", json={"bio": "Now also treats exotics."})

        assert response.status_code == 200
        assert response.get_json()["version"] == 2
        history = client.get("/api/accounts/vet-1/profile/history").get_json()
        assert [p["version"] for p in history] == [1, 2]

    def test_preferences(self, client, register):
        register("vet-1")

        response = client.put("/api/accounts/vet-1/preferences",
                              json={"email": {"status_changes": False}})

        assert response.status_code == 200
        assert response.get_json()["email"]["status_changes"] is False

    def test_document_types(self, client):
        data = client.get("/api/document-types").get_json()
        assert data["veterinarian"]["required"] == ["license", "degree"]


class TestAdminRoutes:

    def test_queue(self, client, submit):
        submit("vet-1")
        submit("ven-1", role="vendor")

        data = client.get("/api/admin/queue?role=vendor").get_json()

        assert data["total_count"] == 1
        assert data["items"][0]["account"]["id"] == "ven-1"

    def test_queue_search_and_paging(self, client, submit):
        submit("vet-1")
        submit("vet-2", full_name="Dr. Rohan Mehta")
        submit("vet-3", full_name="Dr. Meera Sharma")

        data = client.get("/api/admin/queue?search=sharma&page=2&page_size=1").get_json()

        assert data["total_count"] == 2
        assert data["total_pages"] == 2
        assert [e["account"]["id"] for e in data["items"]] == ["vet-3"]

    def test_queue_bad_paging(self, client):
        assert client.get("/api/admin/queue?page=0").status_code == 400
        assert client.get("/api/admin/queue?page=two").status_code == 400
        assert client.get("/api/admin/queue?role=groomer").status_code == 400

    def test_decision(self, client, submit, mailer):
        submit("vet-1")

        response = client.post("/api/admin/accounts/vet-1/decision",
                               json={"decision": "approved", "admin_id": "admin-1"})

        assert response.status_code == 200
        assert response.get_json()["sequence"] == 1
        assert client.get("/api/accounts/vet-1").get_json()["state"] == "approved"
        assert [to for to, _, _ in mailer.sent] == ["vet-1@example.com"]

    def test_reject_without_reason(self, client, submit):
        submit("vet-1")
        response = client.post("/api/admin/accounts/vet-1/decision", json={"decision": "rejected"})
        assert response.status_code == 400
        assert "reason" in response.get_json()["fields"]

    def test_decision_on_unsubmitted(self, client, register):
        register("vet-1")
        response = client.post("/api/admin/accounts/vet-1/decision", json={"decision": "approved"})
        assert response.status_code == 409

    def test_batch_partial(self, client, submit, register):
        submit("vet-1")
        submit("vet-2")
        register("vet-3")

        response = client.post("/api/admin/decisions/batch", json={
            "account_ids": ["vet-1", "vet-2", "vet-3", "ghost"],
            "decision": "rejected",
            "reason": "Unreadable Documents",
        })

        data = response.get_json()
        assert response.status_code == 207
        assert data["succeeded"] == ["vet-1", "vet-2"]
        assert data["failed"]["vet-3"]["error"] == "invalid_transition"
        assert data["failed"]["ghost"]["error"] == "account_not_found"

    def test_batch_with_filter(self, client, submit):
        submit("vet-1")
        submit("ven-1", role="vendor")

        response = client.post("/api/admin/decisions/batch", json={
            "account_ids": ["vet-1", "ven-1"],
            "decision": "approved",
            "role": "vendor",
        })

        assert response.status_code == 200
        assert response.get_json()["succeeded"] == ["ven-1"]
        assert client.get("/api/accounts/vet-1").get_json()["state"] == "pending"

    def test_batch_bad_ids(self, client):
        response = client.post("/api/admin/decisions/batch", json={"account_ids": "vet-1", "decision": "approved"})
        assert response.status_code == 400

    def test_suspend_reinstate_history(self, client, submit):
        submit("vet-1")
        client.post("/api/admin/accounts/vet-1/decision", json={"decision": "approved"})

        assert client.post("/api/admin/accounts/vet-1/suspend",
                           json={"comments": "Complaint under review"}).status_code == 200
        assert client.get("/api/accounts/vet-1").get_json()["state"] == "suspended"
        assert client.post("/api/admin/accounts/vet-1/reinstate", json={}).status_code == 200

        history = client.get("/api/admin/accounts/vet-1/history").get_json()
        assert [d["status"] for d in history] == ["approved", "suspended", "approved"]

    def test_export_csv(self, client, submit):
        submit("vet-1")
        submit("vet-2")
        client.post("/api/admin/accounts/vet-1/decision", json={"decision": "approved"})

        response = client.get("/api/admin/export/approved.csv")

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        rows = list(csv.DictReader(io.StringIO(response.get_data(as_text=True))))
        assert [r["account_id"] for r in rows] == ["vet-1"]

    def test_rejection_reasons(self, client):
        reasons = client.get("/api/admin/rejection-reasons").get_json()
        assert "Invalid License Number" in reasons

    def test_reconcile_and_reminders(self, client, register, submit):
        register("vet-1")
        submit("vet-2")

        assert client.post("/api/admin/reconcile").get_json() == {"checked": 1, "repaired": {}}
        assert client.post("/api/admin/reminders").get_json() == {"sent": 1}


class TestNotificationRoutes:

    def test_feed_and_read(self, client, register, submit):
        register("admin-1", role="admin")
        submit("vet-1")
        client.post("/api/admin/accounts/vet-1/decision", json={"decision": "approved"})

        feed = client.get("/api/notifications/vet-1").get_json()
        assert feed["unread_count"] == 1
        notification = feed["items"][0]
        assert notification["type"] == "status_approved"
        assert notification["link"] == "/profile"

        response = client.post(f"/api/notifications/vet-1/{notification['id']}/read")
        assert response.status_code == 200
        assert response.get_json()["is_read"] is True
        assert client.get("/api/notifications/vet-1?unread=1").get_json()["items"] == []

        admin_feed = client.get("/api/notifications/admin-1").get_json()
        assert admin_feed["items"][0]["link"] == "/admin/verifications/vet-1"

    def test_read_all(self, client, register, submit):
        register("admin-1", role="admin")
        submit("vet-1")
        submit("vet-2")

        assert client.post("/api/notifications/admin-1/read-all").get_json() == {"changed": 2}
        assert client.get("/api/notifications/admin-1").get_json()["unread_count"] == 0

    def test_read_unknown(self, client):
        response = client.post("/api/notifications/vet-1/notif-missing/read")
        assert response.status_code == 404
