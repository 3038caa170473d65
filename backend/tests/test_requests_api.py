"""Tests for the project request endpoints.

Covers:
- Guest and signed-in submission, including variant validation
- Listing (own / admin with filters) and access to single requests
- Admin updates: history, timestamps, rejected transitions, version tokens
- Notifications sent after each successful change
"""
from tests.conftest import (
    ADMIN_ADDRESS, as_user, create_catalog_project, create_test_user, guest_submission,
)


def _admin(client):
    return create_test_user(client, username="admin", role="admin")


class TestSubmitRequest:

    def test_guest_submission(self, client, mail):
        resp = client.post("/api/requests/", json=guest_submission("visitor@example.com"))
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["status"] == "pending"
        assert data["payment_status"] == "pending"
        assert data["client_type"] == "guest"
        assert data["requester"] == {
            "kind": "guest", "name": "Guest Person", "email": "visitor@example.com", "phone": "+91 90000 00000",
        }
        assert data["project_ref"]["kind"] == "custom"
        assert data["history"] == []
        assert data["payment_summary"] == {
            "price": 1000, "amount_due_now": 700, "remaining_balance": 300, "amount_paid": 0,
        }
        assert [m["recipient"] for m in mail.sent] == ["visitor@example.com"]

    def test_signed_in_submission(self, client, db, mail):
        user = create_test_user(client, username="alice")
        project = create_catalog_project(db, price=2400)
        resp = client.post("/api/requests/", headers=as_user(user), json={
            "project": {"kind": "catalog", "project_id": project.project_id},
            "payment_option": "full",
        })
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["client_type"] == "registered"
        assert data["requester"]["user_id"] == user["user_id"]
        assert data["project_ref"]["project_id"] == project.project_id
        assert data["estimated_price"] == 2400
        assert data["payment_summary"]["amount_due_now"] == 2400
        assert mail.to("alice@example.com")

    def test_guest_without_contact_rejected(self, client):
        payload = guest_submission()
        del payload["guest"]
        resp = client.post("/api/requests/", json=payload)
        assert resp.status_code == 422

    def test_signed_in_with_guest_contact_rejected(self, client):
        user = create_test_user(client)
        resp = client.post("/api/requests/", headers=as_user(user), json=guest_submission())
        assert resp.status_code == 422

    def test_project_must_be_one_variant(self, client):
        payload = guest_submission(project={"kind": "custom", "name": "X", "description": "Y", "project_id": "p1"})
        resp = client.post("/api/requests/", json=payload)
        assert resp.status_code == 422

    def test_unknown_catalog_project(self, client):
        resp = client.post("/api/requests/", json=guest_submission(project={"kind": "catalog", "project_id": "nope"}))
        assert resp.status_code == 422

    def test_invalid_guest_email(self, client):
        resp = client.post("/api/requests/", json=guest_submission("not-an-email"))
        assert resp.status_code == 422

    def test_negative_price_rejected(self, client):
        resp = client.post("/api/requests/", json=guest_submission(estimated_price=-5))
        assert resp.status_code == 422


class TestListAndGet:

    def test_my_requests_only_own(self, client):
        alice = create_test_user(client, username="alice")
        bob = create_test_user(client, username="bob")
        custom = guest_submission()["project"]
        for user in (alice, alice, bob):
            resp = client.post("/api/requests/", headers=as_user(user), json={"project": custom})
            assert resp.status_code == 201
        client.post("/api/requests/", json=guest_submission())

        resp = client.get("/api/requests/my", headers=as_user(alice))
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 2
        assert all(r["requester"]["user_id"] == alice["user_id"] for r in data)
        assert data[0]["created_at"] >= data[1]["created_at"]

    def test_admin_lists_and_filters(self, client):
        admin = _admin(client)
        first = client.post("/api/requests/", json=guest_submission("a@example.com")).json()
        client.post("/api/requests/", json=guest_submission("b@example.com"))
        client.put(f"/api/requests/{first['request_id']}", headers=as_user(admin), json={"status": "approved"})

        everything = client.get("/api/requests/", headers=as_user(admin)).json()
        assert len(everything) == 2

        approved = client.get("/api/requests/", headers=as_user(admin), params={"status_filter": "approved"}).json()
        assert [r["request_id"] for r in approved] == [first["request_id"]]

        unpaid = client.get("/api/requests/", headers=as_user(admin), params={"payment_status": "pending"}).json()
        assert len(unpaid) == 2

    def test_owner_and_admin_can_view(self, client):
        alice = create_test_user(client, username="alice")
        admin = _admin(client)
        created = client.post("/api/requests/", headers=as_user(alice), json={"project": guest_submission()["project"]})
        request_id = created.json()["request_id"]

        assert client.get(f"/api/requests/{request_id}", headers=as_user(alice)).status_code == 200
        assert client.get(f"/api/requests/{request_id}", headers=as_user(admin)).status_code == 200

    def test_other_client_cannot_view(self, client):
        alice = create_test_user(client, username="alice")
        bob = create_test_user(client, username="bob")
        created = client.post("/api/requests/", headers=as_user(alice), json={"project": guest_submission()["project"]})
        resp = client.get(f"/api/requests/{created.json()['request_id']}", headers=as_user(bob))
        assert resp.status_code == 403

    def test_get_not_found(self, client):
        admin = _admin(client)
        resp = client.get("/api/requests/missing", headers=as_user(admin))
        assert resp.status_code == 404


class TestAdminUpdate:

    def _submit(self, client, email="visitor@example.com", **overrides):
        resp = client.post("/api/requests/", json=guest_submission(email, **overrides))
        assert resp.status_code == 201
        return resp.json()

    def test_full_walk_records_history(self, client):
        admin = _admin(client)
        req = self._submit(client)
        url = f"/api/requests/{req['request_id']}"
        steps = [
            {"status": "approved", "admin_notes": "Approved"},
            {"status": "in-progress", "admin_notes": "Started", "current_module": "Auth"},
            {"admin_notes": "Halfway", "current_module": "Payments", "github_link": "https://github.com/org/repo"},
            {"status": "completed", "admin_notes": "Done"},
        ]
        for body in steps:
            resp = client.put(url, headers=as_user(admin), json=body)
            assert resp.status_code == 200, resp.text

        data = resp.json()
        assert data["status"] == "completed"
        assert data["current_module"] == "Payments"
        assert data["github_link"] == "https://github.com/org/repo"
        assert data["approved_at"] is not None
        assert data["completed_at"] is not None
        assert [(h["status"], h["notes"]) for h in data["history"]] == [
            ("approved", "Approved"),
            ("in-progress", "Started"),
            ("in-progress", "Halfway"),
            ("completed", "Done"),
        ]
        assert all(h["updated_by"] == admin["user_id"] for h in data["history"])

    def test_invalid_transition_is_conflict(self, client, mail):
        admin = _admin(client)
        req = self._submit(client)
        mail.sent.clear()
        resp = client.put(f"/api/requests/{req['request_id']}", headers=as_user(admin), json={"status": "completed"})
        assert resp.status_code == 409

        after = client.get(f"/api/requests/{req['request_id']}", headers=as_user(admin)).json()
        assert after["status"] == "pending"
        assert after["history"] == []
        assert mail.sent == []

    def test_unknown_status_value(self, client):
        admin = _admin(client)
        req = self._submit(client)
        resp = client.put(f"/api/requests/{req['request_id']}", headers=as_user(admin), json={"status": "archived"})
        assert resp.status_code == 422

    def test_unknown_fields_ignored(self, client):
        admin = _admin(client)
        req = self._submit(client)
        resp = client.put(f"/api/requests/{req['request_id']}", headers=as_user(admin), json={
            "admin_notes": "ok", "client_type": "registered", "guest_email": "evil@example.com",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["client_type"] == "guest"
        assert data["requester"]["email"] == "visitor@example.com"

    def test_client_cannot_update(self, client):
        user = create_test_user(client)
        req = self._submit(client)
        resp = client.put(f"/api/requests/{req['request_id']}", headers=as_user(user), json={"status": "approved"})
        assert resp.status_code == 403

    def test_update_not_found(self, client):
        admin = _admin(client)
        resp = client.put("/api/requests/missing", headers=as_user(admin), json={"status": "approved"})
        assert resp.status_code == 404

    def test_stale_version_token(self, client):
        admin = _admin(client)
        req = self._submit(client)
        url = f"/api/requests/{req['request_id']}"
        first = client.put(url, headers=as_user(admin), json={"admin_notes": "one", "version": req["version"]})
        assert first.status_code == 200
        assert first.json()["version"] == req["version"] + 1

        stale = client.put(url, headers=as_user(admin), json={"admin_notes": "two", "version": req["version"]})
        assert stale.status_code == 409
        assert client.get(url, headers=as_user(admin)).json()["admin_notes"] == "one"

    def test_actual_price_changes_amount_due(self, client):
        admin = _admin(client)
        req = self._submit(client, estimated_price=500)
        assert req["payment_summary"]["amount_due_now"] == 350
        resp = client.put(f"/api/requests/{req['request_id']}", headers=as_user(admin), json={"actual_price": 600})
        assert resp.json()["payment_summary"]["amount_due_now"] == 420

    def test_update_notifies_requester_and_admin(self, client, mail):
        admin = _admin(client)
        req = self._submit(client)
        mail.sent.clear()
        client.put(f"/api/requests/{req['request_id']}", headers=as_user(admin),
                   json={"status": "approved", "admin_notes": "See you Monday"})
        requester_mail = mail.to("visitor@example.com")
        assert len(requester_mail) == 1
        assert requester_mail[0]["subject"] == "Request APPROVED"
        assert "See you Monday" in requester_mail[0]["body"]
        assert len(mail.to(ADMIN_ADDRESS)) == 1

    def test_rejected_is_terminal(self, client):
        admin = _admin(client)
        req = self._submit(client)
        url = f"/api/requests/{req['request_id']}"
        assert client.put(url, headers=as_user(admin), json={"status": "rejected"}).status_code == 200
        assert client.put(url, headers=as_user(admin), json={"status": "approved"}).status_code == 409
