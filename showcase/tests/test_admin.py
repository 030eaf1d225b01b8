"""Tests for the admin API and admin settings.

Tests cover:
- Inviting, listing, updating and deleting users
- Viewer prototype assignments
- Audit log listing and filters
- Access request listing and review
- Dashboard analytics
- Slack and default branding settings
"""

from unittest.mock import AsyncMock, patch

import pytest
import requests

from conftest import create_link, create_user, login, upload_prototype

UNKNOWN_ID = "3f0b8c1e-0000-4000-8000-000000000099"


# ── Tests: Users ─────────────────────────────────────────────────────────


class TestInvite:
    """Tests for POST /api/admin/users/invite."""

    def test_invite(self, admin_client, email_service):
        response = admin_client.post(
            "/api/admin/users/invite", json={"email": " New@Example.com ", "name": "New", "role": "prospect"}
        )
        body = response.json()

        assert response.status_code == 201
        assert body["user"]["email"] == "new@example.com"
        assert body["user"]["is_active"] is False
        assert body["user"]["invite_pending"] is True
        assert body["invite_url"] == f"http://client.test/invite/{body['invite_token']}"
        email_service.send_invite.assert_called_once_with("new@example.com", body["invite_url"])

    def test_invite_can_be_accepted(self, admin_client, make_client):
        body = admin_client.post("/api/admin/users/invite", json={"email": "new@example.com"}).json()
        assert body["user"]["role"] == "viewer"

        invitee = make_client()
        accepted = invitee.post(
            "/api/auth/accept-invite", json={"token": body["invite_token"], "password": "Welcome123"}
        )
        assert accepted.status_code == 200
        assert login(make_client(), "new@example.com", "Welcome123").status_code == 200

    def test_duplicate(self, admin_client):
        response = admin_client.post("/api/admin/users/invite", json={"email": "admin@example.com"})
        assert response.status_code == 409

    @pytest.mark.parametrize("payload", [
        {"email": "not-an-email"},
        {"email": "x@example.com", "role": "owner"},
    ])
    def test_invalid(self, admin_client, payload):
        assert admin_client.post("/api/admin/users/invite", json=payload).status_code == 400


class TestManageUsers:

    def test_list(self, admin_client, db_manager):
        create_user(db_manager, "p@example.com", "prospect")
        users = admin_client.get("/api/admin/users").json()["users"]

        assert {u["email"] for u in users} == {"admin@example.com", "p@example.com"}
        assert all("password_hash" not in u for u in users)

    def test_update(self, admin_client, db_manager):
        uid = create_user(db_manager, "p@example.com", "prospect")
        response = admin_client.patch(f"/api/admin/users/{uid}", json={"role": "viewer", "name": "Pat"})

        assert response.json()["user"]["role"] == "viewer"
        assert response.json()["user"]["name"] == "Pat"
        log = admin_client.get("/api/admin/audit-logs", params={"action": "user:update"}).json()["logs"][0]
        assert log["details"] == {"role": "viewer", "name": "Pat"}

    def test_cannot_demote_self(self, admin_client, admin_id):
        response = admin_client.patch(f"/api/admin/users/{admin_id}", json={"role": "viewer"})

        assert response.status_code == 400
        assert response.json()["detail"] == "You cannot change your own role"

    def test_cannot_deactivate_self(self, admin_client, admin_id):
        response = admin_client.patch(f"/api/admin/users/{admin_id}", json={"is_active": False})
        assert response.json()["detail"] == "You cannot deactivate your own account"

    def test_empty_name(self, admin_client, db_manager):
        uid = create_user(db_manager, "p@example.com", "prospect")
        assert admin_client.patch(f"/api/admin/users/{uid}", json={"name": " "}).status_code == 400

    def test_unknown_user(self, admin_client):
        assert admin_client.patch(f"/api/admin/users/{UNKNOWN_ID}", json={"name": "X"}).status_code == 404

    def test_delete(self, admin_client, db_manager):
        uid = create_user(db_manager, "p@example.com", "prospect")

        assert admin_client.delete(f"/api/admin/users/{uid}").json() == {"message": "User deleted"}
        assert admin_client.delete(f"/api/admin/users/{uid}").status_code == 404
        log = admin_client.get("/api/admin/audit-logs", params={"action": "user:delete"}).json()["logs"][0]
        assert log["details"] == {"email": "p@example.com"}

    def test_cannot_delete_self(self, admin_client, admin_id):
        response = admin_client.delete(f"/api/admin/users/{admin_id}")

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot delete yourself"


# ── Tests: Assignments ───────────────────────────────────────────────────


class TestAssignments:
    """Tests for /api/admin/users/{id}/prototypes."""

    @pytest.fixture
    def viewer_id(self, db_manager):
        return create_user(db_manager, "v@example.com", "viewer")

    def test_assign_list_unassign(self, admin_client, viewer_id):
        prototype = upload_prototype(admin_client)
        url = f"/api/admin/users/{viewer_id}/prototypes"

        first = admin_client.post(url, json={"prototype_id": prototype["id"]})
        again = admin_client.post(url, json={"prototype_id": prototype["id"]})
        assert first.status_code == 201
        assert first.json()["created"] is True
        assert again.json()["created"] is False

        assigned = admin_client.get(url).json()["prototypes"]
        assert [a["prototype_id"] for a in assigned] == [prototype["id"]]

        assert admin_client.delete(f"{url}/{prototype['id']}").json() == {"message": "Prototype unassigned"}
        assert admin_client.get(url).json()["prototypes"] == []

        response = admin_client.delete(f"{url}/{prototype['id']}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Assignment not found"

    def test_only_viewers(self, admin_client, db_manager):
        prospect_id = create_user(db_manager, "p@example.com", "prospect")
        prototype = upload_prototype(admin_client)

        response = admin_client.post(
            f"/api/admin/users/{prospect_id}/prototypes", json={"prototype_id": prototype["id"]}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Prototypes can only be assigned to viewers"

    def test_unknown_prototype(self, admin_client, viewer_id):
        response = admin_client.post(
            f"/api/admin/users/{viewer_id}/prototypes", json={"prototype_id": UNKNOWN_ID}
        )
        assert response.status_code == 404

    def test_unknown_user(self, admin_client):
        assert admin_client.get(f"/api/admin/users/{UNKNOWN_ID}/prototypes").status_code == 404

    def test_deleting_viewer_removes_assignments(self, admin_client, viewer_id):
        prototype = upload_prototype(admin_client)
        admin_client.post(f"/api/admin/users/{viewer_id}/prototypes", json={"prototype_id": prototype["id"]})

        assert admin_client.delete(f"/api/admin/users/{viewer_id}").status_code == 200
        assert admin_client.get(f"/api/prototypes/{prototype['id']}").status_code == 200


# ── Tests: Audit log ─────────────────────────────────────────────────────


class TestAuditLogs:

    def test_filters(self, admin_client, admin_id):
        upload_prototype(admin_client)

        by_action = admin_client.get("/api/admin/audit-logs", params={"action": "prototype:create"}).json()
        assert len(by_action["logs"]) == 1
        assert by_action["logs"][0]["user_email"] == "admin@example.com"

        by_type = admin_client.get("/api/admin/audit-logs", params={"resource_type": "http"}).json()
        assert by_type["logs"]
        assert all(log["action"] == "http:request" for log in by_type["logs"])

        by_user = admin_client.get("/api/admin/audit-logs", params={"user_id": admin_id}).json()
        assert all(log["user_id"] == admin_id for log in by_user["logs"])

    def test_invalid_user_filter(self, admin_client):
        body = admin_client.get("/api/admin/audit-logs", params={"user_id": "nope"}).json()
        assert body == {"logs": []}

    def test_limit(self, admin_client):
        for _ in range(3):
            admin_client.get("/api/auth/me")
        assert len(admin_client.get("/api/admin/audit-logs", params={"limit": 2}).json()["logs"]) == 2
        assert admin_client.get("/api/admin/audit-logs", params={"limit": 0}).status_code == 422


# ── Tests: Access requests ───────────────────────────────────────────────


class TestAccessRequestReview:
    """Tests for /api/admin/access-requests."""

    @pytest.fixture
    def pending(self, admin_client, client):
        prototype = upload_prototype(admin_client, title="Secret", is_top_secret=True)
        link = create_link(admin_client, prototype["id"], label="Roadshow")
        response = client.post(
            f"/api/viewer/{link['token']}/request-access",
            json={"name": "Jane", "email": "jane@acme.com", "company": "Acme"},
        )
        assert response.status_code == 201, response.text
        return {"id": response.json()["request"]["id"], "link": link, "prototype": prototype}

    def test_list(self, admin_client, pending):
        requests_ = admin_client.get("/api/admin/access-requests").json()["requests"]

        assert len(requests_) == 1
        item = requests_[0]
        assert item["prototype_title"] == "Secret"
        assert item["link_label"] == "Roadshow"
        assert item["requester_company"] == "Acme"
        assert item["status"] == "pending"

    def test_status_filter(self, admin_client, pending):
        assert len(admin_client.get("/api/admin/access-requests", params={"status": "pending"}).json()["requests"]) == 1
        assert admin_client.get("/api/admin/access-requests", params={"status": "denied"}).json()["requests"] == []
        assert admin_client.get("/api/admin/access-requests", params={"status": "bogus"}).status_code == 400

    def test_approve(self, admin_client, pending, email_service, slack_service):
        response = admin_client.patch(f"/api/admin/access-requests/{pending['id']}", json={"status": "approved"})
        body = response.json()

        assert body["message"] == "Access request approved"
        assert body["request"]["reviewer_email"] is None
        assert body["request"]["reviewed_at"] is not None
        email_service.send_access_approved.assert_called_once_with(
            "jane@acme.com", "Jane", "Secret", pending["link"]["share_url"]
        )
        slack_service.notify.assert_called_with(
            "access_approved", {"prototype_title": "Secret", "name": "Jane", "email": "jane@acme.com"}
        )

        listed = admin_client.get("/api/admin/access-requests").json()["requests"][0]
        assert listed["reviewer_email"] == "admin@example.com"

    def test_deny(self, admin_client, pending, email_service):
        response = admin_client.patch(f"/api/admin/access-requests/{pending['id']}", json={"status": "denied"})

        assert response.json()["request"]["status"] == "denied"
        email_service.send_access_denied.assert_called_once_with("jane@acme.com", "Jane", "Secret")
        email_service.send_access_approved.assert_not_called()

    def test_review_twice(self, admin_client, pending):
        admin_client.patch(f"/api/admin/access-requests/{pending['id']}", json={"status": "denied"})
        response = admin_client.patch(f"/api/admin/access-requests/{pending['id']}", json={"status": "approved"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Request has already been reviewed"

    def test_invalid_decision(self, admin_client, pending):
        response = admin_client.patch(f"/api/admin/access-requests/{pending['id']}", json={"status": "pending"})
        assert response.status_code == 400

    def test_unknown_request(self, admin_client):
        response = admin_client.patch(f"/api/admin/access-requests/{UNKNOWN_ID}", json={"status": "denied"})
        assert response.status_code == 404


# ── Tests: Analytics ─────────────────────────────────────────────────────


class TestAnalytics:

    def test_empty(self, admin_client):
        analytics = admin_client.get("/api/admin/analytics").json()["analytics"]

        assert analytics["total_users"] == 1
        assert analytics["total_prototypes"] == 0
        assert analytics["average_rating"] is None
        assert analytics["top_prototypes"] == []

    def test_counts(self, admin_client, client):
        prototype = upload_prototype(admin_client)
        upload_prototype(admin_client, title="Draft", status="draft")
        link = create_link(admin_client, prototype["id"])
        revoked = create_link(admin_client, prototype["id"])
        admin_client.patch(f"/api/links/{revoked['id']}", json={"is_revoked": True})

        client.get(f"/api/viewer/{link['token']}")
        client.get(f"/api/viewer/{link['token']}")
        client.post(f"/api/viewer/{link['token']}/feedback", json={"comment": "Good", "rating": 4})
        client.post(f"/api/viewer/{link['token']}/feedback", json={"comment": "Fine", "rating": 3})

        analytics = admin_client.get("/api/admin/analytics").json()["analytics"]
        assert analytics["total_prototypes"] == 2
        assert analytics["published_prototypes"] == 1
        assert analytics["total_links"] == 2
        assert analytics["active_links"] == 1
        assert analytics["total_views"] == 2
        assert analytics["views_last_7_days"] == 2
        assert analytics["total_feedback"] == 2
        assert analytics["average_rating"] == 3.5
        assert analytics["top_prototypes"] == [
            {"id": prototype["id"], "title": "Checkout flow", "view_count": 2}
        ]


# ── Tests: Settings ──────────────────────────────────────────────────────


class TestSlackSettings:
    """Tests for /api/admin/settings/slack."""

    WEBHOOK = "https://hooks.slack.test/services/T000/B000/XXX"

    def test_defaults(self, admin_client):
        data = admin_client.get("/api/admin/settings/slack").json()["data"]

        assert data["webhook_url"] == ""
        assert all(data["events"].values())

    def test_save(self, admin_client):
        response = admin_client.post(
            "/api/admin/settings/slack", json={"webhook_url": self.WEBHOOK, "events": {"view": False}}
        )
        data = response.json()["data"]

        assert data["webhook_url"] == self.WEBHOOK
        assert data["events"]["view"] is False
        assert data["events"]["feedback"] is True
        assert admin_client.get("/api/admin/settings/slack").json()["data"] == data

    def test_rejects_plain_http(self, admin_client):
        response = admin_client.post("/api/admin/settings/slack", json={"webhook_url": "http://hooks.test"})
        assert response.status_code == 400

    def test_rejects_unknown_event(self, admin_client):
        response = admin_client.post(
            "/api/admin/settings/slack", json={"webhook_url": self.WEBHOOK, "events": {"deploy": True}}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown Slack events: deploy"

    def test_test_without_webhook(self, admin_client):
        response = admin_client.post("/api/admin/settings/slack/test", json={})

        assert response.status_code == 400
        assert response.json()["detail"] == "No Slack webhook configured"

    def test_test_uses_saved_webhook(self, admin_client, slack_service):
        admin_client.post("/api/admin/settings/slack", json={"webhook_url": self.WEBHOOK})
        response = admin_client.post("/api/admin/settings/slack/test", json={})

        assert response.json() == {"success": True, "message": "Test message sent"}
        slack_service.send_test.assert_called_once_with(self.WEBHOOK)

    def test_test_runs_off_the_event_loop(self, admin_client, slack_service):
        with patch("showcase.api.routes.fastapi_settings.run_in_threadpool", new_callable=AsyncMock) as pool:
            response = admin_client.post("/api/admin/settings/slack/test", json={"webhook_url": self.WEBHOOK})

        assert response.status_code == 200
        pool.assert_awaited_once_with(slack_service.send_test, self.WEBHOOK)

    def test_test_failure(self, admin_client, slack_service):
        slack_service.send_test.side_effect = requests.ConnectionError("refused")
        response = admin_client.post("/api/admin/settings/slack/test", json={"webhook_url": self.WEBHOOK})

        assert response.status_code == 502
        assert response.json()["detail"] == "Slack webhook test failed"

    def test_admin_only(self, make_client, db_manager):
        create_user(db_manager, "v@example.com", "viewer")
        viewer = make_client()
        login(viewer, "v@example.com")

        assert viewer.get("/api/admin/settings/slack").status_code == 403


class TestDefaultBranding:
    """Tests for /api/admin/settings/default-branding."""

    def test_defaults(self, admin_client):
        data = admin_client.get("/api/admin/settings/default-branding").json()["data"]
        assert data == {
            "header_text": "",
            "footer_text": "",
            "primary_color": "#0070c0",
            "hide_default_branding": False,
        }

    def test_partial_update(self, admin_client):
        admin_client.post("/api/admin/settings/default-branding", json={"header_text": "Acme Labs"})
        response = admin_client.post("/api/admin/settings/default-branding", json={"primary_color": "#112233"})
        data = response.json()["data"]

        assert data["header_text"] == "Acme Labs"
        assert data["primary_color"] == "#112233"

    def test_invalid_color(self, admin_client):
        response = admin_client.post("/api/admin/settings/default-branding", json={"primary_color": "blue"})

        assert response.status_code == 400
        assert response.json()["detail"] == "primary_color must be a hex color like #0070c0"

    def test_applies_to_viewer_with_link_override(self, admin_client, client):
        admin_client.post(
            "/api/admin/settings/default-branding",
            json={"header_text": "Acme Labs", "footer_text": "Confidential"},
        )
        prototype = upload_prototype(admin_client)
        link = create_link(admin_client, prototype["id"], branding={"header_text": "For Globex"})

        branding = client.get(f"/api/viewer/{link['token']}").json()["branding"]
        assert branding["header_text"] == "For Globex"
        assert branding["footer_text"] == "Confidential"
        assert branding["primary_color"] == "#0070c0"
