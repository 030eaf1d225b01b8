"""Tests for the logged-in viewer dashboard.

Tests cover:
- Assigned and locked (top-secret) prototype listing
- Opening and serving assigned prototypes
- Access requests from viewer accounts and their approval
"""

import pytest

from conftest import SAMPLE_HTML, create_link, create_user, login, upload_prototype

VIEWER_EMAIL = "analyst@example.com"


@pytest.fixture
def viewer_id(db_manager):
    return create_user(db_manager, VIEWER_EMAIL, "viewer", name="Analyst")


@pytest.fixture
def viewer(make_client, viewer_id):
    c = make_client()
    assert login(c, VIEWER_EMAIL).status_code == 200
    return c


def _assign(admin_client, user_id, prototype_id):
    response = admin_client.post(f"/api/admin/users/{user_id}/prototypes", json={"prototype_id": prototype_id})
    assert response.status_code == 201, response.text
    return response.json()


# ── Tests: Listing ───────────────────────────────────────────────────────


class TestDashboardList:
    """Tests for GET /api/viewer-dashboard/prototypes."""

    def test_assigned_and_locked(self, admin_client, viewer, viewer_id):
        assigned = upload_prototype(admin_client, title="Assigned")
        upload_prototype(admin_client, title="Unassigned")
        upload_prototype(admin_client, title="Locked", is_top_secret=True)
        draft = upload_prototype(admin_client, title="Draft", status="draft")
        _assign(admin_client, viewer_id, assigned["id"])
        _assign(admin_client, viewer_id, draft["id"])

        body = viewer.get("/api/viewer-dashboard/prototypes").json()

        assert [p["title"] for p in body["prototypes"]] == ["Assigned"]
        assert body["prototypes"][0]["access_granted"] is True
        assert [p["title"] for p in body["locked_prototypes"]] == ["Locked"]
        assert body["locked_prototypes"][0]["access_granted"] is False
        assert body["locked_prototypes"][0]["access_request_status"] is None

    def test_assigned_top_secret_is_not_locked(self, admin_client, viewer, viewer_id):
        secret = upload_prototype(admin_client, title="Secret", is_top_secret=True)
        _assign(admin_client, viewer_id, secret["id"])

        body = viewer.get("/api/viewer-dashboard/prototypes").json()
        assert [p["title"] for p in body["prototypes"]] == ["Secret"]
        assert body["locked_prototypes"] == []


# ── Tests: Viewing ───────────────────────────────────────────────────────


class TestDashboardPrototype:

    def test_open_assigned(self, admin_client, viewer, viewer_id):
        prototype = upload_prototype(admin_client)
        _assign(admin_client, viewer_id, prototype["id"])

        body = viewer.get(f"/api/viewer-dashboard/prototypes/{prototype['id']}").json()
        assert body["prototype"]["title"] == "Checkout flow"
        assert body["serve_url"] == f"/api/viewer-dashboard/prototypes/{prototype['id']}/serve/"
        assert body["feedback"] == []

        served = viewer.get(f"/api/viewer-dashboard/prototypes/{prototype['id']}/serve/")
        assert served.content == SAMPLE_HTML

    def test_shows_latest_feedback(self, admin_client, client, viewer, viewer_id):
        prototype = upload_prototype(admin_client)
        _assign(admin_client, viewer_id, prototype["id"])
        link = create_link(admin_client, prototype["id"])
        client.post(f"/api/viewer/{link['token']}/feedback", json={"comment": "Looks great"})

        body = viewer.get(f"/api/viewer-dashboard/prototypes/{prototype['id']}").json()
        assert [f["comment"] for f in body["feedback"]] == ["Looks great"]

    def test_unassigned_forbidden(self, admin_client, viewer):
        prototype = upload_prototype(admin_client)
        response = viewer.get(f"/api/viewer-dashboard/prototypes/{prototype['id']}")

        assert response.status_code == 403
        assert response.json()["detail"] == "You do not have access to this prototype"
        assert viewer.get(f"/api/viewer-dashboard/prototypes/{prototype['id']}/serve/").status_code == 403

    def test_assigned_but_unpublished(self, admin_client, viewer, viewer_id):
        prototype = upload_prototype(admin_client, status="draft")
        _assign(admin_client, viewer_id, prototype["id"])

        assert viewer.get(f"/api/viewer-dashboard/prototypes/{prototype['id']}").status_code == 404


# ── Tests: Access requests ───────────────────────────────────────────────


class TestViewerAccessRequests:
    """Tests for POST /api/viewer-dashboard/prototypes/{id}/request-access."""

    def _request(self, client, prototype_id, reason="Need it for QBR"):
        return client.post(
            f"/api/viewer-dashboard/prototypes/{prototype_id}/request-access", json={"reason": reason}
        )

    def test_request_and_approve(self, admin_client, viewer, slack_service, email_service):
        secret = upload_prototype(admin_client, title="Secret", is_top_secret=True)

        response = self._request(viewer, secret["id"])
        assert response.status_code == 201
        request = response.json()["request"]
        assert request["requester_email"] == VIEWER_EMAIL
        assert request["requester_name"] == "Analyst"
        assert request["reason"] == "Need it for QBR"
        assert request["magic_link_id"] is None
        slack_service.notify.assert_called_with("access_request", {
            "prototype_title": "Secret", "name": "Analyst", "email": VIEWER_EMAIL,
        })

        locked = viewer.get("/api/viewer-dashboard/prototypes").json()["locked_prototypes"]
        assert locked[0]["access_request_status"] == "pending"

        review = admin_client.patch(f"/api/admin/access-requests/{request['id']}", json={"status": "approved"})
        assert review.json()["message"] == "Access request approved"
        email_service.send_access_approved.assert_called_once_with(
            VIEWER_EMAIL, "Analyst", "Secret", "http://client.test/viewer-dashboard"
        )

        body = viewer.get("/api/viewer-dashboard/prototypes").json()
        assert [p["title"] for p in body["prototypes"]] == ["Secret"]
        assert body["locked_prototypes"] == []

        log = admin_client.get(
            "/api/admin/audit-logs", params={"action": "access-request:approved"}
        ).json()["logs"][0]
        assert log["details"]["viewer_access_granted"] is True

    def test_duplicate_request(self, admin_client, viewer):
        secret = upload_prototype(admin_client, is_top_secret=True)
        self._request(viewer, secret["id"])

        response = self._request(viewer, secret["id"])
        assert response.status_code == 409

    def test_not_top_secret(self, admin_client, viewer):
        prototype = upload_prototype(admin_client)
        response = self._request(viewer, prototype["id"])

        assert response.status_code == 400
        assert response.json()["detail"] == "This prototype does not require access requests"

    def test_already_assigned(self, admin_client, viewer, viewer_id):
        secret = upload_prototype(admin_client, is_top_secret=True)
        _assign(admin_client, viewer_id, secret["id"])

        response = self._request(viewer, secret["id"])
        assert response.status_code == 400
        assert response.json()["detail"] == "You already have access to this prototype"

    def test_unpublished(self, admin_client, viewer):
        secret = upload_prototype(admin_client, is_top_secret=True, status="draft")
        assert self._request(viewer, secret["id"]).status_code == 404

    def test_request_is_audited(self, admin_client, viewer, viewer_id):
        secret = upload_prototype(admin_client, is_top_secret=True)
        self._request(viewer, secret["id"])

        log = admin_client.get(
            "/api/admin/audit-logs", params={"action": "access-request:create"}
        ).json()["logs"][0]
        assert log["user_id"] == viewer_id
        assert log["details"]["prototype_id"] == secret["id"]
