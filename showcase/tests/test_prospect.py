"""Tests for the logged-in prospect portal.

Tests cover:
- Listing prototypes shared with the prospect's email
- Opening and serving a shared prototype
- Submitting and deleting own feedback
"""

import pytest

from conftest import SAMPLE_HTML, create_link, create_user, login, upload_prototype

PROSPECT_EMAIL = "buyer@acme.com"


@pytest.fixture
def prospect(make_client, db_manager):
    create_user(db_manager, PROSPECT_EMAIL, "prospect", name="Buyer")
    c = make_client()
    assert login(c, PROSPECT_EMAIL).status_code == 200
    return c


@pytest.fixture
def shared(admin_client):
    prototype = upload_prototype(admin_client)
    link = create_link(admin_client, prototype["id"], recipient_email="Buyer@Acme.com", label="For Acme")
    return {"prototype": prototype, "link": link}


# ── Tests: Listing ───────────────────────────────────────────────────────


class TestSharedList:
    """Tests for GET /api/prospect/prototypes."""

    def test_lists_shared_prototypes(self, prospect, shared):
        body = prospect.get("/api/prospect/prototypes").json()

        assert len(body["prototypes"]) == 1
        item = body["prototypes"][0]
        assert item["id"] == shared["prototype"]["id"]
        assert item["magic_link_token"] == shared["link"]["token"]
        assert item["share_label"] == "For Acme"
        assert item["feedback_count"] == 0
        assert "file_path" not in item

    def test_one_entry_per_prototype(self, admin_client, prospect, shared):
        create_link(admin_client, shared["prototype"]["id"], recipient_email=PROSPECT_EMAIL)
        assert len(prospect.get("/api/prospect/prototypes").json()["prototypes"]) == 1

    def test_excludes_unshared_revoked_and_unpublished(self, admin_client, prospect, shared):
        upload_prototype(admin_client, title="Not shared")

        revoked_proto = upload_prototype(admin_client, title="Revoked")
        revoked = create_link(admin_client, revoked_proto["id"], recipient_email=PROSPECT_EMAIL)
        admin_client.patch(f"/api/links/{revoked['id']}", json={"is_revoked": True})

        draft = upload_prototype(admin_client, title="Draft", status="draft")
        create_link(admin_client, draft["id"], recipient_email=PROSPECT_EMAIL)

        titles = [p["title"] for p in prospect.get("/api/prospect/prototypes").json()["prototypes"]]
        assert titles == ["Checkout flow"]


# ── Tests: Viewing ───────────────────────────────────────────────────────


class TestSharedPrototype:

    def test_open_records_view(self, admin_client, prospect, shared):
        response = prospect.get(f"/api/prospect/prototypes/{shared['prototype']['id']}")
        body = response.json()

        assert response.status_code == 200
        assert body["serve_url"] == f"/api/prospect/prototypes/{shared['prototype']['id']}/serve/"
        assert body["feedback"] == []

        views = admin_client.get(f"/api/links/{shared['link']['id']}").json()["views"]
        assert views[0]["prospect_email"] == PROSPECT_EMAIL
        assert views[0]["id"] == body["view_id"]

    def test_unshared_prototype_forbidden(self, admin_client, prospect, shared):
        other = upload_prototype(admin_client, title="Other")
        response = prospect.get(f"/api/prospect/prototypes/{other['id']}")

        assert response.status_code == 403
        assert response.json()["detail"] == "This prototype has not been shared with you"

    def test_unpublished_prototype(self, admin_client, prospect, shared):
        admin_client.patch(f"/api/prototypes/{shared['prototype']['id']}", json={"status": "draft"})
        assert prospect.get(f"/api/prospect/prototypes/{shared['prototype']['id']}").status_code == 404

    def test_serve(self, prospect, shared):
        response = prospect.get(f"/api/prospect/prototypes/{shared['prototype']['id']}/serve/")

        assert response.status_code == 200
        assert response.content == SAMPLE_HTML


# ── Tests: Feedback ──────────────────────────────────────────────────────


class TestProspectFeedback:

    def _submit(self, client, prototype_id, **body):
        payload = {"comment": "Checkout is confusing", "rating": 2, "category": "navigation"}
        payload.update(body)
        return client.post(f"/api/prospect/prototypes/{prototype_id}/feedback", json=payload)

    def test_submit(self, prospect, shared, slack_service):
        response = self._submit(prospect, shared["prototype"]["id"])
        feedback = response.json()["feedback"]

        assert response.status_code == 201
        assert feedback["reviewer_email"] == PROSPECT_EMAIL
        assert feedback["reviewer_name"] == "Buyer"
        assert feedback["magic_link_id"] == shared["link"]["id"]
        slack_service.notify.assert_called_with("feedback", {
            "prototype_title": "Checkout flow",
            "rating": 2,
            "comment": "Checkout is confusing",
            "email": PROSPECT_EMAIL,
        })

        item = prospect.get("/api/prospect/prototypes").json()["prototypes"][0]
        assert item["feedback_count"] == 1

    def test_sees_only_own_feedback(self, make_client, db_manager, prospect, shared):
        create_user(db_manager, "rival@acme.com", "prospect")
        rival = make_client()
        login(rival, "rival@acme.com")

        self._submit(prospect, shared["prototype"]["id"], comment="Mine")
        body = prospect.get(f"/api/prospect/prototypes/{shared['prototype']['id']}").json()
        assert [f["comment"] for f in body["feedback"]] == ["Mine"]

        assert self._submit(rival, shared["prototype"]["id"]).status_code == 403

    def test_validation(self, prospect, shared):
        response = self._submit(prospect, shared["prototype"]["id"], rating=0)
        assert response.status_code == 400

    def test_delete_own(self, prospect, shared):
        pid = shared["prototype"]["id"]
        feedback_id = self._submit(prospect, pid).json()["feedback"]["id"]

        response = prospect.delete(f"/api/prospect/prototypes/{pid}/feedback/{feedback_id}")
        assert response.json() == {"message": "Feedback deleted"}
        assert prospect.delete(f"/api/prospect/prototypes/{pid}/feedback/{feedback_id}").status_code == 404

    def test_cannot_delete_others(self, make_client, db_manager, admin_client, prospect, shared):
        pid = shared["prototype"]["id"]
        feedback_id = self._submit(prospect, pid).json()["feedback"]["id"]

        create_user(db_manager, "rival@acme.com", "prospect")
        create_link(admin_client, pid, recipient_email="rival@acme.com")
        rival = make_client()
        login(rival, "rival@acme.com")

        response = rival.delete(f"/api/prospect/prototypes/{pid}/feedback/{feedback_id}")
        assert response.status_code == 404
        assert len(admin_client.get(f"/api/prototypes/{pid}/feedback").json()["feedback"]) == 1
