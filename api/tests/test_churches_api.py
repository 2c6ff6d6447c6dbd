"""Tests for church profile endpoints."""
from visita.models.audit_log import AuditLog


class TestCreateChurch:
    def test_parish_creates_draft(self, client, db_session, parish_headers, parish_user):
        response = client.post("/churches/", headers=parish_headers, json={
            "church_id": "baclayon-new",
            "parish_id": "baclayon",
            "diocese": "tagbilaran",
            "fields": {"name": "Our Lady of Light Chapel", "municipality": "Baclayon"},
        })
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "draft"
        assert data["has_pending_changes"] is False
        assert data["profile_schema_version"] == 1
        assert data["created_by_id"] == parish_user.user_id
        assert data["fields"] == {"name": "Our Lady of Light Chapel", "municipality": "Baclayon"}

        log = db_session.query(AuditLog).filter(AuditLog.action == "CREATE").one()
        assert log.entity_id == "baclayon-new"

    def test_other_parish_forbidden(self, client, parish_headers):
        response = client.post("/churches/", headers=parish_headers, json={
            "church_id": "loboc-church", "parish_id": "loboc", "diocese": "tagbilaran", "fields": {},
        })
        assert response.status_code == 403

    def test_duplicate_id_conflict(self, client, parish_headers, draft_church):
        response = client.post("/churches/", headers=parish_headers, json={
            "church_id": draft_church.church_id, "parish_id": "baclayon", "diocese": "tagbilaran", "fields": {},
        })
        assert response.status_code == 409

    def test_invalid_fields(self, client, parish_headers):
        response = client.post("/churches/", headers=parish_headers, json={
            "church_id": "baclayon-new", "parish_id": "baclayon", "diocese": "tagbilaran",
            "fields": {"tags": ["x"] * 11},
        })
        assert response.status_code == 422
        assert "tags" in response.json()["detail"]["errors"]

    def test_unknown_diocese(self, client, parish_headers):
        response = client.post("/churches/", headers=parish_headers, json={
            "church_id": "x", "parish_id": "baclayon", "diocese": "cebu", "fields": {},
        })
        assert response.status_code == 422

    def test_museum_cannot_create(self, client, museum_headers):
        response = client.post("/churches/", headers=museum_headers, json={
            "church_id": "x", "parish_id": "baclayon", "diocese": "tagbilaran", "fields": {},
        })
        assert response.status_code == 403


class TestListAndGet:
    def test_parish_sees_own_churches(self, client, approved_church, draft_church, other_parish_user, parish_headers, auth_headers):
        ids = [c["church_id"] for c in client.get("/churches/", headers=parish_headers).json()]
        assert sorted(ids) == sorted([approved_church.church_id, draft_church.church_id])

        other = client.get("/churches/", headers=auth_headers(other_parish_user)).json()
        assert other == []

    def test_filters(self, client, approved_church, draft_church, chancery_headers):
        response = client.get("/churches/", headers=chancery_headers, params={"status": "draft"})
        assert [c["church_id"] for c in response.json()] == [draft_church.church_id]

        response = client.get("/churches/", headers=chancery_headers, params={"has_pending_changes": "true"})
        assert response.json() == []

    def test_other_diocese_sees_nothing(self, client, approved_church, other_chancery_user, auth_headers):
        headers = auth_headers(other_chancery_user)
        assert client.get("/churches/", headers=headers).json() == []
        assert client.get(f"/churches/{approved_church.church_id}", headers=headers).status_code == 404

    def test_museum_sees_all(self, client, approved_church, museum_headers):
        response = client.get(f"/churches/{approved_church.church_id}", headers=museum_headers)
        assert response.status_code == 200

    def test_unknown_church(self, client, parish_headers):
        assert client.get("/churches/nowhere", headers=parish_headers).status_code == 404

    def test_invalid_token(self, client, approved_church):
        response = client.get("/churches/", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401


class TestDirectEdits:
    def test_draft_edit_published_immediately(self, client, draft_church, parish_headers):
        response = client.patch(
            f"/churches/{draft_church.church_id}",
            headers=parish_headers,
            json={"name": "Sto. Nino Parish", "founding_year": 1890},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["directly_published"] == ["name", "founding_year"]
        assert data["staged_for_review"] == []
        assert data["has_pending_changes"] is False

        church = client.get(f"/churches/{draft_church.church_id}", headers=parish_headers).json()
        assert church["fields"]["name"] == "Sto. Nino Parish"


class TestFieldClassificationEndpoint:
    def test_lists_tiers(self, client, parish_headers):
        rows = client.get("/fields/", headers=parish_headers).json()
        by_field = {row["field"]: row for row in rows}
        assert by_field["name"]["tier"] == "requires_review"
        assert by_field["contact_info"]["tier"] == "direct_publish"
        assert by_field["contact_info"]["label"] == "Contact Information"
