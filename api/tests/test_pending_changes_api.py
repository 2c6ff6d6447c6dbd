"""Tests for the pending change review workflow."""
import pytest
from sqlalchemy.exc import OperationalError

from visita.core import staging
from visita.core.errors import PendingChangeSetNotFound, ReviewNotPermitted
from visita.models.audit_log import AuditLog
from visita.models.church import Church
from visita.models.notification import Notification
from visita.models.pending_change import PendingChangeSet
from visita.services.pending_changes import (
    approve_pending_changes,
    list_open_change_sets,
    reject_pending_changes,
)


def stage_name_change(client, church, headers, name="New Name"):
    response = client.patch(f"/churches/{church.church_id}", headers=headers, json={"name": name})
    assert response.status_code == 200
    return response.json()


class TestStagedUpdateEndpoint:
    def test_patch_reports_split(self, client, approved_church, parish_headers):
        response = client.patch(
            f"/churches/{approved_church.church_id}",
            headers=parish_headers,
            json={"name": "New Name", "contact_info": {"phone": "09987654321"}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["directly_published"] == ["contact_info"]
        assert data["staged_for_review"] == ["name"]
        assert data["has_pending_changes"] is True
        assert data["pending_change_set_id"] is not None
        assert "Submitted for review: Church Name" in data["message"]
        assert data["warnings"] == []

    def test_live_profile_hides_staged_values(self, client, approved_church, parish_headers):
        stage_name_change(client, approved_church, parish_headers)

        response = client.get(f"/churches/{approved_church.church_id}", headers=parish_headers)
        assert response.status_code == 200
        assert response.json()["fields"]["name"] == "St. Joseph Chapel"
        assert response.json()["has_pending_changes"] is True

        pending = client.get(f"/churches/{approved_church.church_id}/pending-changes", headers=parish_headers)
        assert pending.json()["proposed_changes"] == {"name": "New Name"}

    def test_second_identical_patch_is_noop(self, client, approved_church, parish_headers):
        stage_name_change(client, approved_church, parish_headers)
        data = stage_name_change(client, approved_church, parish_headers)

        assert data["staged_for_review"] == []
        assert data["directly_published"] == []
        assert data["message"] == "No changes were detected."

    def test_validation_error_is_422(self, client, approved_church, parish_headers):
        response = client.patch(
            f"/churches/{approved_church.church_id}",
            headers=parish_headers,
            json={"founding_year": 3000},
        )
        assert response.status_code == 422
        assert "founding_year" in response.json()["detail"]["errors"]

    def test_unknown_church_is_404(self, client, parish_headers, parish_user):
        response = client.patch("/churches/missing", headers=parish_headers, json={"name": "X"})
        assert response.status_code == 404

    def test_other_parish_is_403(self, client, approved_church, other_parish_user, auth_headers):
        response = client.patch(
            f"/churches/{approved_church.church_id}",
            headers=auth_headers(other_parish_user),
            json={"name": "X"},
        )
        assert response.status_code == 403

    def test_partial_failure_is_207(self, client, approved_church, parish_headers, chancery_headers, monkeypatch):
        def failing_publish(*args, **kwargs):
            raise OperationalError("UPDATE", {}, Exception("disk I/O error"))

        monkeypatch.setattr(staging, "publish_fields", failing_publish)
        response = client.patch(
            f"/churches/{approved_church.church_id}",
            headers=parish_headers,
            json={"name": "New Name", "contact_info": {"phone": "09987654321"}},
        )
        assert response.status_code == 207
        data = response.json()
        assert data["failed_part"] == "publish"
        assert data["failed_fields"] == ["contact_info"]
        assert data["staged_for_review"] == ["name"]
        assert data["warnings"] == []

        notifications = client.get("/notifications/", headers=chancery_headers).json()
        assert [n["notification_type"] for n in notifications] == ["pending_changes_submitted"]

    def test_requires_authentication(self, client, approved_church):
        response = client.patch(f"/churches/{approved_church.church_id}", json={"name": "X"})
        assert response.status_code in (401, 403)


class TestApproveAndReject:
    def test_chancery_approves(self, client, db_session, approved_church, parish_headers, chancery_headers):
        stage_name_change(client, approved_church, parish_headers)

        response = client.post(
            f"/churches/{approved_church.church_id}/pending-changes/approve",
            headers=chancery_headers,
            json={"comment": "Verified with the parish records"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["change_set"]["status"] == "approved"
        assert data["change_set"]["review_comment"] == "Verified with the parish records"
        assert data["has_pending_changes"] is False

        church = client.get(f"/churches/{approved_church.church_id}", headers=parish_headers).json()
        assert church["fields"]["name"] == "New Name"
        assert church["status"] == "approved"
        assert church["has_pending_changes"] is False

    def test_reject_leaves_live_profile(self, client, approved_church, parish_headers, chancery_headers):
        stage_name_change(client, approved_church, parish_headers)

        response = client.post(
            f"/churches/{approved_church.church_id}/pending-changes/reject",
            headers=chancery_headers,
            json={"comment": "Name does not match diocesan records"},
        )
        assert response.status_code == 200
        assert response.json()["change_set"]["status"] == "rejected"

        church = client.get(f"/churches/{approved_church.church_id}", headers=parish_headers).json()
        assert church["fields"]["name"] == "St. Joseph Chapel"
        assert church["status"] == "approved"
        assert church["has_pending_changes"] is False

    def test_new_edit_after_rejection_opens_new_set(self, client, db_session, approved_church, parish_headers, chancery_headers):
        stage_name_change(client, approved_church, parish_headers)
        client.post(
            f"/churches/{approved_church.church_id}/pending-changes/reject",
            headers=chancery_headers, json={},
        )
        data = stage_name_change(client, approved_church, parish_headers, name="Another Name")

        assert data["staged_for_review"] == ["name"]
        assert db_session.query(PendingChangeSet).count() == 2

    def test_parish_cannot_approve(self, client, approved_church, parish_headers):
        stage_name_change(client, approved_church, parish_headers)
        response = client.post(
            f"/churches/{approved_church.church_id}/pending-changes/approve",
            headers=parish_headers, json={},
        )
        assert response.status_code == 403

    def test_nothing_to_approve_is_404(self, client, approved_church, chancery_headers):
        response = client.post(
            f"/churches/{approved_church.church_id}/pending-changes/approve",
            headers=chancery_headers, json={},
        )
        assert response.status_code == 404

    def test_review_queue(self, client, approved_church, heritage_church, parish_headers, chancery_headers, museum_headers):
        stage_name_change(client, approved_church, parish_headers)
        stage_name_change(client, heritage_church, parish_headers)

        queue = client.get("/pending-changes/", headers=chancery_headers).json()
        assert {cs["church_id"] for cs in queue} == {approved_church.church_id, heritage_church.church_id}

        # Nothing forwarded yet
        assert client.get("/pending-changes/", headers=museum_headers).json() == []


class TestForwardToMuseum:
    def test_heritage_changes_go_to_museum(self, client, heritage_church, parish_headers, chancery_headers, museum_headers):
        stage_name_change(client, heritage_church, parish_headers)

        response = client.post(
            f"/churches/{heritage_church.church_id}/pending-changes/forward",
            headers=chancery_headers, json={"comment": "Heritage name change"},
        )
        assert response.status_code == 200
        assert response.json()["change_set"]["forwarded_to_museum"] is True

        queue = client.get("/pending-changes/", headers=museum_headers).json()
        assert [cs["church_id"] for cs in queue] == [heritage_church.church_id]

        # The chancery can no longer resolve forwarded changes
        response = client.post(
            f"/churches/{heritage_church.church_id}/pending-changes/approve",
            headers=chancery_headers, json={},
        )
        assert response.status_code == 403

        response = client.post(
            f"/churches/{heritage_church.church_id}/pending-changes/approve",
            headers=museum_headers, json={},
        )
        assert response.status_code == 200
        church = client.get(f"/churches/{heritage_church.church_id}", headers=museum_headers).json()
        assert church["fields"]["name"] == "New Name"

    def test_forward_twice_is_400(self, client, heritage_church, parish_headers, chancery_headers):
        stage_name_change(client, heritage_church, parish_headers)
        url = f"/churches/{heritage_church.church_id}/pending-changes/forward"
        assert client.post(url, headers=chancery_headers, json={}).status_code == 200
        assert client.post(url, headers=chancery_headers, json={}).status_code == 400

    def test_non_heritage_cannot_be_forwarded(self, client, approved_church, parish_headers, chancery_headers):
        stage_name_change(client, approved_church, parish_headers)
        response = client.post(
            f"/churches/{approved_church.church_id}/pending-changes/forward",
            headers=chancery_headers, json={},
        )
        assert response.status_code == 400

    def test_staged_classification_counts_as_heritage(self, client, approved_church, parish_headers, chancery_headers):
        client.patch(
            f"/churches/{approved_church.church_id}",
            headers=parish_headers, json={"classification": "NCT"},
        )
        response = client.post(
            f"/churches/{approved_church.church_id}/pending-changes/forward",
            headers=chancery_headers, json={},
        )
        assert response.status_code == 200


class TestResolutionService:
    """Service-level checks that do not need HTTP."""

    def test_approve_audits_old_and_new_values(self, db_session, approved_church, parish_user, chancery_user):
        staging.apply_update(db_session, approved_church.church_id, {"name": "New Name"}, parish_user)
        approve_pending_changes(db_session, approved_church.church_id, chancery_user, comment="ok")

        log = db_session.query(AuditLog).filter(AuditLog.action == "APPROVE").one()
        assert log.changes["fields"] == {"name": {"old": "St. Joseph Chapel", "new": "New Name"}}
        assert log.user_id == chancery_user.user_id

    def test_other_diocese_chancery_cannot_review(self, db_session, approved_church, parish_user, other_chancery_user):
        staging.apply_update(db_session, approved_church.church_id, {"name": "New Name"}, parish_user)
        with pytest.raises(ReviewNotPermitted):
            reject_pending_changes(db_session, approved_church.church_id, other_chancery_user)

    def test_reject_without_open_set(self, db_session, approved_church, chancery_user):
        with pytest.raises(PendingChangeSetNotFound):
            reject_pending_changes(db_session, approved_church.church_id, chancery_user)

    def test_list_open_change_sets_filters_forwarded(self, db_session, approved_church, heritage_church, parish_user):
        staging.apply_update(db_session, approved_church.church_id, {"name": "A"}, parish_user)
        staging.apply_update(db_session, heritage_church.church_id, {"name": "B"}, parish_user)
        change_set = db_session.query(PendingChangeSet).filter(
            PendingChangeSet.church_id == heritage_church.church_id
        ).one()
        change_set.forwarded_to_museum = True
        db_session.commit()

        assert len(list_open_change_sets(db_session)) == 2
        assert [cs.church_id for cs in list_open_change_sets(db_session, forwarded=True)] == [heritage_church.church_id]
        assert [cs.church_id for cs in list_open_change_sets(db_session, forwarded=False)] == [approved_church.church_id]


class TestReviewNotifications:
    def test_submission_notifies_chancery(self, client, db_session, approved_church, parish_headers, chancery_headers, parish_user):
        stage_name_change(client, approved_church, parish_headers)

        notifications = client.get("/notifications/", headers=chancery_headers).json()
        assert len(notifications) == 1
        assert notifications[0]["notification_type"] == "pending_changes_submitted"
        assert notifications[0]["church_id"] == approved_church.church_id
        assert notifications[0]["related_data"]["field_labels"] == ["Church Name"]
        assert notifications[0]["related_data"]["actor_id"] == parish_user.user_id

        # The parish does not receive reviewer notifications
        assert client.get("/notifications/", headers=parish_headers).json() == []

    def test_approval_notifies_parish(self, client, approved_church, parish_headers, chancery_headers):
        stage_name_change(client, approved_church, parish_headers)
        client.post(
            f"/churches/{approved_church.church_id}/pending-changes/approve",
            headers=chancery_headers, json={},
        )
        types = [n["notification_type"] for n in client.get("/notifications/", headers=parish_headers).json()]
        assert types == ["pending_changes_approved"]

    def test_notification_failure_does_not_fail_update(self, client, db_session, approved_church, parish_headers, monkeypatch):
        from visita.services import notifications

        def broken_send(self, message):
            raise notifications.NotificationFailure("database unavailable")

        monkeypatch.setattr(notifications.InAppNotificationSender, "send", broken_send)
        data = stage_name_change(client, approved_church, parish_headers)

        assert data["staged_for_review"] == ["name"]
        assert len(data["warnings"]) == 1
        assert db_session.query(Notification).count() == 0
        db_session.expire_all()
        assert db_session.get(Church, approved_church.church_id).has_pending_changes is True
