"""Tests for workflow notifications."""
import smtplib

import pytest

from visita.core.errors import NotificationFailure
from visita.core.staging import StagingResult
from visita.models.notification import Notification
from visita.services import notifications
from visita.services.notifications import (
    EmailNotificationSender,
    InAppNotificationSender,
    NotificationDispatcher,
    NotificationSender,
    build_dispatcher,
    build_message,
    notify_safely,
    recipients_for,
    status_change_notification_type,
    visible_to,
)


class FailingSender(NotificationSender):
    channel = "broken"

    def send(self, message):
        raise NotificationFailure("unreachable")


class TestBuildMessage:
    def test_staged_changes_message(self, approved_church, parish_user):
        message = build_message(
            "pending_changes_submitted", approved_church, parish_user,
            field_names=["name", "historical_background"],
        )
        assert message.recipient_roles == ["chancery_office"]
        assert message.diocese == "tagbilaran"
        assert message.parish_id is None
        assert message.related_data["church_id"] == approved_church.church_id
        assert message.related_data["field_labels"] == ["Church Name", "Historical Background"]
        assert message.related_data["actor_id"] == parish_user.user_id
        assert "Church Name, Historical Background" in message.message

    def test_parish_messages_are_parish_scoped(self, approved_church, chancery_user):
        message = build_message("church_approved", approved_church, chancery_user)
        assert message.parish_id == "baclayon"

    def test_museum_messages_span_dioceses(self, heritage_church, chancery_user):
        message = build_message("heritage_review_assigned", heritage_church, chancery_user)
        assert message.diocese is None

    def test_status_change_types(self):
        assert status_change_notification_type("draft", "pending") == "church_submitted"
        assert status_change_notification_type("pending", "pending") == "church_submitted"
        assert status_change_notification_type("pending", "heritage_review") == "heritage_review_assigned"
        assert status_change_notification_type("heritage_review", "approved") == "church_approved"
        assert status_change_notification_type("pending", "draft") == "revision_requested"


class TestDispatcher:
    def test_in_app_notification_stored(self, db_session, approved_church, parish_user):
        dispatcher = NotificationDispatcher([InAppNotificationSender(db_session)])
        result = StagingResult(church_id=approved_church.church_id, staged_for_review=["name"])

        dispatcher.notify_staged_changes(approved_church, result, parish_user)

        stored = db_session.query(Notification).one()
        assert stored.notification_type == "pending_changes_submitted"
        assert stored.church_id == approved_church.church_id
        assert stored.actor_id == parish_user.user_id
        assert stored.read_by == []

    def test_nothing_staged_sends_nothing(self, db_session, approved_church, parish_user):
        dispatcher = NotificationDispatcher([InAppNotificationSender(db_session)])
        dispatcher.notify_staged_changes(
            approved_church, StagingResult(church_id=approved_church.church_id), parish_user
        )
        assert db_session.query(Notification).count() == 0

    def test_failure_of_one_channel_still_delivers_others(self, db_session, approved_church, parish_user):
        dispatcher = NotificationDispatcher([FailingSender(), InAppNotificationSender(db_session)])
        result = StagingResult(church_id=approved_church.church_id, staged_for_review=["name"])

        with pytest.raises(NotificationFailure) as exc_info:
            dispatcher.notify_staged_changes(approved_church, result, parish_user)

        assert "broken" in str(exc_info.value)
        assert db_session.query(Notification).count() == 1

    def test_notify_safely_turns_failure_into_warning(self, approved_church, chancery_user):
        dispatcher = NotificationDispatcher([FailingSender()])
        warnings = notify_safely(
            dispatcher, "notify_status_change", approved_church, "pending", "approved", chancery_user
        )
        assert len(warnings) == 1
        assert notify_safely(None, "notify_status_change") == []

    def test_build_dispatcher_channels(self, db_session):
        dispatcher = build_dispatcher(db_session, ["in_app", "email", "pigeon"])
        assert [s.channel for s in dispatcher.senders] == ["in_app", "email"]


class TestEmailSender:
    def test_skips_when_unconfigured(self, db_session, approved_church, parish_user, monkeypatch):
        sender = EmailNotificationSender(db_session)
        sender.smtp_user = ""
        sender.smtp_password = ""

        def fail_if_called(*args, **kwargs):
            raise AssertionError("SMTP should not be contacted")

        monkeypatch.setattr(notifications.smtplib, "SMTP", fail_if_called)
        sender.send(build_message("church_approved", approved_church, parish_user))

    def test_smtp_error_raises_notification_failure(self, db_session, approved_church, parish_user, chancery_user, monkeypatch):
        sender = EmailNotificationSender(db_session)
        sender.smtp_user = "visita@example.org"
        sender.smtp_password = "secret"
        sender.from_email = "visita@example.org"

        def refuse(*args, **kwargs):
            raise smtplib.SMTPConnectError(421, "service not available")

        monkeypatch.setattr(notifications.smtplib, "SMTP", refuse)
        message = build_message("pending_changes_submitted", approved_church, parish_user, field_names=["name"])

        with pytest.raises(NotificationFailure):
            sender.send(message)

    def test_recipients(self, db_session, approved_church, parish_user, chancery_user, other_chancery_user):
        message = build_message("pending_changes_submitted", approved_church, parish_user, field_names=["name"])
        assert [u.email for u in recipients_for(db_session, message)] == [chancery_user.email]


class TestVisibility:
    def test_visible_to(self, db_session, approved_church, parish_user, other_parish_user, chancery_user, museum_user):
        message = build_message("church_approved", approved_church, chancery_user)
        InAppNotificationSender(db_session).send(message)
        stored = db_session.query(Notification).one()

        assert visible_to(stored, parish_user)
        assert not visible_to(stored, other_parish_user)
        assert not visible_to(stored, chancery_user)
        assert not visible_to(stored, museum_user)

    def test_direct_recipient_always_sees(self, db_session, approved_church, chancery_user, other_parish_user):
        message = build_message(
            "pending_changes_rejected", approved_church, chancery_user,
            field_names=["name"], recipient_user_ids=[other_parish_user.user_id],
        )
        InAppNotificationSender(db_session).send(message)
        assert visible_to(db_session.query(Notification).one(), other_parish_user)


class TestNotificationEndpoints:
    def test_mark_read(self, client, db_session, approved_church, chancery_user, parish_headers):
        InAppNotificationSender(db_session).send(build_message("church_approved", approved_church, chancery_user))
        (notification,) = client.get("/notifications/", headers=parish_headers).json()
        assert notification["is_read"] is False

        response = client.post(f"/notifications/{notification['notification_id']}/read", headers=parish_headers)
        assert response.status_code == 200
        assert response.json()["is_read"] is True

        assert client.get("/notifications/", headers=parish_headers, params={"unread_only": "true"}).json() == []

    def test_cannot_read_others_notification(self, client, db_session, approved_church, chancery_user, chancery_headers):
        InAppNotificationSender(db_session).send(build_message("church_approved", approved_church, chancery_user))
        notification = db_session.query(Notification).one()

        response = client.post(f"/notifications/{notification.notification_id}/read", headers=chancery_headers)
        assert response.status_code == 404
