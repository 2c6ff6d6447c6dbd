"""
Workflow notifications.

WORKFLOW:
1. Parish submits church -> Chancery receives "church_submitted"
2. Chancery reviews:
   - heritage church -> Museum receives "heritage_review_assigned"
   - non-heritage -> Parish receives "church_approved"
   - needs revision -> Parish receives "revision_requested"
3. Museum validates heritage -> Parish receives "church_approved"

Staged edits of published churches:
- Parish edits review-required fields -> Chancery receives "pending_changes_submitted"
- Chancery forwards heritage edits -> Museum receives "pending_changes_forwarded"
- Reviewer approves/rejects -> submitter and parish receive
  "pending_changes_approved" / "pending_changes_rejected"

Delivery is fire-and-forget: senders raise NotificationFailure, and callers
turn that into a warning rather than failing the operation.
"""
import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from visita.core.config import settings
from visita.core.errors import NotificationFailure
from visita.core.field_classification import get_field_labels
from visita.core.workflow import ActorRole, ChurchStatus
from visita.models.church import Church
from visita.models.notification import Notification
from visita.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationTemplate:
    title: str
    message: str
    priority: str
    recipient_roles: tuple


NOTIFICATION_TEMPLATES: Dict[str, NotificationTemplate] = {
    "church_submitted": NotificationTemplate(
        title="New Church Submission: {church_name}",
        message='Parish has submitted "{church_name}" for review. Please review the church '
                "profile and approve or request revisions.",
        priority="high",
        recipient_roles=(ActorRole.CHANCERY_OFFICE.value,),
    ),
    "heritage_review_assigned": NotificationTemplate(
        title="Heritage Review Required: {church_name}",
        message='"{church_name}" has been forwarded for heritage validation. Please verify the '
                "cultural and historical significance before approval.",
        priority="high",
        recipient_roles=(ActorRole.MUSEUM_RESEARCHER.value,),
    ),
    "revision_requested": NotificationTemplate(
        title="Revision Requested: {church_name}",
        message='Your church profile "{church_name}" requires revisions. {note}',
        priority="high",
        recipient_roles=(ActorRole.PARISH_SECRETARY.value,),
    ),
    "church_approved": NotificationTemplate(
        title="Church Published: {church_name}",
        message='"{church_name}" has been approved and is now live for public viewing.',
        priority="medium",
        recipient_roles=(ActorRole.PARISH_SECRETARY.value,),
    ),
    "pending_changes_submitted": NotificationTemplate(
        title="Profile Updates Awaiting Review: {church_name}",
        message='Updates to "{church_name}" need review before publishing: {field_labels}.',
        priority="high",
        recipient_roles=(ActorRole.CHANCERY_OFFICE.value,),
    ),
    "pending_changes_forwarded": NotificationTemplate(
        title="Heritage Updates Awaiting Validation: {church_name}",
        message='Chancery forwarded updates to "{church_name}" for heritage validation: {field_labels}.',
        priority="high",
        recipient_roles=(ActorRole.MUSEUM_RESEARCHER.value,),
    ),
    "pending_changes_approved": NotificationTemplate(
        title="Profile Updates Published: {church_name}",
        message='Your updates to "{church_name}" were approved and are now public: {field_labels}.',
        priority="medium",
        recipient_roles=(ActorRole.PARISH_SECRETARY.value,),
    ),
    "pending_changes_rejected": NotificationTemplate(
        title="Profile Updates Not Approved: {church_name}",
        message='Your updates to "{church_name}" were not approved: {field_labels}. {note}',
        priority="medium",
        recipient_roles=(ActorRole.PARISH_SECRETARY.value,),
    ),
}


@dataclass
class NotificationMessage:
    notification_type: str
    priority: str
    title: str
    message: str
    recipient_roles: List[str]
    church_id: Optional[str] = None
    diocese: Optional[str] = None
    parish_id: Optional[str] = None
    actor_id: Optional[int] = None
    recipient_user_ids: List[int] = field(default_factory=list)
    related_data: Dict[str, Any] = field(default_factory=dict)


def build_message(
    notification_type: str,
    church: Church,
    actor: Optional[User] = None,
    field_names: Optional[List[str]] = None,
    note: Optional[str] = None,
    recipient_user_ids: Optional[List[int]] = None,
) -> NotificationMessage:
    """Fill a template for a church. Parish-facing messages are scoped to its parish."""
    template = NOTIFICATION_TEMPLATES[notification_type]
    labels = get_field_labels(field_names or [])
    church_name = church.name or church.church_id
    values = {
        "church_name": church_name,
        "field_labels": ", ".join(labels),
        "note": note or "",
    }
    parish_scoped = ActorRole.PARISH_SECRETARY.value in template.recipient_roles
    museum_scoped = ActorRole.MUSEUM_RESEARCHER.value in template.recipient_roles
    return NotificationMessage(
        notification_type=notification_type,
        priority=template.priority,
        title=template.title.format(**values),
        message=template.message.format(**values).strip(),
        recipient_roles=list(template.recipient_roles),
        church_id=church.church_id,
        # Museum researchers serve both dioceses
        diocese=None if museum_scoped else church.diocese,
        parish_id=church.parish_id if parish_scoped else None,
        actor_id=actor.user_id if actor else None,
        recipient_user_ids=list(recipient_user_ids or []),
        related_data={
            "church_id": church.church_id,
            "church_name": church_name,
            "field_labels": labels,
            "actor_id": actor.user_id if actor else None,
            "actor_role": actor.role if actor else None,
        },
    )


class NotificationSender:
    """A delivery channel. `send` raises NotificationFailure on failure."""
    channel = "base"

    def send(self, message: NotificationMessage) -> None:
        raise NotImplementedError


class InAppNotificationSender(NotificationSender):
    """Stores notifications for the dashboard bell, in its own transaction."""
    channel = "in_app"

    def __init__(self, db: Session):
        self.db = db

    def send(self, message: NotificationMessage) -> None:
        notification = Notification(
            notification_type=message.notification_type,
            priority=message.priority,
            title=message.title,
            message=message.message,
            recipient_roles=message.recipient_roles,
            recipient_user_ids=message.recipient_user_ids,
            diocese=message.diocese,
            parish_id=message.parish_id,
            church_id=message.church_id,
            actor_id=message.actor_id,
            related_data=message.related_data,
            read_by=[],
        )
        try:
            self.db.add(notification)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise NotificationFailure(f"Could not store notification: {exc}") from exc


class EmailNotificationSender(NotificationSender):
    """Emails the users matching a notification's recipients over SMTP."""
    channel = "email"

    def __init__(self, db: Session):
        self.db = db
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL or settings.SMTP_USER

    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def send(self, message: NotificationMessage) -> None:
        if not self.is_configured():
            logger.warning(
                "SMTP credentials not configured; skipping email '%s'", message.title
            )
            return

        recipients = [u.email for u in recipients_for(self.db, message)]
        if not recipients:
            logger.info("No email recipients for '%s'", message.title)
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.title
        msg["From"] = self.from_email
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(message.message, "plain"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationFailure(f"Email delivery failed: {exc}") from exc


def recipients_for(db: Session, message: NotificationMessage) -> List[User]:
    """Active users addressed by a notification."""
    role_match = User.role.in_(message.recipient_roles)
    if message.diocese:
        role_match = role_match & (User.diocese == message.diocese)
    if message.parish_id:
        role_match = role_match & (User.parish_id == message.parish_id)
    criteria = [role_match]
    if message.recipient_user_ids:
        criteria.append(User.user_id.in_(message.recipient_user_ids))
    return db.query(User).filter(User.is_active.is_(True), or_(*criteria)).all()


class NotificationDispatcher:
    """Builds workflow notifications and hands them to every configured sender."""

    def __init__(self, senders: List[NotificationSender]):
        self.senders = senders

    def dispatch(self, message: NotificationMessage) -> None:
        failures = []
        for sender in self.senders:
            try:
                sender.send(message)
            except NotificationFailure as exc:
                logger.warning("%s notification '%s' failed: %s", sender.channel, message.title, exc)
                failures.append(f"{sender.channel}: {exc}")
        if failures:
            raise NotificationFailure("; ".join(failures))
        logger.info(
            "Notification '%s' sent to %s via %s",
            message.notification_type, message.recipient_roles,
            ", ".join(s.channel for s in self.senders) or "no channels"
        )

    def notify_staged_changes(self, church: Church, result, actor: User) -> None:
        """Tell reviewers which fields of a published church await approval."""
        if not result.staged_for_review:
            return
        self.dispatch(build_message(
            "pending_changes_submitted", church, actor, field_names=result.staged_for_review
        ))

    def notify_status_change(
        self,
        church: Church,
        from_status: str,
        to_status: str,
        actor: User,
        note: Optional[str] = None,
    ) -> None:
        notification_type = status_change_notification_type(from_status, to_status)
        if notification_type is None:
            return
        self.dispatch(build_message(notification_type, church, actor, note=note))

    def notify_pending_changes_forwarded(self, church: Church, field_names: List[str], actor: User) -> None:
        self.dispatch(build_message("pending_changes_forwarded", church, actor, field_names=field_names))

    def notify_pending_changes_resolved(
        self,
        church: Church,
        approved: bool,
        field_names: List[str],
        actor: User,
        submitted_by_id: int,
        comment: Optional[str] = None,
    ) -> None:
        notification_type = "pending_changes_approved" if approved else "pending_changes_rejected"
        self.dispatch(build_message(
            notification_type, church, actor, field_names=field_names, note=comment,
            recipient_user_ids=[submitted_by_id],
        ))


def status_change_notification_type(from_status: str, to_status: str) -> Optional[str]:
    if to_status == ChurchStatus.PENDING.value:
        return "church_submitted"
    if to_status == ChurchStatus.HERITAGE_REVIEW.value:
        return "heritage_review_assigned"
    if to_status == ChurchStatus.APPROVED.value:
        return "church_approved"
    if to_status == ChurchStatus.DRAFT.value and from_status != ChurchStatus.DRAFT.value:
        return "revision_requested"
    return None


def build_dispatcher(db: Session, channels: Optional[List[str]] = None) -> NotificationDispatcher:
    """Dispatcher with the senders named in settings.NOTIFICATION_CHANNELS."""
    senders: List[NotificationSender] = []
    for channel in channels if channels is not None else settings.get_notification_channels():
        if channel == InAppNotificationSender.channel:
            senders.append(InAppNotificationSender(db))
        elif channel == EmailNotificationSender.channel:
            senders.append(EmailNotificationSender(db))
        else:
            logger.warning("Unknown notification channel '%s' ignored", channel)
    return NotificationDispatcher(senders)


def visible_to(notification: Notification, user: User) -> bool:
    """Whether a stored notification is addressed to a user."""
    if user.user_id in (notification.recipient_user_ids or []):
        return True
    if user.role not in (notification.recipient_roles or []):
        return False
    if notification.diocese and notification.diocese != user.diocese:
        return False
    if notification.parish_id and notification.parish_id != user.parish_id:
        return False
    return True


def notify_safely(dispatcher: Optional[NotificationDispatcher], method: str, *args, **kwargs) -> List[str]:
    """
    Call a dispatcher method after a committed operation.

    Returns a list with one user-facing warning if delivery failed.
    """
    if dispatcher is None:
        return []
    try:
        getattr(dispatcher, method)(*args, **kwargs)
    except Exception as exc:
        logger.warning("Notification %s failed: %s", method, exc)
        return ["The change was saved, but notifications could not be delivered."]
    return []
