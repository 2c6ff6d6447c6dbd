"""In-app notification routes."""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from visita.core.database import get_db
from visita.core.deps import get_current_user
from visita.models.notification import Notification
from visita.models.user import User
from visita.schemas.notification import NotificationResponse
from visita.services.notifications import visible_to

router = APIRouter()


def _to_response(notification: Notification, user: User) -> NotificationResponse:
    return NotificationResponse(
        notification_id=notification.notification_id,
        notification_type=notification.notification_type,
        priority=notification.priority,
        title=notification.title,
        message=notification.message,
        church_id=notification.church_id,
        actor_id=notification.actor_id,
        related_data=notification.related_data,
        created_at=notification.created_at,
        is_read=user.user_id in (notification.read_by or []),
    )


@router.get("/", response_model=List[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(False, description="Hide notifications already read"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Notifications addressed to the current user's role, diocese or parish, newest first."""
    candidates = (
        db.query(Notification)
        .order_by(Notification.created_at.desc(), Notification.notification_id.desc())
        .all()
    )
    result = []
    for notification in candidates:
        if not visible_to(notification, current_user):
            continue
        response = _to_response(notification, current_user)
        if unread_only and response.is_read:
            continue
        result.append(response)
        if len(result) >= limit:
            break
    return result


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Mark a notification as read for the current user."""
    notification = db.get(Notification, notification_id)
    if notification is None or not visible_to(notification, current_user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    read_by = list(notification.read_by or [])
    if current_user.user_id not in read_by:
        # Reassign so the JSON column is flagged dirty
        notification.read_by = read_by + [current_user.user_id]
        db.commit()
        db.refresh(notification)
    return _to_response(notification, current_user)
