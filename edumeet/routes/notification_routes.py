from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Query as OrmQuery
from sqlalchemy.orm import Session

from edumeet.auth.dependencies import Principal, get_current_principal
from edumeet.core.errors import ForbiddenError, NotFoundError
from edumeet.database import get_db
from edumeet.models.notification import Notification
from edumeet.schemas import MessageResponse
from edumeet.services.notifications import STUDENT_RECIPIENT, TEACHER_RECIPIENT

router = APIRouter(tags=['notifications'])


class NotificationResponse(BaseModel):
    id: int
    appointment_id: int | None = None
    type: str
    message: str
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


def notifications_for(db: Session, principal: Principal) -> OrmQuery:
    query = db.query(Notification)
    if principal.is_teacher:
        return query.filter(
            Notification.recipient_role == TEACHER_RECIPIENT,
            Notification.recipient_id == principal.id,
        )
    if principal.is_student:
        return query.filter(
            Notification.recipient_role == STUDENT_RECIPIENT,
            Notification.recipient_email == principal.email,
        )
    raise ForbiddenError('Notifications are only available to students and teachers.')


@router.get('', response_model=NotificationListResponse)
def list_notifications(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    query = notifications_for(db, principal)
    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(notification) for notification in notifications],
        unread_count=query.filter(Notification.read.is_(False)).count(),
    )


@router.put('/read-all', response_model=MessageResponse)
def mark_all_notifications_read(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    notifications_for(db, principal).filter(Notification.read.is_(False)).update(
        {Notification.read: True},
        synchronize_session=False,
    )
    db.commit()
    return MessageResponse(message='All notifications marked as read')


@router.put('/{notification_id}/read', response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    notification = notifications_for(db, principal).filter(Notification.id == notification_id).first()
    if notification is None:
        raise NotFoundError('Notification not found.')

    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification
