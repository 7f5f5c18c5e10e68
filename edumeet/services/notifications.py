import logging

from sqlalchemy.orm import Session

from edumeet.models.appointment import Appointment
from edumeet.models.notification import Notification

logger = logging.getLogger(__name__)

STUDENT_RECIPIENT = 'student'
TEACHER_RECIPIENT = 'teacher'


def notify_teacher(db: Session, appointment: Appointment, notification_type: str, message: str) -> Notification:
    notification = Notification(
        recipient_role=TEACHER_RECIPIENT,
        recipient_id=appointment.teacher_id,
        appointment_id=appointment.id,
        type=notification_type,
        message=message,
    )
    db.add(notification)
    logger.info('Notify teacher %s: %s', appointment.teacher_id, notification_type)
    return notification


def notify_student(db: Session, appointment: Appointment, notification_type: str, message: str) -> Notification:
    notification = Notification(
        recipient_role=STUDENT_RECIPIENT,
        recipient_id=appointment.student_id,
        recipient_email=appointment.student_email,
        appointment_id=appointment.id,
        type=notification_type,
        message=message,
    )
    db.add(notification)
    logger.info('Notify student %s: %s', appointment.student_email, notification_type)
    return notification


def describe_slot(appointment: Appointment) -> str:
    return f'{appointment.day} {appointment.date.isoformat()} at {appointment.time}'
