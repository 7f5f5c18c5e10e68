"""Appointment lifecycle: creation, status transitions and statistics.

Every status change goes through :data:`TRANSITIONS`. The update is applied
as a conditional ``UPDATE ... WHERE status IN (sources)`` so two concurrent
requests for the same appointment cannot both succeed; the loser gets an
:class:`InvalidStateError`. Slot uniqueness for active appointments is backed
by a partial unique index, so a lost race on booking surfaces as a
:class:`ConflictError`.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from edumeet.auth.dependencies import Principal
from edumeet.core.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from edumeet.database import utcnow
from edumeet.models.appointment import (
    ACTIVE_STATUSES,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    CREATED_BY_STUDENT,
    CREATED_BY_TEACHER,
    PENDING,
    REJECTED,
    Appointment,
)
from edumeet.models.teacher import Teacher
from edumeet.schemas import StudentInfo, normalize_optional_text
from edumeet.services import notifications
from edumeet.services.timeslots import normalize_time_label, normalize_weekday, weekday_name

logger = logging.getLogger(__name__)

DEFAULT_ACCEPT_MESSAGE = 'Request accepted'
DEFAULT_REJECT_MESSAGE = 'Request rejected'
DEFAULT_CANCELLATION_REASON = 'No reason provided'
STATS_WINDOW_DAYS = 7


@dataclass(frozen=True)
class Transition:
    action: str
    sources: tuple[str, ...]
    target: str


TRANSITIONS = {
    transition.action: transition
    for transition in (
        Transition('accept', (PENDING,), CONFIRMED),
        Transition('reject', (PENDING,), REJECTED),
        Transition('cancel', (CONFIRMED,), CANCELLED),
        Transition('complete', (CONFIRMED,), COMPLETED),
    )
}


def can_transition(status: str, action: str) -> bool:
    transition = TRANSITIONS.get(action)
    return transition is not None and status in transition.sources


def _invalid_state_message(transition: Transition, status: str) -> str:
    allowed = ' or '.join(transition.sources)
    return f"Cannot {transition.action} an appointment with status '{status}'. Only {allowed} appointments can be {transition.target}."


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFoundError('Appointment not found.')
    return appointment


def get_active_teacher(db: Session, teacher_id: int) -> Teacher:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None or not teacher.is_active:
        raise NotFoundError('Teacher not found.')
    return teacher


def normalize_slot(day: str, time: str, slot_date: date) -> tuple[str, str]:
    try:
        normalized_day = normalize_weekday(day)
        normalized_time = normalize_time_label(time)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    if weekday_name(slot_date) != normalized_day:
        raise ValidationError(f'{slot_date.isoformat()} is a {weekday_name(slot_date)}, not a {normalized_day}.')

    return normalized_day, normalized_time


def ensure_slot_free(
    db: Session,
    teacher_id: int,
    slot_date: date,
    slot_time: str,
    exclude_id: int | None = None,
) -> None:
    query = db.query(Appointment).filter(
        Appointment.teacher_id == teacher_id,
        Appointment.date == slot_date,
        Appointment.time == slot_time,
        Appointment.status.in_(ACTIVE_STATUSES),
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)

    if query.first() is not None:
        raise ConflictError('This time slot is already booked or has a pending request.')


def _commit_slot_change(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError('This time slot is already booked or has a pending request.') from exc


def _ensure_owner(appointment: Appointment, principal: Principal, verb: str) -> None:
    if principal.is_admin:
        return
    if principal.is_teacher and principal.id == appointment.teacher_id:
        return
    raise ForbiddenError(f'You can only {verb} your own appointments.')


def _create(
    db: Session,
    teacher: Teacher,
    student: StudentInfo,
    day: str,
    time: str,
    slot_date: date,
    status: str,
    created_by: str,
    student_id: int | None = None,
    notes: str | None = None,
) -> Appointment:
    normalized_day, normalized_time = normalize_slot(day, time, slot_date)
    ensure_slot_free(db, teacher.id, slot_date, normalized_time)

    appointment = Appointment(
        teacher_id=teacher.id,
        teacher_name=teacher.name,
        student_id=student_id,
        student_name=student.name,
        student_email=student.email,
        student_phone=student.phone,
        student_subject=student.subject,
        student_message=student.message,
        date=slot_date,
        day=normalized_day,
        time=normalized_time,
        status=status,
        created_by=created_by,
        notes=normalize_optional_text(notes),
    )
    db.add(appointment)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError('This time slot is already booked or has a pending request.') from exc
    return appointment


def request_appointment(
    db: Session,
    student: StudentInfo,
    teacher_id: int,
    day: str,
    time: str,
    slot_date: date,
    student_id: int | None = None,
) -> Appointment:
    """Create a pending request from a student."""
    teacher = get_active_teacher(db, teacher_id)
    appointment = _create(
        db,
        teacher,
        student,
        day,
        time,
        slot_date,
        status=PENDING,
        created_by=CREATED_BY_STUDENT,
        student_id=student_id,
    )
    notifications.notify_teacher(
        db,
        appointment,
        'appointment_request',
        f'New appointment request from {student.name} for {notifications.describe_slot(appointment)}.',
    )
    _commit_slot_change(db)
    db.refresh(appointment)

    logger.info('Appointment %s requested by %s with teacher %s', appointment.id, student.email, teacher.id)
    return appointment


def book_appointment(
    db: Session,
    teacher: Teacher,
    student: StudentInfo,
    day: str,
    time: str,
    slot_date: date,
    notes: str | None = None,
) -> Appointment:
    """Create an appointment booked directly by the teacher, already confirmed."""
    if not teacher.is_active:
        raise NotFoundError('Teacher not found.')

    appointment = _create(
        db,
        teacher,
        student,
        day,
        time,
        slot_date,
        status=CONFIRMED,
        created_by=CREATED_BY_TEACHER,
        notes=notes,
    )
    notifications.notify_student(
        db,
        appointment,
        'appointment_booked',
        f'{teacher.name} booked an appointment with you for {notifications.describe_slot(appointment)}.',
    )
    _commit_slot_change(db)
    db.refresh(appointment)

    logger.info('Appointment %s booked by teacher %s', appointment.id, teacher.id)
    return appointment


def _apply_transition(db: Session, appointment: Appointment, action: str, **changes) -> Appointment:
    transition = TRANSITIONS[action]
    if appointment.status not in transition.sources:
        raise InvalidStateError(_invalid_state_message(transition, appointment.status))

    result = db.execute(
        update(Appointment)
        .where(Appointment.id == appointment.id, Appointment.status.in_(transition.sources))
        .values(status=transition.target, updated_at=utcnow(), **changes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(appointment)
        logger.warning('Lost race applying %s to appointment %s (now %s)', action, appointment.id, appointment.status)
        raise InvalidStateError(_invalid_state_message(transition, appointment.status))

    db.refresh(appointment)
    return appointment


def accept_request(db: Session, appointment_id: int, principal: Principal, message: str | None = None) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _ensure_owner(appointment, principal, 'accept')

    _apply_transition(
        db,
        appointment,
        'accept',
        response_message=normalize_optional_text(message) or DEFAULT_ACCEPT_MESSAGE,
        responded_at=utcnow(),
    )
    notifications.notify_student(
        db,
        appointment,
        'appointment_confirmed',
        f'Your appointment with {appointment.teacher_name} on {notifications.describe_slot(appointment)} was confirmed.',
    )
    db.commit()
    db.refresh(appointment)

    logger.info('Appointment %s accepted by %s %s', appointment.id, principal.role, principal.id)
    return appointment


def reject_request(db: Session, appointment_id: int, principal: Principal, message: str | None = None) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _ensure_owner(appointment, principal, 'reject')

    _apply_transition(
        db,
        appointment,
        'reject',
        response_message=normalize_optional_text(message) or DEFAULT_REJECT_MESSAGE,
        responded_at=utcnow(),
    )
    notifications.notify_student(
        db,
        appointment,
        'appointment_rejected',
        f'Your appointment request with {appointment.teacher_name} on {notifications.describe_slot(appointment)} was rejected.',
    )
    db.commit()
    db.refresh(appointment)

    logger.info('Appointment %s rejected by %s %s', appointment.id, principal.role, principal.id)
    return appointment


def cancel(db: Session, appointment_id: int, principal: Principal, reason: str | None = None) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if principal.is_student:
        if appointment.student_email != principal.email:
            raise ForbiddenError('You can only cancel your own appointments.')
    else:
        _ensure_owner(appointment, principal, 'cancel')

    _apply_transition(
        db,
        appointment,
        'cancel',
        cancelled_by=principal.role,
        cancellation_reason=normalize_optional_text(reason) or DEFAULT_CANCELLATION_REASON,
        cancelled_at=utcnow(),
    )
    slot = notifications.describe_slot(appointment)
    if principal.is_student:
        notifications.notify_teacher(
            db,
            appointment,
            'appointment_cancelled',
            f'{appointment.student_name} cancelled the appointment on {slot}.',
        )
    else:
        notifications.notify_student(
            db,
            appointment,
            'appointment_cancelled',
            f'Your appointment with {appointment.teacher_name} on {slot} was cancelled.',
        )
    db.commit()
    db.refresh(appointment)

    logger.info('Appointment %s cancelled by %s %s', appointment.id, principal.role, principal.id)
    return appointment


def complete(db: Session, appointment_id: int, principal: Principal, notes: str | None = None) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _ensure_owner(appointment, principal, 'complete')

    changes = {'completed_at': utcnow()}
    normalized_notes = normalize_optional_text(notes)
    if normalized_notes:
        changes['notes'] = normalized_notes

    _apply_transition(db, appointment, 'complete', **changes)
    notifications.notify_student(
        db,
        appointment,
        'appointment_completed',
        f'Your appointment with {appointment.teacher_name} on {notifications.describe_slot(appointment)} was marked as completed.',
    )
    db.commit()
    db.refresh(appointment)

    logger.info('Appointment %s completed by %s %s', appointment.id, principal.role, principal.id)
    return appointment


def update_details(
    db: Session,
    appointment_id: int,
    principal: Principal,
    notes: str | None = None,
    day: str | None = None,
    time: str | None = None,
    slot_date: date | None = None,
) -> Appointment:
    """Edit notes or reschedule an active appointment. Never touches status."""
    if notes is None and day is None and time is None and slot_date is None:
        raise ValidationError('No updates provided.')
    if day is not None and slot_date is None:
        raise ValidationError('A date is required when changing the day.')

    appointment = get_appointment(db, appointment_id)
    _ensure_owner(appointment, principal, 'update')

    if appointment.status not in ACTIVE_STATUSES:
        raise InvalidStateError('Only pending or confirmed appointments can be updated.')

    if notes is not None:
        appointment.notes = normalize_optional_text(notes)

    rescheduled = day is not None or time is not None or slot_date is not None
    if rescheduled:
        new_date = slot_date or appointment.date
        new_day, new_time = normalize_slot(
            day if day is not None else weekday_name(new_date),
            time if time is not None else appointment.time,
            new_date,
        )
        ensure_slot_free(db, appointment.teacher_id, new_date, new_time, exclude_id=appointment.id)
        appointment.date = new_date
        appointment.day = new_day
        appointment.time = new_time
        notifications.notify_student(
            db,
            appointment,
            'appointment_rescheduled',
            f'Your appointment with {appointment.teacher_name} was moved to {notifications.describe_slot(appointment)}.',
        )

    appointment.updated_at = utcnow()
    _commit_slot_change(db)
    db.refresh(appointment)

    logger.info('Appointment %s updated by %s %s', appointment.id, principal.role, principal.id)
    return appointment


def get_stats(db: Session, teacher_id: int | None = None, today: date | None = None) -> dict:
    today = today or utcnow().date()
    query = db.query(Appointment)
    if teacher_id is not None:
        query = query.filter(Appointment.teacher_id == teacher_id)

    counts = dict(
        query.with_entities(Appointment.status, func.count(Appointment.id))
        .group_by(Appointment.status)
        .all()
    )
    recent_since = utcnow() - timedelta(days=STATS_WINDOW_DAYS)

    return {
        'total': sum(counts.values()),
        'pending_requests': query.filter(
            Appointment.status == PENDING,
            Appointment.created_by == CREATED_BY_STUDENT,
        ).count(),
        'confirmed': counts.get(CONFIRMED, 0),
        'direct_bookings': query.filter(Appointment.created_by == CREATED_BY_TEACHER).count(),
        'rejected': counts.get(REJECTED, 0),
        'cancelled': counts.get(CANCELLED, 0),
        'completed': counts.get(COMPLETED, 0),
        'recent': query.filter(Appointment.created_at >= recent_since).count(),
        'upcoming': query.filter(
            Appointment.status == CONFIRMED,
            Appointment.date >= today,
            Appointment.date <= today + timedelta(days=STATS_WINDOW_DAYS),
        ).count(),
    }
