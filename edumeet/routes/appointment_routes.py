import datetime as dt

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.orm import Query as OrmQuery
from sqlalchemy.orm import Session

from edumeet.auth.dependencies import (
    Principal,
    get_current_principal,
    get_optional_principal,
    require_teacher,
    require_teacher_or_admin,
)
from edumeet.core.errors import ForbiddenError, ValidationError
from edumeet.database import get_db
from edumeet.models.appointment import PENDING, STATUSES, CREATED_BY_STUDENT, Appointment
from edumeet.schemas import (
    AppointmentActionResponse,
    AppointmentPage,
    AppointmentResponse,
    StudentInfo,
    appointment_response,
    normalize_optional_text,
    page_count,
)
from edumeet.services import lifecycle
from edumeet.services.timeslots import normalize_time_label, normalize_weekday

router = APIRouter(tags=['appointments'])


class SlotFields(BaseModel):
    day: str
    time: str
    date: dt.date

    @field_validator('day')
    @classmethod
    def validate_day(cls, value: str) -> str:
        return normalize_weekday(value)

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_time_label(value)


class AppointmentRequest(SlotFields):
    teacher_id: int
    student: StudentInfo


class TeacherBookingRequest(SlotFields):
    student: StudentInfo
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)


class TeacherResponseRequest(BaseModel):
    response_message: str | None = None

    @field_validator('response_message')
    @classmethod
    def validate_response_message(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)


class CancelRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)


class CompleteRequest(BaseModel):
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)


class AppointmentUpdateRequest(BaseModel):
    """Editable details only. Status changes go through the action endpoints."""

    model_config = ConfigDict(extra='forbid')

    notes: str | None = None
    day: str | None = None
    time: str | None = None
    date: dt.date | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None
        # Empty string clears the notes.
        return normalize_optional_text(value) or ''


class AppointmentStatsResponse(BaseModel):
    total: int
    pending_requests: int
    confirmed: int
    direct_bookings: int
    rejected: int
    cancelled: int
    completed: int
    recent: int
    upcoming: int


def validate_status_filter(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in STATUSES:
        raise ValidationError(f'Status must be one of: {", ".join(STATUSES)}.')
    return normalized


def visible_appointments(db: Session, principal: Principal) -> OrmQuery:
    query = db.query(Appointment)
    if principal.is_teacher:
        return query.filter(Appointment.teacher_id == principal.id)
    if principal.is_student:
        return query.filter(Appointment.student_email == principal.email)
    return query


def ensure_can_view_teacher(principal: Principal, teacher_id: int) -> None:
    if principal.is_admin:
        return
    if principal.is_teacher and principal.id == teacher_id:
        return
    raise ForbiddenError('You can only view your own appointments.')


def paginate(query: OrmQuery, page: int, limit: int) -> AppointmentPage:
    total = query.count()
    appointments = query.offset((page - 1) * limit).limit(limit).all()
    return AppointmentPage(
        items=[appointment_response(appointment) for appointment in appointments],
        total=total,
        page=page,
        pages=page_count(total, limit),
    )


@router.get('', response_model=AppointmentPage)
def list_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    created_by: str | None = Query(default=None),
    teacher_id: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    query = visible_appointments(db, principal)

    normalized_status = validate_status_filter(status_filter)
    if normalized_status:
        query = query.filter(Appointment.status == normalized_status)
    if created_by:
        query = query.filter(Appointment.created_by == created_by.strip().lower())
    if teacher_id is not None:
        query = query.filter(Appointment.teacher_id == teacher_id)

    return paginate(query.order_by(Appointment.created_at.desc(), Appointment.id.desc()), page, limit)


@router.get('/stats', response_model=AppointmentStatsResponse)
def get_appointment_stats(
    teacher_id: int | None = Query(default=None),
    principal: Principal = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    if principal.is_teacher:
        if teacher_id is not None and teacher_id != principal.id:
            raise ForbiddenError('You can only view your own statistics.')
        teacher_id = principal.id

    return AppointmentStatsResponse(**lifecycle.get_stats(db, teacher_id=teacher_id))


@router.get('/teacher/{teacher_id}/pending', response_model=list[AppointmentResponse])
def list_teacher_pending_requests(
    teacher_id: int,
    principal: Principal = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    ensure_can_view_teacher(principal, teacher_id)

    appointments = db.query(Appointment).filter(
        Appointment.teacher_id == teacher_id,
        Appointment.status == PENDING,
        Appointment.created_by == CREATED_BY_STUDENT,
    ).order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()

    return [appointment_response(appointment) for appointment in appointments]


@router.get('/teacher/{teacher_id}', response_model=AppointmentPage)
def list_teacher_appointments(
    teacher_id: int,
    status_filter: str | None = Query(default=None, alias='status'),
    created_by: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    principal: Principal = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    ensure_can_view_teacher(principal, teacher_id)

    query = db.query(Appointment).filter(Appointment.teacher_id == teacher_id)
    normalized_status = validate_status_filter(status_filter)
    if normalized_status:
        query = query.filter(Appointment.status == normalized_status)
    if created_by:
        query = query.filter(Appointment.created_by == created_by.strip().lower())

    return paginate(query.order_by(Appointment.date.asc(), Appointment.id.asc()), page, limit)


@router.post('/request', response_model=AppointmentActionResponse, status_code=status.HTTP_201_CREATED)
def request_appointment(
    data: AppointmentRequest,
    principal: Principal | None = Depends(get_optional_principal),
    db: Session = Depends(get_db),
):
    student_id = None
    if principal is not None:
        if not principal.is_student:
            raise ForbiddenError('Only students can request appointments.')
        student_id = principal.id

    appointment = lifecycle.request_appointment(
        db,
        student=data.student,
        teacher_id=data.teacher_id,
        day=data.day,
        time=data.time,
        slot_date=data.date,
        student_id=student_id,
    )
    return AppointmentActionResponse(
        message='Appointment request sent to teacher successfully',
        appointment=appointment_response(appointment),
    )


@router.post('/book', response_model=AppointmentActionResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: TeacherBookingRequest,
    principal: Principal = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    appointment = lifecycle.book_appointment(
        db,
        teacher=principal.account,
        student=data.student,
        day=data.day,
        time=data.time,
        slot_date=data.date,
        notes=data.notes,
    )
    return AppointmentActionResponse(
        message='Appointment booked successfully',
        appointment=appointment_response(appointment),
    )


@router.put('/{appointment_id}/accept', response_model=AppointmentActionResponse)
def accept_appointment(
    appointment_id: int,
    data: TeacherResponseRequest | None = None,
    principal: Principal = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    message = data.response_message if data else None
    appointment = lifecycle.accept_request(db, appointment_id, principal, message=message)
    return AppointmentActionResponse(
        message='Appointment request accepted successfully',
        appointment=appointment_response(appointment),
    )


@router.put('/{appointment_id}/reject', response_model=AppointmentActionResponse)
def reject_appointment(
    appointment_id: int,
    data: TeacherResponseRequest | None = None,
    principal: Principal = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    message = data.response_message if data else None
    appointment = lifecycle.reject_request(db, appointment_id, principal, message=message)
    return AppointmentActionResponse(
        message='Appointment request rejected successfully',
        appointment=appointment_response(appointment),
    )


@router.put('/{appointment_id}/cancel', response_model=AppointmentActionResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelRequest | None = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    reason = data.reason if data else None
    appointment = lifecycle.cancel(db, appointment_id, principal, reason=reason)
    return AppointmentActionResponse(
        message='Appointment cancelled successfully',
        appointment=appointment_response(appointment),
    )


@router.put('/{appointment_id}/complete', response_model=AppointmentActionResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteRequest | None = None,
    principal: Principal = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    notes = data.notes if data else None
    appointment = lifecycle.complete(db, appointment_id, principal, notes=notes)
    return AppointmentActionResponse(
        message='Appointment completed successfully',
        appointment=appointment_response(appointment),
    )


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    appointment = lifecycle.get_appointment(db, appointment_id)

    allowed = (
        principal.is_admin
        or (principal.is_teacher and appointment.teacher_id == principal.id)
        or (principal.is_student and appointment.student_email == principal.email)
    )
    if not allowed:
        raise ForbiddenError('You can only view your own appointments.')

    return appointment_response(appointment)


@router.put('/{appointment_id}', response_model=AppointmentActionResponse)
def update_appointment(
    appointment_id: int,
    data: AppointmentUpdateRequest,
    principal: Principal = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    appointment = lifecycle.update_details(
        db,
        appointment_id,
        principal,
        notes=data.notes,
        day=data.day,
        time=data.time,
        slot_date=data.date,
    )
    return AppointmentActionResponse(
        message='Appointment updated successfully',
        appointment=appointment_response(appointment),
    )


@router.delete('/{appointment_id}', response_model=AppointmentActionResponse)
def delete_appointment(
    appointment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    appointment = lifecycle.cancel(db, appointment_id, principal)
    return AppointmentActionResponse(
        message='Appointment cancelled successfully',
        appointment=appointment_response(appointment),
    )
