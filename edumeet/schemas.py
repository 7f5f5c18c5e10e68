"""Request and response models shared between routers."""

import datetime as dt
import re

from pydantic import BaseModel, ConfigDict, field_validator

from edumeet.models.appointment import Appointment

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$')
MAX_MESSAGE_LENGTH = 500


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized:
        raise ValueError('Email is required.')
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError('Please provide a valid email address.')
    return normalized


def normalize_optional_text(value: str | None, max_length: int = MAX_MESSAGE_LENGTH) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'Must be {max_length} characters or fewer.')

    return normalized


class StudentInfo(BaseModel):
    name: str
    email: str
    phone: str | None = None
    subject: str | None = None
    message: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Student name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('phone', 'subject', 'message')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)


class AppointmentResponse(BaseModel):
    id: int
    teacher_id: int
    teacher_name: str
    student_id: int | None = None
    student: StudentInfo
    date: dt.date
    day: str
    time: str
    status: str
    created_by: str
    response_message: str | None = None
    responded_at: dt.datetime | None = None
    notes: str | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: dt.datetime | None = None
    completed_at: dt.datetime | None = None
    created_at: dt.datetime
    updated_at: dt.datetime


def appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        teacher_id=appointment.teacher_id,
        teacher_name=appointment.teacher_name,
        student_id=appointment.student_id,
        student=StudentInfo.model_construct(
            name=appointment.student_name,
            email=appointment.student_email,
            phone=appointment.student_phone,
            subject=appointment.student_subject,
            message=appointment.student_message,
        ),
        date=appointment.date,
        day=appointment.day,
        time=appointment.time,
        status=appointment.status,
        created_by=appointment.created_by,
        response_message=appointment.response_message,
        responded_at=appointment.responded_at,
        notes=appointment.notes,
        cancelled_by=appointment.cancelled_by,
        cancellation_reason=appointment.cancellation_reason,
        cancelled_at=appointment.cancelled_at,
        completed_at=appointment.completed_at,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


class AppointmentActionResponse(BaseModel):
    message: str
    appointment: AppointmentResponse


class AppointmentPage(BaseModel):
    items: list[AppointmentResponse]
    total: int
    page: int
    pages: int


class TeacherResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    department: str
    subject: str
    experience: str
    qualification: str
    bio: str | None = None
    availability: list[str]
    has_account: bool
    is_active: bool
    last_login: dt.datetime | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    is_active: bool
    last_login: dt.datetime | None = None
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Password is required.')
        return value


class MessageResponse(BaseModel):
    message: str


def page_count(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if total else 0
