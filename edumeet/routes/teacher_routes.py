import logging
import re
from collections import Counter
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from edumeet.auth import jwt_handler
from edumeet.auth.dependencies import TEACHER_ROLE, Principal, require_admin, require_teacher, require_teacher_or_admin
from edumeet.auth.passwords import (
    generate_setup_token,
    hash_password,
    hash_setup_token,
    validate_password_strength,
    verify_password,
)
from edumeet.core import config
from edumeet.core.errors import AuthenticationError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from edumeet.core.rate_limit import login_rate_limiter
from edumeet.database import get_db, utcnow
from edumeet.models.appointment import Appointment
from edumeet.models.teacher import AVAILABILITY_SLOTS, DEPARTMENTS, Teacher
from edumeet.schemas import LoginRequest, MessageResponse, TeacherResponse, normalize_email, page_count

logger = logging.getLogger(__name__)

router = APIRouter(tags=['teachers'])

NAME_PATTERN = re.compile(r'^[A-Za-z\s.]+$')
PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{0,15}$')
SORT_COLUMNS = {
    'created_at': Teacher.created_at,
    'name': Teacher.name,
    'department': Teacher.department,
    'subject': Teacher.subject,
}
DUPLICATE_EMAIL_MESSAGE = 'Teacher with this email already exists.'


def _check_length(value: str, label: str, min_length: int, max_length: int) -> str:
    normalized = value.strip()
    if not min_length <= len(normalized) <= max_length:
        raise ValueError(f'{label} must be between {min_length} and {max_length} characters.')
    return normalized


class TeacherFields(BaseModel):
    """Validation shared by create and update; ``None`` means "not provided"."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    department: str | None = None
    subject: str | None = None
    experience: str | None = None
    qualification: str | None = None
    bio: str | None = None
    availability: list[str] | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = _check_length(value, 'Name', 2, 50)
        if not NAME_PATTERN.match(normalized):
            raise ValueError('Name can only contain letters, spaces, and dots.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return None if value is None else normalize_email(value)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not PHONE_PATTERN.match(normalized):
            raise ValueError('Please provide a valid phone number.')
        return normalized

    @field_validator('department')
    @classmethod
    def validate_department(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if normalized not in DEPARTMENTS:
            raise ValueError('Please select a valid department.')
        return normalized

    @field_validator('subject')
    @classmethod
    def validate_subject(cls, value: str | None) -> str | None:
        return None if value is None else _check_length(value, 'Subject', 2, 50)

    @field_validator('experience')
    @classmethod
    def validate_experience(cls, value: str | None) -> str | None:
        return None if value is None else _check_length(value, 'Experience', 1, 50)

    @field_validator('qualification')
    @classmethod
    def validate_qualification(cls, value: str | None) -> str | None:
        return None if value is None else _check_length(value, 'Qualification', 5, 100)

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > 500:
            raise ValueError('Bio cannot exceed 500 characters.')
        return normalized

    @field_validator('availability')
    @classmethod
    def validate_availability(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        normalized = []
        for slot in value:
            slot = slot.strip()
            if slot not in AVAILABILITY_SLOTS:
                raise ValueError(f'Invalid availability slot: {slot}')
            if slot not in normalized:
                normalized.append(slot)
        return normalized


class CreateTeacherRequest(TeacherFields):
    name: str
    email: str
    phone: str
    department: str
    subject: str
    experience: str
    qualification: str


class UpdateTeacherRequest(TeacherFields):
    is_active: bool | None = None


class TeacherPage(BaseModel):
    items: list[TeacherResponse]
    total: int
    page: int
    pages: int


class TeacherLoginResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    teacher: TeacherResponse


class SetupLinkResponse(BaseModel):
    message: str
    setup_url: str
    teacher_email: str
    teacher_name: str
    expires_at: datetime


class SetupAccountRequest(BaseModel):
    password: str

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return validate_password_strength(value)


class CountEntry(BaseModel):
    name: str
    count: int


class TeacherStatsResponse(BaseModel):
    total_teachers: int
    departments: list[CountEntry]
    availability: list[CountEntry]


def get_teacher_or_404(db: Session, teacher_id: int) -> Teacher:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise NotFoundError('Teacher not found.')
    return teacher


def ensure_email_available(db: Session, email: str, exclude_id: int | None = None) -> None:
    query = db.query(Teacher).filter(Teacher.email == email)
    if exclude_id is not None:
        query = query.filter(Teacher.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE)


def commit_teacher(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE) from exc


def teacher_login_response(teacher: Teacher) -> TeacherLoginResponse:
    token = jwt_handler.create_access_token(subject=str(teacher.id), role=TEACHER_ROLE, email=teacher.email)
    return TeacherLoginResponse(access_token=token, teacher=TeacherResponse.model_validate(teacher))


@router.get('', response_model=TeacherPage)
def list_teachers(
    department: str | None = Query(default=None),
    subject: str | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: str = Query(default='created_at'),
    sort_order: str = Query(default='desc'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    if sort_by not in SORT_COLUMNS:
        raise ValidationError(f'sort_by must be one of: {", ".join(SORT_COLUMNS)}.')
    if sort_order not in ('asc', 'desc'):
        raise ValidationError("sort_order must be 'asc' or 'desc'.")

    query = db.query(Teacher).filter(Teacher.is_active.is_(True))
    if department:
        query = query.filter(Teacher.department == department.strip())
    if subject:
        query = query.filter(Teacher.subject == subject.strip())
    if search and search.strip():
        pattern = f'%{search.strip()}%'
        query = query.filter(
            or_(
                Teacher.name.ilike(pattern),
                Teacher.email.ilike(pattern),
                Teacher.subject.ilike(pattern),
                Teacher.department.ilike(pattern),
            )
        )

    column = SORT_COLUMNS[sort_by]
    query = query.order_by(column.asc() if sort_order == 'asc' else column.desc(), Teacher.id.asc())

    total = query.count()
    teachers = query.offset((page - 1) * limit).limit(limit).all()
    return TeacherPage(
        items=[TeacherResponse.model_validate(teacher) for teacher in teachers],
        total=total,
        page=page,
        pages=page_count(total, limit),
    )


@router.get('/stats', response_model=TeacherStatsResponse)
def get_teacher_stats(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    active = db.query(Teacher).filter(Teacher.is_active.is_(True))

    department_rows = (
        active.with_entities(Teacher.department, func.count(Teacher.id))
        .group_by(Teacher.department)
        .order_by(func.count(Teacher.id).desc(), Teacher.department.asc())
        .all()
    )

    slot_counts = Counter()
    for (availability,) in active.with_entities(Teacher.availability).all():
        slot_counts.update(availability or [])

    return TeacherStatsResponse(
        total_teachers=active.count(),
        departments=[CountEntry(name=name, count=count) for name, count in department_rows],
        availability=[CountEntry(name=slot, count=count) for slot, count in slot_counts.most_common()],
    )


@router.get('/department/{department}', response_model=list[TeacherResponse])
def list_teachers_by_department(department: str, db: Session = Depends(get_db)):
    teachers = db.query(Teacher).filter(
        Teacher.department == department,
        Teacher.is_active.is_(True),
    ).order_by(Teacher.name.asc()).all()
    return teachers


@router.get('/profile/me', response_model=TeacherResponse)
def get_my_profile(principal: Principal = Depends(require_teacher)):
    return principal.account


@router.post('/login', response_model=TeacherLoginResponse, dependencies=[Depends(login_rate_limiter('teacher-login'))])
def teacher_login(data: LoginRequest, db: Session = Depends(get_db)):
    teacher = db.query(Teacher).filter(
        Teacher.email == data.email,
        Teacher.is_active.is_(True),
    ).first()

    if teacher is None:
        raise AuthenticationError('Invalid credentials or teacher not found.')

    if not teacher.has_account or not teacher.hashed_password:
        raise AuthenticationError('Account not set up. Please contact admin for account setup link.')

    if not verify_password(data.password, teacher.hashed_password):
        raise AuthenticationError('Invalid credentials.')

    teacher.last_login = utcnow()
    db.commit()
    db.refresh(teacher)

    logger.info('Teacher %s logged in', teacher.id)
    return teacher_login_response(teacher)


@router.post('/logout', response_model=MessageResponse)
def teacher_logout(principal: Principal = Depends(require_teacher)):
    return MessageResponse(message='Logged out successfully')


@router.post('/setup-account/{token}', response_model=TeacherLoginResponse)
def setup_teacher_account(token: str, data: SetupAccountRequest, db: Session = Depends(get_db)):
    teacher = db.query(Teacher).filter(
        Teacher.account_setup_token == hash_setup_token(token),
        Teacher.account_setup_expires > utcnow(),
        Teacher.is_active.is_(True),
    ).first()

    if teacher is None:
        raise ValidationError('Token is invalid or has expired.')

    teacher.hashed_password = hash_password(data.password)
    teacher.has_account = True
    teacher.account_setup_token = None
    teacher.account_setup_expires = None
    teacher.last_login = utcnow()
    db.commit()
    db.refresh(teacher)

    logger.info('Teacher %s completed account setup', teacher.id)
    return teacher_login_response(teacher)


@router.post('', response_model=TeacherResponse, status_code=status.HTTP_201_CREATED)
def create_teacher(
    data: CreateTeacherRequest,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_email_available(db, data.email)

    teacher = Teacher(
        name=data.name,
        email=data.email,
        phone=data.phone,
        department=data.department,
        subject=data.subject,
        experience=data.experience,
        qualification=data.qualification,
        bio=data.bio,
        availability=data.availability or [],
    )
    db.add(teacher)
    commit_teacher(db)
    db.refresh(teacher)

    logger.info('Teacher %s created by admin %s', teacher.id, principal.id)
    return teacher


@router.get('/{teacher_id}', response_model=TeacherResponse)
def get_teacher(teacher_id: int, db: Session = Depends(get_db)):
    teacher = get_teacher_or_404(db, teacher_id)
    if not teacher.is_active:
        raise NotFoundError('Teacher is not active.')
    return teacher


@router.put('/{teacher_id}', response_model=TeacherResponse)
def update_teacher(
    teacher_id: int,
    data: UpdateTeacherRequest,
    principal: Principal = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    if principal.is_teacher and principal.id != teacher_id:
        raise ForbiddenError('You can only update your own profile.')

    changes = data.model_dump(exclude_unset=True)
    if 'is_active' in changes and not principal.is_admin:
        raise ForbiddenError('Only admins can change whether a teacher is active.')
    changes = {field: value for field, value in changes.items() if value is not None}
    if not changes:
        raise ValidationError('No updates provided.')

    teacher = get_teacher_or_404(db, teacher_id)
    if 'email' in changes and changes['email'] != teacher.email:
        ensure_email_available(db, changes['email'], exclude_id=teacher.id)

    for field, value in changes.items():
        setattr(teacher, field, value)
    commit_teacher(db)
    db.refresh(teacher)

    logger.info('Teacher %s updated by %s %s', teacher.id, principal.role, principal.id)
    return teacher


@router.delete('/{teacher_id}', response_model=MessageResponse)
def delete_teacher(
    teacher_id: int,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    teacher = get_teacher_or_404(db, teacher_id)
    teacher.is_active = False
    db.commit()

    logger.info('Teacher %s deactivated by admin %s', teacher.id, principal.id)
    return MessageResponse(message='Teacher deleted successfully')


@router.delete('/{teacher_id}/permanent', response_model=MessageResponse)
def permanently_delete_teacher(
    teacher_id: int,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    teacher = get_teacher_or_404(db, teacher_id)

    has_appointments = db.query(Appointment.id).filter(Appointment.teacher_id == teacher.id).first() is not None
    if has_appointments:
        raise ConflictError('Teacher has appointments and cannot be permanently deleted. Deactivate the teacher instead.')

    db.delete(teacher)
    db.commit()

    logger.info('Teacher %s permanently deleted by admin %s', teacher_id, principal.id)
    return MessageResponse(message='Teacher permanently deleted')


@router.post('/{teacher_id}/setup-link', response_model=SetupLinkResponse)
def send_account_setup_link(
    teacher_id: int,
    request: Request,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    teacher = get_teacher_or_404(db, teacher_id)
    if not teacher.is_active:
        raise NotFoundError('Teacher is not active.')
    if teacher.has_account:
        raise ConflictError('Teacher already has an account.')

    token, digest = generate_setup_token()
    teacher.account_setup_token = digest
    teacher.account_setup_expires = utcnow() + timedelta(hours=config.TEACHER_SETUP_TOKEN_HOURS)
    db.commit()
    db.refresh(teacher)

    if config.FRONTEND_SETUP_URL:
        setup_url = f'{config.FRONTEND_SETUP_URL.rstrip("/")}/{token}'
    else:
        setup_url = str(request.url_for('setup_teacher_account', token=token))

    logger.info('Setup link generated for teacher %s by admin %s', teacher.id, principal.id)
    return SetupLinkResponse(
        message='Account setup link generated',
        setup_url=setup_url,
        teacher_email=teacher.email,
        teacher_name=teacher.name,
        expires_at=teacher.account_setup_expires,
    )
