import logging
import secrets

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from edumeet.auth.dependencies import Principal, require_admin
from edumeet.auth.passwords import hash_password, validate_password_strength, verify_password
from edumeet.core import config
from edumeet.core.errors import AuthenticationError, ConflictError, ForbiddenError, NotFoundError
from edumeet.core.rate_limit import login_rate_limiter
from edumeet.database import get_db, utcnow
from edumeet.models.appointment import STATUSES, Appointment
from edumeet.models.notification import Notification
from edumeet.models.teacher import Teacher
from edumeet.models.user import ADMIN_ROLE, STUDENT_ROLE, User
from edumeet.routes.appointment_routes import AppointmentPage, paginate, validate_status_filter
from edumeet.routes.auth_routes import (
    DUPLICATE_EMAIL_MESSAGE,
    AuthResponse,
    auth_response,
    ensure_user_email_available,
    validate_person_name,
)
from edumeet.schemas import LoginRequest, MessageResponse, TeacherResponse, UserResponse, normalize_email
from edumeet.services.notifications import STUDENT_RECIPIENT

logger = logging.getLogger(__name__)

router = APIRouter(tags=['admin'])


class AdminRegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    registration_key: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return validate_person_name(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return validate_password_strength(value)


class TeacherStatusRequest(BaseModel):
    is_active: bool


class DashboardStatsResponse(BaseModel):
    students: int
    teachers: int
    teachers_with_accounts: int
    appointments: int
    appointments_by_status: dict[str, int]


def create_admin_account(db: Session, name: str, email: str, password: str) -> User:
    ensure_user_email_available(db, email)

    admin = User(
        name=name,
        email=email,
        hashed_password=hash_password(password),
        role=ADMIN_ROLE,
    )
    db.add(admin)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE) from exc
    db.refresh(admin)
    return admin


@router.post('/register', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register_admin(data: AdminRegisterRequest, db: Session = Depends(get_db)):
    if config.ADMIN_REGISTRATION_KEY and not secrets.compare_digest(
        data.registration_key or '',
        config.ADMIN_REGISTRATION_KEY,
    ):
        raise ForbiddenError('Invalid admin registration key.')

    admin = create_admin_account(db, data.name, data.email, data.password)

    logger.info('Admin %s registered', admin.id)
    return admin


@router.post('/login', response_model=AuthResponse, dependencies=[Depends(login_rate_limiter('admin-login'))])
def login_admin(data: LoginRequest, db: Session = Depends(get_db)):
    admin = db.query(User).filter(User.email == data.email, User.role == ADMIN_ROLE).first()
    if admin is None or not verify_password(data.password, admin.hashed_password):
        raise AuthenticationError('Invalid email or password.')
    if not admin.is_active:
        raise AuthenticationError('Account is deactivated.')

    admin.last_login = utcnow()
    db.commit()
    db.refresh(admin)

    return auth_response(admin)


@router.get('/profile', response_model=UserResponse)
def get_admin_profile(principal: Principal = Depends(require_admin)):
    return principal.account


@router.get('/dashboard/stats', response_model=DashboardStatsResponse)
def get_dashboard_stats(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    status_counts = dict(
        db.query(Appointment.status, func.count(Appointment.id)).group_by(Appointment.status).all()
    )
    active_teachers = db.query(Teacher).filter(Teacher.is_active.is_(True))

    return DashboardStatsResponse(
        students=db.query(User).filter(User.role == STUDENT_ROLE).count(),
        teachers=active_teachers.count(),
        teachers_with_accounts=active_teachers.filter(Teacher.has_account.is_(True)).count(),
        appointments=sum(status_counts.values()),
        appointments_by_status={appointment_status: status_counts.get(appointment_status, 0) for appointment_status in STATUSES},
    )


@router.get('/users', response_model=list[UserResponse])
def list_students(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return db.query(User).filter(User.role == STUDENT_ROLE).order_by(User.created_at.desc(), User.id.desc()).all()


@router.get('/appointments', response_model=AppointmentPage)
def list_all_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Appointment)
    normalized_status = validate_status_filter(status_filter)
    if normalized_status:
        query = query.filter(Appointment.status == normalized_status)

    return paginate(query.order_by(Appointment.date.asc(), Appointment.id.asc()), page, limit)


@router.patch('/teachers/{teacher_id}/status', response_model=TeacherResponse)
def update_teacher_status(
    teacher_id: int,
    data: TeacherStatusRequest,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise NotFoundError('Teacher not found.')

    teacher.is_active = data.is_active
    db.commit()
    db.refresh(teacher)

    logger.info('Teacher %s set active=%s by admin %s', teacher.id, data.is_active, principal.id)
    return teacher


@router.delete('/users/{user_id}', response_model=MessageResponse)
def delete_student(
    user_id: int,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = db.get(User, user_id)
    if user is None or user.role != STUDENT_ROLE:
        raise NotFoundError('Student not found.')

    # Appointments keep the embedded student details.
    db.query(Appointment).filter(Appointment.student_id == user.id).update(
        {Appointment.student_id: None},
        synchronize_session=False,
    )
    db.query(Notification).filter(
        Notification.recipient_role == STUDENT_RECIPIENT,
        Notification.recipient_id == user.id,
    ).update({Notification.recipient_id: None}, synchronize_session=False)
    db.delete(user)
    db.commit()

    logger.info('Student %s deleted by admin %s', user_id, principal.id)
    return MessageResponse(message='Student deleted successfully')
