import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from edumeet.auth import jwt_handler
from edumeet.auth.dependencies import Principal, require_student
from edumeet.auth.passwords import hash_password, validate_password_strength, verify_password
from edumeet.core.errors import AuthenticationError, ConflictError, ValidationError
from edumeet.core.rate_limit import login_rate_limiter
from edumeet.database import get_db, utcnow
from edumeet.models.user import STUDENT_ROLE, User
from edumeet.schemas import LoginRequest, MessageResponse, UserResponse, normalize_email

logger = logging.getLogger(__name__)

router = APIRouter(tags=['auth'])

DUPLICATE_EMAIL_MESSAGE = 'An account with this email already exists.'


def validate_person_name(value: str) -> str:
    normalized = ' '.join(value.split())
    if not 2 <= len(normalized) <= 50:
        raise ValueError('Name must be between 2 and 50 characters.')
    if not all(part.isalpha() for part in normalized.split(' ')):
        raise ValueError('Name can only contain letters and spaces.')
    return normalized


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str

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


class UpdateProfileRequest(BaseModel):
    name: str | None = None
    current_password: str | None = None
    new_password: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return None if value is None else validate_person_name(value)

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str | None) -> str | None:
        return None if value is None else validate_password_strength(value)


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    user: UserResponse


def ensure_user_email_available(db: Session, email: str) -> None:
    if db.query(User).filter(User.email == email).first() is not None:
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE)


def auth_response(user: User) -> AuthResponse:
    token = jwt_handler.create_access_token(subject=str(user.id), role=user.role, email=user.email)
    return AuthResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post('/register', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    ensure_user_email_available(db, data.email)

    user = User(
        name=data.name,
        email=data.email,
        hashed_password=hash_password(data.password),
        role=STUDENT_ROLE,
        last_login=utcnow(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE) from exc
    db.refresh(user)

    logger.info('Student %s registered', user.id)
    return auth_response(user)


@router.post('/login', response_model=AuthResponse, dependencies=[Depends(login_rate_limiter('student-login'))])
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email, User.role == STUDENT_ROLE).first()
    if user is None or not verify_password(data.password, user.hashed_password):
        raise AuthenticationError('Invalid email or password.')
    if not user.is_active:
        raise AuthenticationError('Account is deactivated.')

    user.last_login = utcnow()
    db.commit()
    db.refresh(user)

    return auth_response(user)


@router.post('/logout', response_model=MessageResponse)
def logout():
    return MessageResponse(message='Logged out successfully')


@router.get('/profile', response_model=UserResponse)
def get_profile(principal: Principal = Depends(require_student)):
    return principal.account


@router.put('/profile', response_model=UserResponse)
def update_profile(
    data: UpdateProfileRequest,
    principal: Principal = Depends(require_student),
    db: Session = Depends(get_db),
):
    if data.name is None and data.new_password is None:
        raise ValidationError('No updates provided.')

    user = principal.account
    if data.new_password is not None:
        if not data.current_password or not verify_password(data.current_password, user.hashed_password):
            raise AuthenticationError('Current password is incorrect.')
        user.hashed_password = hash_password(data.new_password)
    if data.name is not None:
        user.name = data.name

    db.commit()
    db.refresh(user)
    return user


@router.get('/verify-token', response_model=UserResponse)
def verify_token(principal: Principal = Depends(require_student)):
    return principal.account
