from dataclasses import dataclass

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from edumeet.auth import jwt_handler
from edumeet.core.errors import AuthenticationError, ForbiddenError
from edumeet.database import get_db
from edumeet.models.teacher import Teacher
from edumeet.models.user import ADMIN_ROLE, STUDENT_ROLE, User

TEACHER_ROLE = 'teacher'

security = HTTPBearer(auto_error=False)


@dataclass
class Principal:
    """The authenticated account behind a request."""
    role: str
    account: User | Teacher

    @property
    def id(self) -> int:
        return self.account.id

    @property
    def email(self) -> str:
        return self.account.email

    @property
    def name(self) -> str:
        return self.account.name

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def is_teacher(self) -> bool:
        return self.role == TEACHER_ROLE

    @property
    def is_student(self) -> bool:
        return self.role == STUDENT_ROLE


def resolve_principal(token: str, db: Session) -> Principal:
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token") from exc

    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or not str(subject).isdigit() or role not in (STUDENT_ROLE, TEACHER_ROLE, ADMIN_ROLE):
        raise AuthenticationError("Invalid token subject")

    if role == TEACHER_ROLE:
        account = db.get(Teacher, int(subject))
        if account is not None and not account.has_account:
            account = None
    else:
        account = db.get(User, int(subject))
        if account is not None and account.role != role:
            account = None

    if account is None:
        raise AuthenticationError("Account not found")
    if not account.is_active:
        raise AuthenticationError("Account is deactivated")
    return Principal(role=role, account=account)


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Principal:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError()
    return resolve_principal(credentials.credentials, db)


def get_optional_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Principal | None:
    if credentials is None:
        return None
    return resolve_principal(credentials.credentials, db)


def require_roles(*roles: str):
    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise ForbiddenError(f"This action requires one of the roles: {', '.join(roles)}")
        return principal

    return dependency


require_student = require_roles(STUDENT_ROLE)
require_teacher = require_roles(TEACHER_ROLE)
require_admin = require_roles(ADMIN_ROLE)
require_teacher_or_admin = require_roles(TEACHER_ROLE, ADMIN_ROLE)
