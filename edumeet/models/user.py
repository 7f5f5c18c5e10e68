"""User model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from edumeet.database import Base, utcnow

STUDENT_ROLE = 'student'
ADMIN_ROLE = 'admin'


class User(Base):
    """Represents a student or admin account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=STUDENT_ROLE)  # student/admin
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
