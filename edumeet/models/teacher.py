"""Teacher model definitions."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from edumeet.database import Base, utcnow

DEPARTMENTS = (
    'Computer Science',
    'Mathematics',
    'Physics',
    'Chemistry',
    'Biology',
    'English',
    'History',
    'Economics',
    'Business Administration',
    'Psychology',
)

AVAILABILITY_SLOTS = (
    '9:00 AM - 10:00 AM',
    '10:00 AM - 11:00 AM',
    '11:00 AM - 12:00 PM',
    '12:00 PM - 1:00 PM',
    '2:00 PM - 3:00 PM',
    '3:00 PM - 4:00 PM',
    '4:00 PM - 5:00 PM',
    '5:00 PM - 6:00 PM',
)


class Teacher(Base):
    """Represents a teacher profile and its optional login credential."""
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=False)
    department = Column(String, nullable=False, index=True)
    subject = Column(String, nullable=False)
    experience = Column(String, nullable=False)
    qualification = Column(String, nullable=False)
    bio = Column(String)
    availability = Column(JSON, nullable=False, default=list)

    hashed_password = Column(String)
    has_account = Column(Boolean, nullable=False, default=False)
    # SHA-256 digest of the one-time setup token, never the token itself.
    account_setup_token = Column(String, index=True)
    account_setup_expires = Column(DateTime)
    last_login = Column(DateTime)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
