"""Appointment model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, text

from edumeet.database import Base, utcnow

PENDING = 'pending'
CONFIRMED = 'confirmed'
REJECTED = 'rejected'
CANCELLED = 'cancelled'
COMPLETED = 'completed'

STATUSES = (PENDING, CONFIRMED, REJECTED, CANCELLED, COMPLETED)
ACTIVE_STATUSES = (PENDING, CONFIRMED)

CREATED_BY_STUDENT = 'student'
CREATED_BY_TEACHER = 'teacher'

_ACTIVE_SLOT_CONDITION = text("status IN ('pending', 'confirmed')")


class Appointment(Base):
    """Represents a student-teacher session and its lifecycle status."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_teacher_slot', 'teacher_id', 'date', 'time'),
        # At most one pending or confirmed appointment per teacher slot.
        Index(
            'uq_appointments_active_slot',
            'teacher_id',
            'date',
            'time',
            unique=True,
            sqlite_where=_ACTIVE_SLOT_CONDITION,
            postgresql_where=_ACTIVE_SLOT_CONDITION,
        ),
    )

    id = Column(Integer, primary_key=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False, index=True)
    teacher_name = Column(String, nullable=False)

    student_id = Column(Integer, ForeignKey("users.id"))
    student_name = Column(String, nullable=False)
    student_email = Column(String, nullable=False, index=True)
    student_phone = Column(String)
    student_subject = Column(String)
    student_message = Column(String)

    date = Column(Date, nullable=False)
    day = Column(String, nullable=False)
    time = Column(String, nullable=False)

    status = Column(String, nullable=False, default=PENDING, index=True)
    created_by = Column(String, nullable=False, default=CREATED_BY_STUDENT)
    response_message = Column(String)
    responded_at = Column(DateTime)
    notes = Column(String)
    cancelled_by = Column(String)
    cancellation_reason = Column(String)
    cancelled_at = Column(DateTime)
    completed_at = Column(DateTime)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
