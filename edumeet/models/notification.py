"""Notification model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from edumeet.database import Base, utcnow


class Notification(Base):
    """A message for a student or teacher about one of their appointments."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    recipient_role = Column(String, nullable=False)  # student/teacher
    # Teachers are addressed by id; students by email since requests can be anonymous.
    recipient_id = Column(Integer, index=True)
    recipient_email = Column(String, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"))
    type = Column(String, nullable=False)
    message = Column(String, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
