"""
SQLAlchemy mapping of the dashboard's ``user_reminders`` table.

Only the columns the dispatcher reads or writes are mapped; dashboard-only
columns (persistence, repeat settings, ...) are left untouched.
"""
from sqlalchemy import Boolean, Column, DateTime, Index, JSON, String
from sqlalchemy.dialects.postgresql import ARRAY, UUID

from laterdate.db.base import Base


# text[] in Postgres, JSON elsewhere (SQLite in tests)
ContactMethods = JSON().with_variant(ARRAY(String), "postgresql")
ReminderId = String(36).with_variant(UUID(as_uuid=False), "postgresql")


class UserReminder(Base):
    __tablename__ = "user_reminders"

    id = Column(ReminderId, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=True)
    message = Column(String, nullable=True)
    category = Column(String, nullable=True)
    reminder_date = Column(DateTime(timezone=True), nullable=False)
    contact_methods = Column(ContactMethods, nullable=True)
    contact_email = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Per-channel delivery flags
    sms_sent = Column(Boolean, nullable=False, default=False)
    email_sent = Column(Boolean, nullable=False, default=False)
    call_sent = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_user_reminders_completed_date", "completed", "reminder_date"),
    )


# Columns fetch_due_candidates depends on; checked before the first query
REQUIRED_COLUMNS = (
    "id",
    "user_id",
    "completed",
    "reminder_date",
    "deleted_at",
    "contact_methods",
    "contact_email",
    "contact_phone",
    "sms_sent",
    "email_sent",
    "call_sent",
    "title",
    "message",
    "category",
)
