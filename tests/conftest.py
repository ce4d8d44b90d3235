from datetime import datetime, timezone

import pytest

from laterdate.db.base import Base
from laterdate.db.session import create_session_factory
from laterdate.reminders.models import UserReminder
from laterdate.reminders.repository import ReminderRepository
from laterdate.reminders.schemas import Reminder


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def store():
    engine, session_factory = create_session_factory("sqlite://")
    Base.metadata.create_all(engine)
    yield session_factory
    engine.dispose()


@pytest.fixture
def repository(store):
    return ReminderRepository(store)


@pytest.fixture
def add_reminder(store):
    """Insert a user_reminders row; returns its id."""
    counter = {"n": 0}

    def _add(**fields):
        counter["n"] += 1
        values = {
            "id": f"r{counter['n']}",
            "user_id": "user_1",
            "title": "Pay rent",
            "message": "Transfer to landlord",
            "category": "finance",
            "reminder_date": utc(2024, 1, 1),
            "contact_methods": ["email"],
            "contact_email": "a@b.com",
            "contact_phone": "+15550001111",
            "completed": False,
            "sms_sent": False,
            "email_sent": False,
            "call_sent": False,
        }
        values.update(fields)
        db = store()
        try:
            db.add(UserReminder(**values))
            db.commit()
        finally:
            db.close()
        return values["id"]

    return _add


def make_reminder(**fields) -> Reminder:
    values = {
        "id": "r1",
        "owner": "user_1",
        "title": "Pay rent",
        "message": "Transfer to landlord",
        "category": "finance",
        "due_at": utc(2024, 1, 1),
        "contact_methods": ["sms", "email"],
        "contact_phone": "+15550001111",
        "contact_email": "a@b.com",
    }
    values.update(fields)
    return Reminder(**values)
