"""
Typed records for the dispatch core
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from laterdate.utils.timezone import to_utc_aware


class Channel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    VOICE = "voice"

    @property
    def sent_flag(self) -> str:
        """Name of the per-channel delivery flag column"""
        return _SENT_FLAGS[self]

    @property
    def destination_field(self) -> str:
        return _DESTINATION_FIELDS[self]

    @classmethod
    def parse(cls, tag) -> Optional["Channel"]:
        """Map a stored contact-method tag to a Channel, or None if unknown."""
        if isinstance(tag, Channel):
            return tag
        if not isinstance(tag, str):
            return None
        try:
            return cls(tag.strip().lower())
        except ValueError:
            return None


_SENT_FLAGS = {
    Channel.EMAIL: "email_sent",
    Channel.SMS: "sms_sent",
    Channel.VOICE: "call_sent",
}

_DESTINATION_FIELDS = {
    Channel.EMAIL: "contact_email",
    Channel.SMS: "contact_phone",
    Channel.VOICE: "contact_phone",
}


class Reminder(BaseModel):
    """A row of ``user_reminders`` as the dispatcher sees it"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner: Optional[str] = Field(default=None, validation_alias=AliasChoices("owner", "user_id"))
    title: Optional[str] = None
    message: Optional[str] = None
    category: Optional[str] = None
    due_at: datetime = Field(validation_alias=AliasChoices("due_at", "reminder_date"))
    contact_methods: Optional[List[str]] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    completed: bool = False
    deleted_at: Optional[datetime] = None
    sms_sent: bool = False
    email_sent: bool = False
    call_sent: bool = False

    @field_validator("id", "owner", mode="before")
    @classmethod
    def coerce_identifier(cls, value):
        # Postgres hands back uuid.UUID for uuid columns
        return None if value is None else str(value)

    @field_validator("completed", "sms_sent", "email_sent", "call_sent", mode="before")
    @classmethod
    def null_is_false(cls, value):
        return False if value is None else value

    @field_validator("contact_methods", mode="before")
    @classmethod
    def coerce_methods(cls, value):
        if isinstance(value, (tuple, set)):
            return list(value)
        return value

    @field_validator("due_at", "deleted_at")
    @classmethod
    def normalize_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc_aware(value)

    def is_sent(self, channel: Channel) -> bool:
        return bool(getattr(self, channel.sent_flag))

    def destination(self, channel: Channel) -> Optional[str]:
        """Destination address for a channel, or None when empty."""
        value = getattr(self, channel.destination_field)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def is_candidate(self, now: datetime) -> bool:
        """Not completed, not in the trash, and due."""
        return not self.completed and self.deleted_at is None and self.due_at <= to_utc_aware(now)


@dataclass(frozen=True)
class WorkItem:
    reminder: Reminder
    channel: Channel


@dataclass(frozen=True)
class SendResult:
    reminder_id: str
    channel: Channel
    ok: bool
    provider_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, reminder_id: str, channel: Channel, provider_id: Optional[str]) -> "SendResult":
        return cls(reminder_id=reminder_id, channel=channel, ok=True, provider_id=provider_id)

    @classmethod
    def failure(cls, reminder_id: str, channel: Channel, error: str) -> "SendResult":
        return cls(reminder_id=reminder_id, channel=channel, ok=False, error=error)


@dataclass
class DispatchReport:
    """Outcome of one poll cycle"""

    started_at: datetime
    candidates: int = 0
    work_items: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    malformed: int = 0
    unmarked: int = 0  # sent but the flag update failed
    aborted: bool = False
    error: Optional[str] = None
    results: List[SendResult] = field(default_factory=list)
