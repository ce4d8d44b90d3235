"""
Due-set resolution: which (reminder, channel) pairs still need sending.

Pure over its inputs; the only side effect is logging malformed reminders.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List

from .exceptions import MalformedReminder
from .schemas import Channel, Reminder, WorkItem


logger = logging.getLogger(__name__)


@dataclass
class DueWork:
    items: List[WorkItem] = field(default_factory=list)
    malformed: List[MalformedReminder] = field(default_factory=list)


def _channels_for(reminder: Reminder, malformed: List[MalformedReminder]) -> List[Channel]:
    channels: List[Channel] = []
    for tag in reminder.contact_methods or []:
        channel = Channel.parse(tag)
        if channel is None:
            malformed.append(MalformedReminder(reminder.id, f"unknown contact method {tag!r}"))
            continue
        if channel not in channels:
            channels.append(channel)
    return channels


def resolve_due_work(candidates: Iterable[Reminder], now: datetime) -> DueWork:
    """Expand candidates into work items, collecting malformed reminders.

    Work items follow candidate order, then ``contact_methods`` order.
    """
    due = DueWork()
    for reminder in candidates:
        if not reminder.is_candidate(now):
            continue
        if not reminder.contact_methods:
            due.malformed.append(MalformedReminder(reminder.id, "no contact methods"))
            continue
        for channel in _channels_for(reminder, due.malformed):
            if reminder.is_sent(channel):
                continue
            if reminder.destination(channel) is None:
                due.malformed.append(
                    MalformedReminder(reminder.id, f"missing {channel.destination_field}", channel.value)
                )
                continue
            due.items.append(WorkItem(reminder=reminder, channel=channel))

    for problem in due.malformed:
        logger.warning(f"⚠️  [Dispatch] Skipping malformed reminder: {problem}")
    return due


def resolve_work_items(candidates: Iterable[Reminder], now: datetime) -> List[WorkItem]:
    return resolve_due_work(candidates, now).items
