import logging

from laterdate.reminders.resolver import resolve_due_work, resolve_work_items
from laterdate.reminders.schemas import Channel

from conftest import make_reminder, utc


NOW = utc(2024, 1, 2)


def keys(items):
    return [(item.reminder.id, item.channel) for item in items]


def test_due_reminder_yields_one_item_per_unsent_channel():
    reminder = make_reminder(id="r1")
    assert keys(resolve_work_items([reminder], NOW)) == [("r1", Channel.SMS), ("r1", Channel.EMAIL)]


def test_completed_and_deleted_reminders_are_never_resolved():
    completed = make_reminder(id="done", completed=True)
    trashed = make_reminder(id="trash", deleted_at=utc(2024, 1, 1, 12))
    assert resolve_work_items([completed, trashed], utc(2030, 1, 1)) == []


def test_due_time_boundary():
    reminder = make_reminder(due_at=utc(2024, 1, 2))
    assert resolve_work_items([reminder], utc(2024, 1, 1, 23, 59, 59)) == []
    assert len(resolve_work_items([reminder], utc(2024, 1, 2))) == 2


def test_sent_channels_stay_excluded_across_polls():
    reminder = make_reminder(sms_sent=True, email_sent=True)
    for _ in range(1000):
        assert resolve_work_items([reminder], NOW) == []


def test_partial_delivery_resolves_only_remaining_channel():
    reminder = make_reminder(id="r1", contact_methods=["sms", "email"], sms_sent=True, email_sent=False)
    assert keys(resolve_work_items([reminder], NOW)) == [("r1", Channel.EMAIL)]


def test_voice_without_phone_is_malformed_on_every_poll(caplog):
    reminder = make_reminder(id="r9", contact_methods=["voice"], contact_phone="  ")
    caplog.set_level(logging.WARNING, logger="laterdate.reminders.resolver")
    for _ in range(3):
        due = resolve_due_work([reminder], NOW)
        assert due.items == []
        assert len(due.malformed) == 1
        assert due.malformed[0].reminder_id == "r9"
        assert due.malformed[0].channel == "voice"
    assert caplog.text.count("r9") == 3


def test_missing_contact_methods_is_malformed():
    due = resolve_due_work([make_reminder(id="r5", contact_methods=None)], NOW)
    assert due.items == []
    assert [m.reason for m in due.malformed] == ["no contact methods"]


def test_sent_channel_without_destination_is_not_malformed():
    reminder = make_reminder(contact_methods=["voice"], contact_phone=None, call_sent=True)
    due = resolve_due_work([reminder], NOW)
    assert due.items == [] and due.malformed == []


def test_unknown_tag_is_reported_but_other_channels_proceed():
    reminder = make_reminder(id="r1", contact_methods=["pigeon", "email"])
    due = resolve_due_work([reminder], NOW)
    assert keys(due.items) == [("r1", Channel.EMAIL)]
    assert "pigeon" in due.malformed[0].reason


def test_order_follows_input_and_duplicates_collapse():
    first = make_reminder(id="b", contact_methods=["voice", "sms", "voice"])
    second = make_reminder(id="a", contact_methods=["EMAIL"])
    assert keys(resolve_work_items([first, second], NOW)) == [
        ("b", Channel.VOICE),
        ("b", Channel.SMS),
        ("a", Channel.EMAIL),
    ]
