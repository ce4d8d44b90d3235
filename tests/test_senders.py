from unittest.mock import MagicMock

from laterdate.reminders.exceptions import ProviderError, ProviderTimeout
from laterdate.reminders.schemas import Channel
from laterdate.reminders.senders import (
    EmailSender,
    SmsSender,
    VoiceSender,
    build_call_twiml,
    build_email_html,
    build_email_subject,
    build_sms_body,
    senders_by_channel,
)

from conftest import make_reminder, utc


def test_sms_body_format():
    reminder = make_reminder(title="Dentist", message="Bring card", category="health")
    assert build_sms_body(reminder) == (
        "Reminder title: Dentist\n"
        "Message: Bring card\n"
        "Category: health\n"
        "Frequency: Once\n"
        'Reply with "Done" to mark as complete'
    )


def test_sms_body_defaults():
    body = build_sms_body(make_reminder(title=None, message=None, category=None))
    assert body.startswith("Reminder title: No Title\nMessage: \nCategory: \n")


def test_call_twiml_escapes_and_defaults():
    twiml = build_call_twiml(make_reminder(title="Tom & Jerry <3", message=None, category=None))
    assert '<Say voice="Polly.Amy">' in twiml
    assert "Your reminder named Tom &amp; Jerry &lt;3 with message of: No message" in twiml
    assert "under the category No category was triggered. Bye." in twiml
    assert twiml.rstrip().endswith("</Response>")


def test_email_content():
    reminder = make_reminder(title="<b>Rent</b>", message="line1\nline2", due_at=utc(2024, 1, 1, 9, 5))
    assert build_email_subject(reminder) == "Reminder: <b>Rent</b>"
    body = build_email_html(reminder)
    assert "&lt;b&gt;Rent&lt;/b&gt;" in body
    assert "line1<br>line2" in body
    assert "Category: finance" in body
    assert "January 01, 2024 09:05 AM UTC" in body


def test_email_sender_success():
    client = MagicMock()
    client.send.return_value = "email_123"
    result = EmailSender(client, "LaterDate <onboarding@resend.dev>").send(make_reminder(id="r1"))

    assert result.ok and result.provider_id == "email_123"
    assert result.channel == Channel.EMAIL and result.reminder_id == "r1"
    sender, to, subject, _html = client.send.call_args.args
    assert (sender, to, subject) == ("LaterDate <onboarding@resend.dev>", "a@b.com", "Reminder: Pay rent")


def test_sms_sender_reports_provider_error():
    client = MagicMock()
    client.send_sms.side_effect = ProviderError("twilio", "Invalid 'To' Phone Number", status_code=400)
    result = SmsSender(client, "+15559990000").send(make_reminder())

    assert not result.ok
    assert "Invalid 'To' Phone Number" in result.error
    client.send_sms.assert_called_once()
    assert client.send_sms.call_args.args[:2] == ("+15559990000", "+15550001111")


def test_voice_sender_reports_timeout():
    client = MagicMock()
    client.send_call.side_effect = ProviderTimeout("twilio", "no response within 10s")
    result = VoiceSender(client, "+15559990000").send(make_reminder(contact_methods=["voice"]))
    assert not result.ok
    assert "no response" in result.error


def test_voice_sender_success_returns_call_sid():
    client = MagicMock()
    client.send_call.return_value = "CA123"
    result = VoiceSender(client, "+15559990000").send(make_reminder(contact_methods=["voice"]))
    assert result.ok and result.provider_id == "CA123"
    assert client.send_call.call_args.args[2].startswith('<?xml version="1.0"')


def test_missing_destination_fails_without_provider_call():
    client = MagicMock()
    result = EmailSender(client, "from@x.com").send(make_reminder(contact_email=""))
    assert not result.ok
    client.send.assert_not_called()


def test_senders_by_channel():
    client = MagicMock()
    mapping = senders_by_channel([SmsSender(client, "+1"), VoiceSender(client, "+1")])
    assert set(mapping) == {Channel.SMS, Channel.VOICE}
