"""
Channel senders: build the per-channel content for a reminder and hand it to
the provider. Senders never raise for provider problems; they report them in
the returned SendResult so the loop can carry on with other work items.
"""
import html
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable
from xml.sax.saxutils import escape as xml_escape

from .exceptions import SendFailure
from .providers import ResendClient, TwilioClient
from .schemas import Channel, Reminder, SendResult


logger = logging.getLogger(__name__)


def format_due_time(reminder: Reminder) -> str:
    return reminder.due_at.strftime("%B %d, %Y %I:%M %p UTC")


def build_email_subject(reminder: Reminder) -> str:
    return f"Reminder: {reminder.title or 'No Title'}"


def build_email_html(reminder: Reminder) -> str:
    """Create HTML email content"""
    title = html.escape(reminder.title or "No Title")
    message = html.escape(reminder.message or "").replace("\n", "<br>")
    category = html.escape(reminder.category or "")
    due = html.escape(format_due_time(reminder))
    return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <title>{title}</title>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background-color: #4f46e5; color: white; padding: 20px; text-align: center; }}
                .content {{ padding: 30px; background-color: #f9f9f9; }}
                .meta {{ font-size: 14px; color: #666; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header"><h1>{title}</h1></div>
                <div class="content">
                    <p>{message}</p>
                    <p class="meta">Category: {category}</p>
                    <p class="meta">Due: {due}</p>
                </div>
            </div>
        </body>
        </html>
        """


def build_sms_body(reminder: Reminder) -> str:
    return (
        f"Reminder title: {reminder.title or 'No Title'}\n"
        f"Message: {reminder.message or ''}\n"
        f"Category: {reminder.category or ''}\n"
        "Frequency: Once\n"
        'Reply with "Done" to mark as complete'
    )


def build_call_twiml(reminder: Reminder) -> str:
    title = xml_escape(reminder.title or "No Title")
    message = xml_escape(reminder.message or "No message")
    category = xml_escape(reminder.category or "No category")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<Response>\n"
        f'  <Say voice="Polly.Amy">Your reminder named {title} with message of: {message} '
        f"under the category {category} was triggered. Bye.</Say>\n"
        "  <Hangup/>\n"
        "</Response>"
    )


class ChannelSender(ABC):
    channel: Channel
    tag = "Send"

    def send(self, reminder: Reminder) -> SendResult:
        destination = reminder.destination(self.channel)
        if destination is None:
            return SendResult.failure(reminder.id, self.channel, f"missing {self.channel.destination_field}")
        try:
            provider_id = self._deliver(reminder, destination)
        except SendFailure as e:
            logger.error(f"❌ [{self.tag}] Failed to send for reminder {reminder.id}: {e}")
            return SendResult.failure(reminder.id, self.channel, str(e))
        logger.info(f"✅ [{self.tag}] Sent for reminder {reminder.id} to {destination}. Provider id: {provider_id}")
        return SendResult.success(reminder.id, self.channel, provider_id)

    @abstractmethod
    def _deliver(self, reminder: Reminder, destination: str) -> str:
        """Call the provider; return its message/call id or raise SendFailure."""


class EmailSender(ChannelSender):
    channel = Channel.EMAIL
    tag = "Email"

    def __init__(self, client: ResendClient, sender: str):
        self.client = client
        self.sender = sender

    def _deliver(self, reminder: Reminder, destination: str) -> str:
        return self.client.send(self.sender, destination, build_email_subject(reminder), build_email_html(reminder))


class SmsSender(ChannelSender):
    channel = Channel.SMS
    tag = "SMS"

    def __init__(self, client: TwilioClient, from_number: str):
        self.client = client
        self.from_number = from_number

    def _deliver(self, reminder: Reminder, destination: str) -> str:
        return self.client.send_sms(self.from_number, destination, build_sms_body(reminder))


class VoiceSender(ChannelSender):
    channel = Channel.VOICE
    tag = "Call"

    def __init__(self, client: TwilioClient, from_number: str):
        self.client = client
        self.from_number = from_number

    def _deliver(self, reminder: Reminder, destination: str) -> str:
        return self.client.send_call(self.from_number, destination, build_call_twiml(reminder))


def senders_by_channel(senders: Iterable[ChannelSender]) -> Dict[Channel, ChannelSender]:
    return {sender.channel: sender for sender in senders}
