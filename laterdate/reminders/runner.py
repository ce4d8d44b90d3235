#!/usr/bin/env python3
"""
Dispatcher process entry point.

    laterdate-dispatch run [--once] [--interval N] [--channel email ...]
    laterdate-dispatch purge-trash [--days N]

Configuration comes from REMINDER_* environment variables (or a .env file).
"""
import argparse
import logging
import signal
import sys
import threading
from contextlib import ExitStack
from datetime import timedelta
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv
from prometheus_client import start_http_server
from pydantic import ValidationError

from laterdate.core.config import SUPPORTED_CHANNELS, DispatchSettings, load_settings
from laterdate.core.logging_config import configure_logging
from laterdate.db.session import create_session_factory
from laterdate.utils.timezone import parse_timestamp, utcnow
from .dispatcher import DispatchLoop
from .exceptions import ReminderStoreError
from .providers import ResendClient, TwilioClient
from .repository import ReminderRepository
from .senders import ChannelSender, EmailSender, SmsSender, VoiceSender, senders_by_channel


logger = logging.getLogger(__name__)


def build_senders(settings: DispatchSettings, stack: ExitStack) -> List[ChannelSender]:
    """Create provider clients for the enabled channels; the stack closes them."""
    enabled = settings.enabled_channels
    senders: List[ChannelSender] = []
    if "email" in enabled:
        resend = stack.enter_context(ResendClient(settings.RESEND_API_KEY, timeout=settings.SEND_TIMEOUT_SECONDS))
        senders.append(EmailSender(resend, settings.EMAIL_FROM))
    if "sms" in enabled or "voice" in enabled:
        twilio = stack.enter_context(
            TwilioClient(
                settings.TWILIO_ACCOUNT_SID,
                settings.TWILIO_AUTH_TOKEN,
                timeout=settings.SEND_TIMEOUT_SECONDS,
            )
        )
        if "sms" in enabled:
            senders.append(SmsSender(twilio, settings.TWILIO_PHONE_NUMBER))
        if "voice" in enabled:
            senders.append(VoiceSender(twilio, settings.TWILIO_PHONE_NUMBER))
    return senders


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _handle(signum, _frame):
        logger.info(f"🛑 [Dispatch] Received signal {signum}, stopping after the current cycle")
        stop_event.set()

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)


def run(settings: DispatchSettings, once: bool = False, now=None) -> int:
    engine, session_factory = create_session_factory(settings.DATABASE_URL)
    try:
        with ExitStack() as stack:
            loop = DispatchLoop(
                ReminderRepository(session_factory),
                senders_by_channel(build_senders(settings, stack)),
                interval_seconds=settings.POLL_INTERVAL_SECONDS,
                max_workers=settings.DISPATCH_CONCURRENCY,
            )
            if once:
                report = loop.run_once(now)
                return 1 if report.aborted else 0

            if settings.METRICS_ENABLED:
                start_http_server(settings.METRICS_PORT)
                logger.info(f"📈 [Dispatch] Metrics on :{settings.METRICS_PORT}/metrics")
            stop_event = threading.Event()
            _install_signal_handlers(stop_event)
            loop.run_forever(stop_event)
            return 0
    finally:
        engine.dispose()


def purge_trash(settings: DispatchSettings, days: Optional[int] = None) -> int:
    """Permanently delete reminders that sat in the trash longer than the retention window."""
    retention = days if days is not None else settings.TRASH_RETENTION_DAYS
    if retention < 1:
        raise ValueError(f"Trash retention must be at least 1 day, got {retention}")
    cutoff = utcnow() - timedelta(days=retention)
    engine, session_factory = create_session_factory(settings.DATABASE_URL)
    try:
        removed = ReminderRepository(session_factory).purge_deleted(cutoff)
    except ReminderStoreError as e:
        logger.error(f"❌ [Store] Trash purge failed: {e}")
        return 1
    finally:
        engine.dispose()
    logger.info(f"🗑️  [Store] Purged {removed} reminder(s) deleted before {cutoff.isoformat()}")
    return 0


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="laterdate-dispatch", description="LaterDate reminder dispatcher")
    sub = parser.add_subparsers(dest="command")

    run_parser = sub.add_parser("run", help="Poll for due reminders and send them")
    run_parser.add_argument("--once", action="store_true", help="Run a single poll cycle and exit")
    run_parser.add_argument("--interval", type=_positive_int, help="Seconds between polls (overrides REMINDER_POLL_INTERVAL_SECONDS)")
    run_parser.add_argument(
        "--channel",
        action="append",
        choices=SUPPORTED_CHANNELS,
        help="Only dispatch this channel (repeatable; overrides REMINDER_ENABLED_CHANNELS)",
    )
    run_parser.add_argument("--now", type=parse_timestamp, help="Evaluate due reminders as of this ISO timestamp (with --once)")

    purge_parser = sub.add_parser("purge-trash", help="Permanently delete reminders trashed past retention")
    purge_parser.add_argument("--days", type=_positive_int, help="Retention in days (overrides REMINDER_TRASH_RETENTION_DAYS)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(find_dotenv(usecwd=True))
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "run"
    if command == "run" and getattr(args, "now", None) is not None and not args.once:
        parser.error("--now only applies to a single cycle; add --once")

    overrides = {}
    if command == "run":
        if getattr(args, "interval", None) is not None:
            overrides["POLL_INTERVAL_SECONDS"] = args.interval
        if getattr(args, "channel", None):
            overrides["ENABLED_CHANNELS"] = ",".join(args.channel)
    else:
        # The sweep never talks to providers
        overrides["ENABLED_CHANNELS"] = ""

    try:
        settings = load_settings(**overrides)
    except ValidationError as e:
        configure_logging()
        logger.error(f"❌ Invalid configuration: {e}")
        return 2
    configure_logging(settings.LOG_LEVEL)

    if command == "purge-trash":
        return purge_trash(settings, args.days)
    return run(settings, once=getattr(args, "once", False), now=getattr(args, "now", None))


if __name__ == "__main__":
    sys.exit(main())
