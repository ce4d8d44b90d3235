"""
Dispatch loop: poll the store, resolve due work, send, record sent flags.

Delivery is at-least-once per channel. A crash (or failed flag update)
between a successful send and its flag write re-sends that channel on the
next poll; a failed send leaves the flag false and is retried next poll.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from typing import Callable, List, Mapping, Optional

from laterdate.utils.timezone import to_utc_aware, utcnow
from .exceptions import ReminderStoreError, SchemaMismatch, StoreUpdateError
from .metrics import (
    reminders_dispatch_failed_total,
    reminders_dispatch_success_total,
    reminders_malformed_total,
    reminders_mark_failed_total,
    scheduler_scans_aborted_total,
    scheduler_scans_total,
)
from .repository import ReminderGateway
from .resolver import resolve_due_work
from .schemas import Channel, DispatchReport, SendResult, WorkItem
from .senders import ChannelSender


logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    DISPATCHING = "dispatching"


class _ItemOutcome:
    __slots__ = ("result", "marked", "skipped")

    def __init__(self, result: Optional[SendResult], marked: bool = False, skipped: bool = False):
        self.result = result
        self.marked = marked
        self.skipped = skipped


class DispatchLoop:
    def __init__(
        self,
        repository: ReminderGateway,
        senders: Mapping[Channel, ChannelSender],
        interval_seconds: float = 10,
        max_workers: int = 1,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.senders = dict(senders)
        self.interval_seconds = interval_seconds
        self.max_workers = max(1, max_workers)
        self.clock = clock
        self.state = LoopState.IDLE

    def run_once(self, now: Optional[datetime] = None) -> DispatchReport:
        """One poll cycle. Never raises for store or provider failures."""
        now = to_utc_aware(now or self.clock())
        report = DispatchReport(started_at=now)
        scheduler_scans_total.inc()

        self.state = LoopState.POLLING
        try:
            candidates = self.repository.fetch_due_candidates(now)
        except SchemaMismatch as e:
            logger.error(f"❌ [Dispatch] Reminder schema is out of date, skipping this cycle: {e}")
            return self._abort(report, e)
        except ReminderStoreError as e:
            logger.error(f"❌ [Dispatch] Error fetching reminders, retrying next tick: {e}")
            return self._abort(report, e)

        report.candidates = len(candidates)
        due = resolve_due_work(candidates, now)
        report.malformed = len(self.repository.rejected) + len(due.malformed)
        if due.malformed:
            reminders_malformed_total.inc(len(due.malformed))
        report.work_items = len(due.items)

        if not due.items:
            logger.info(f"🔍 [Dispatch] {now.isoformat()} - {report.candidates} due candidate(s), nothing to send")
            self.state = LoopState.IDLE
            return report

        logger.info(
            f"📬 [Dispatch] {now.isoformat()} - {report.candidates} due candidate(s), "
            f"{report.work_items} channel send(s): "
            + ", ".join(f"{item.reminder.id}/{item.channel.value}" for item in due.items)
        )

        self.state = LoopState.DISPATCHING
        try:
            for outcome in self._dispatch_all(due.items):
                if outcome.skipped:
                    report.skipped += 1
                    continue
                report.results.append(outcome.result)
                if outcome.result.ok:
                    report.sent += 1
                    if not outcome.marked:
                        report.unmarked += 1
                else:
                    report.failed += 1
        finally:
            self.state = LoopState.IDLE

        logger.info(
            f"📊 [Dispatch] Cycle done: sent={report.sent} failed={report.failed} "
            f"skipped={report.skipped} malformed={report.malformed} unmarked={report.unmarked}"
        )
        return report

    def _abort(self, report: DispatchReport, error: Exception) -> DispatchReport:
        scheduler_scans_aborted_total.inc()
        report.aborted = True
        report.error = str(error)
        self.state = LoopState.IDLE
        return report

    def _dispatch_all(self, items: List[WorkItem]) -> List[_ItemOutcome]:
        if self.max_workers == 1 or len(items) == 1:
            return [self._dispatch_item(item) for item in items]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as pool:
            return list(pool.map(self._dispatch_item, items))

    def _dispatch_item(self, item: WorkItem) -> _ItemOutcome:
        """Send one (reminder, channel) and record the flag on success."""
        reminder, channel = item.reminder, item.channel
        sender = self.senders.get(channel)
        if sender is None:
            logger.debug(f"[Dispatch] Channel {channel.value} disabled, leaving reminder {reminder.id} unsent")
            return _ItemOutcome(None, skipped=True)

        try:
            result = sender.send(reminder)
        except Exception as e:
            # Senders report failures; anything raised is a bug in the sender
            logger.exception(f"❌ [Dispatch] Sender for {channel.value} raised on reminder {reminder.id}")
            result = SendResult.failure(reminder.id, channel, f"unexpected error: {e!r}")

        if not result.ok:
            reminders_dispatch_failed_total.labels(channel=channel.value).inc()
            logger.warning(
                f"⚠️  [Dispatch] {channel.value} send failed for reminder {reminder.id}, "
                f"will retry next poll: {result.error}"
            )
            return _ItemOutcome(result)

        reminders_dispatch_success_total.labels(channel=channel.value).inc()
        try:
            matched = self.repository.mark_channel_sent(reminder.id, channel)
        except StoreUpdateError as e:
            reminders_mark_failed_total.labels(channel=channel.value).inc()
            logger.error(f"❌ [Dispatch] {e}; the {channel.value} reminder may be sent again next poll")
            return _ItemOutcome(result, marked=False)
        except Exception:
            reminders_mark_failed_total.labels(channel=channel.value).inc()
            logger.exception(
                f"❌ [Dispatch] Marking {channel.sent_flag} on reminder {reminder.id} raised; "
                f"the {channel.value} reminder may be sent again next poll"
            )
            return _ItemOutcome(result, marked=False)
        if not matched:
            logger.warning(f"⚠️  [Dispatch] Reminder {reminder.id} vanished before {channel.sent_flag} could be set")
        return _ItemOutcome(result, marked=matched)

    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        """Poll immediately, then every ``interval_seconds`` until stopped."""
        stop_event = stop_event or threading.Event()
        logger.info(
            f"🚀 [Dispatch] Starting loop: every {self.interval_seconds}s, channels="
            + ",".join(channel.value for channel in self.senders)
        )
        while not stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("❌ [Dispatch] Unexpected error in poll cycle")
                self.state = LoopState.IDLE
            stop_event.wait(self.interval_seconds)
        logger.info("👋 [Dispatch] Loop stopped")
