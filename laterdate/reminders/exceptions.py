from typing import Optional, Sequence


class DispatchError(Exception):
    """Base class for reminder dispatch errors"""


class ReminderStoreError(DispatchError):
    """The reminder store could not be read or written"""


class StoreQueryError(ReminderStoreError):
    """Fetching due candidates failed; the poll cycle is abandoned"""


class StoreUpdateError(ReminderStoreError):
    """Writing a per-channel sent flag failed"""

    def __init__(self, reminder_id: str, channel: str, detail: str):
        self.reminder_id = reminder_id
        self.channel = channel
        super().__init__(f"Failed to mark {channel} sent for reminder {reminder_id}: {detail}")


class SchemaMismatch(ReminderStoreError):
    """The reminder table lacks columns the dispatcher depends on"""

    def __init__(self, table: str, missing: Sequence[str]):
        self.table = table
        self.missing = list(missing)
        flags = [name for name in self.missing if name.endswith("_sent")]
        hint = ""
        if flags:
            statements = "; ".join(
                f"ALTER TABLE {table} ADD COLUMN {name} boolean NOT NULL DEFAULT false" for name in flags
            )
            hint = f" Run: {statements}"
        super().__init__(f"Table '{table}' is missing required columns: {', '.join(self.missing)}.{hint}")


class SendFailure(DispatchError):
    """A channel send did not go through"""


class ProviderError(SendFailure):
    """The notification provider rejected the request or could not be reached"""

    def __init__(self, provider: str, detail: str, status_code: Optional[int] = None):
        self.provider = provider
        self.detail = detail
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"{provider}{status}: {detail}")


class ProviderTimeout(ProviderError):
    """Connecting to the provider, or waiting for its response, exceeded the send timeout"""


class MalformedReminder(DispatchError):
    """A reminder cannot be dispatched on a channel until it is fixed externally.

    Reported rather than raised: the resolver and the store gateway collect
    these and log them, and the reminder comes back on the next poll.
    """

    def __init__(self, reminder_id: str, reason: str, channel: Optional[str] = None):
        self.reminder_id = reminder_id
        self.reason = reason
        self.channel = channel
        where = f" [{channel}]" if channel else ""
        super().__init__(f"Reminder {reminder_id}{where}: {reason}")
