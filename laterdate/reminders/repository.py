import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy import delete, inspect, select, update
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.orm import Session

from laterdate.utils.timezone import to_utc_aware
from .exceptions import MalformedReminder, SchemaMismatch, StoreQueryError, StoreUpdateError
from .metrics import reminders_malformed_total
from .models import REQUIRED_COLUMNS, UserReminder
from .schemas import Channel, Reminder


logger = logging.getLogger(__name__)


class ReminderGateway(ABC):
    """What the dispatch loop needs from the store.

    ``rejected`` holds the rows the most recent ``fetch_due_candidates``
    dropped because they could not be read as a Reminder. The loop counts
    them as malformed for that cycle.
    """

    def __init__(self):
        self.rejected: List[MalformedReminder] = []

    @abstractmethod
    def fetch_due_candidates(self, now: datetime) -> List[Reminder]:
        ...

    @abstractmethod
    def mark_channel_sent(self, reminder_id: str, channel: Channel) -> bool:
        ...


class ReminderRepository(ReminderGateway):
    """Query/update gateway over ``user_reminders`` used by the dispatch loop."""

    def __init__(self, session_factory: Callable[[], Session]):
        super().__init__()
        self.session_factory = session_factory
        self._schema_verified = False

    def verify_schema(self) -> None:
        """Raise SchemaMismatch if the table or any required column is absent."""
        table = UserReminder.__tablename__
        db = self.session_factory()
        try:
            try:
                columns = {col["name"] for col in inspect(db.get_bind()).get_columns(table)}
            except NoSuchTableError:
                columns = set()
            except SQLAlchemyError as e:
                raise StoreQueryError(f"Could not inspect table '{table}': {e}") from e
        finally:
            db.close()
        if not columns:
            raise SchemaMismatch(table, REQUIRED_COLUMNS)
        missing = [name for name in REQUIRED_COLUMNS if name not in columns]
        if missing:
            raise SchemaMismatch(table, missing)
        self._schema_verified = True

    def fetch_due_candidates(self, now: datetime) -> List[Reminder]:
        """Every incomplete reminder due at or before ``now``.

        Deleted reminders and sent flags are not filtered here; the resolver
        decides what still needs sending.
        """
        if not self._schema_verified:
            self.verify_schema()

        now = to_utc_aware(now)
        stmt = (
            select(UserReminder)
            .where(UserReminder.completed == False)  # noqa: E712
            .where(UserReminder.reminder_date <= now)
            .order_by(UserReminder.reminder_date.asc(), UserReminder.id.asc())
        )
        db = self.session_factory()
        try:
            rows = list(db.execute(stmt).scalars())
        except SQLAlchemyError as e:
            # Schema may have changed under us; inspect again next poll
            self._schema_verified = False
            raise StoreQueryError(f"Failed to fetch due reminders: {e}") from e
        finally:
            db.close()

        reminders: List[Reminder] = []
        self.rejected = []
        for row in rows:
            try:
                reminders.append(Reminder.model_validate(row))
            except ValidationError as e:
                problem = MalformedReminder(str(row.id), f"invalid record ({e.error_count()} errors)")
                logger.warning(f"⚠️  [Store] {problem}")
                reminders_malformed_total.inc()
                self.rejected.append(problem)
        return reminders

    def mark_channel_sent(self, reminder_id: str, channel: Channel) -> bool:
        """Set one channel's sent flag. Returns False when no row matched.

        Only the flag column is written so concurrent updates to other
        channels of the same reminder are never overwritten.
        """
        stmt = (
            update(UserReminder)
            .where(UserReminder.id == reminder_id)
            .values({channel.sent_flag: True})
        )
        db = self.session_factory()
        try:
            result = db.execute(stmt)
            db.commit()
            return result.rowcount > 0
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUpdateError(reminder_id, channel.value, str(e)) from e
        finally:
            db.close()

    def purge_deleted(self, before: datetime) -> int:
        """Hard-delete reminders soft-deleted before ``before``. Returns rows removed."""
        stmt = (
            delete(UserReminder)
            .where(UserReminder.deleted_at.isnot(None))
            .where(UserReminder.deleted_at < to_utc_aware(before))
        )
        db = self.session_factory()
        try:
            result = db.execute(stmt)
            db.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreQueryError(f"Failed to purge deleted reminders: {e}") from e
        finally:
            db.close()

    def get(self, reminder_id: str) -> Optional[Reminder]:
        db = self.session_factory()
        try:
            row = db.get(UserReminder, reminder_id)
            return Reminder.model_validate(row) if row is not None else None
        finally:
            db.close()
