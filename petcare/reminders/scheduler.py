"""
The once-a-minute reminder tick.

Each tick selects the reminders due in the current minute, pushes a
notification to every device of the owner, drops tokens FCM reports as dead
and then rolls each reminder over to its next occurrence (or deactivates it).
Rollover runs whatever happened to the push, so a failed send never leaves a
reminder firing every minute.
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from petcare.utils.timezone import to_utc_aware, utc_now
from .config import ReminderSettings
from .dispatcher import DeliveryOutcome, PushGateway, PushMessage, PushUnavailableError
from .metrics import (
    reminder_rollovers_total,
    reminders_dispatch_failed_total,
    reminders_dispatch_success_total,
    reminders_notified_total,
    scheduler_ticks_total,
)
from .models import Reminder
from .recurrence import RecurrenceParseError, is_no_recurrence, parse_recurrence
from .repository import advance_reminder, deactivate_reminder, get_due_reminders, get_tokens_for_user
from .token_hygiene import remove_invalid_tokens

logger = logging.getLogger(__name__)


class RolloverOutcome(str, Enum):
    ADVANCED = "advanced"        # next_trigger_datetime moved to the next occurrence
    DEACTIVATED = "deactivated"  # one-shot or exhausted; is_active is now false
    DEFERRED = "deferred"        # rule did not parse; row untouched, due again next tick
    SUPERSEDED = "superseded"    # another tick already rolled it over, or it is gone


@dataclass
class ReminderResult:
    reminder_id: int
    outcome: RolloverOutcome
    notified: bool = False
    tokens_removed: List[str] = field(default_factory=list)


@dataclass
class TickReport:
    now: datetime
    selected: int = 0
    notified: int = 0
    tokens_removed: int = 0
    failed: int = 0
    outcomes: Counter = field(default_factory=Counter)

    def add(self, result: ReminderResult) -> None:
        self.outcomes[result.outcome] += 1
        self.tokens_removed += len(result.tokens_removed)
        if result.notified:
            self.notified += 1


def _as_data_value(value) -> str:
    return "" if value is None else str(value)


class ReminderScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        push_gateway: PushGateway,
        settings: ReminderSettings,
    ):
        self.session_factory = session_factory
        self.push_gateway = push_gateway
        self.settings = settings

    def run_tick(self, now: Optional[datetime] = None) -> TickReport:
        now = to_utc_aware(now) if now is not None else utc_now()
        report = TickReport(now=now)
        scheduler_ticks_total.inc()

        with self.session_factory() as db:
            due = get_due_reminders(db, now, limit=self.settings.SCHEDULER_BATCH_SIZE)
        report.selected = len(due)

        if not due:
            logger.info("[Reminders] No reminders to process")
            return report

        logger.info(f"[Reminders] Tick at {now.isoformat()} | due={len(due)}")
        for reminder in due:
            try:
                result = self.process_reminder(reminder)
            except Exception:
                report.failed += 1
                logger.exception(f"[Reminders] Failed to process reminder {reminder.id}")
                continue
            report.add(result)

        outcomes = {k.value: v for k, v in report.outcomes.items()}
        logger.info(
            f"[Reminders] Tick done | selected={report.selected} notified={report.notified} "
            f"tokens_removed={report.tokens_removed} failed={report.failed} outcomes={outcomes}"
        )
        return report

    def process_reminder(self, reminder: Reminder) -> ReminderResult:
        """Notify the owner of one due reminder, then roll it over."""
        fired_at = to_utc_aware(reminder.next_trigger_datetime)
        notified = False
        removed: List[str] = []

        with self.session_factory() as db:
            tokens = self._load_tokens(db, reminder)
            if tokens:
                notified = True
                reminders_notified_total.inc()
                outcomes = self._send(reminder, tokens)
                if any(not o.success for o in outcomes):
                    removed = remove_invalid_tokens(db, reminder.user_id, outcomes, tokens)
            else:
                logger.info(f"[Reminders] No FCM tokens found for user {reminder.user_id}")

            outcome = self.rollover(db, reminder.id, fired_at)

        return ReminderResult(
            reminder_id=reminder.id,
            outcome=outcome,
            notified=notified,
            tokens_removed=removed,
        )

    def _load_tokens(self, db: Session, reminder: Reminder) -> List[str]:
        try:
            return get_tokens_for_user(db, reminder.user_id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"[Reminders] Could not load FCM tokens for user {reminder.user_id}")
            return []

    def build_message(self, reminder: Reminder, tokens: List[str]) -> PushMessage:
        return PushMessage(
            title=reminder.title,
            body=reminder.body or self.settings.DEFAULT_NOTIFICATION_BODY,
            tokens=list(tokens),
            data={
                "reminder_id": _as_data_value(reminder.id),
                "pet_id": _as_data_value(reminder.pet_id),
                "reminder_type": _as_data_value(reminder.reminder_type),
                "instructions": _as_data_value(reminder.instructions),
            },
        )

    def _send(self, reminder: Reminder, tokens: List[str]) -> List[DeliveryOutcome]:
        try:
            outcomes = self.push_gateway.send_multicast(self.build_message(reminder, tokens))
        except PushUnavailableError as e:
            reminders_dispatch_failed_total.inc()
            logger.error(f"[FCM] Push for reminder {reminder.id} not sent: {e}")
            return []
        except Exception:
            reminders_dispatch_failed_total.inc()
            logger.exception(f"[FCM] Unexpected error sending reminder {reminder.id}")
            return []

        succeeded = sum(1 for o in outcomes if o.success)
        reminders_dispatch_success_total.inc(succeeded)
        reminders_dispatch_failed_total.inc(len(outcomes) - succeeded)
        return outcomes

    def rollover(self, db: Session, reminder_id: int, fired_at: Optional[datetime] = None) -> RolloverOutcome:
        """Advance or deactivate a reminder after it fired.

        The row is always re-read; its current next_trigger_datetime is the
        anchor for the next occurrence. When ``fired_at`` is given and the row
        no longer matches it, another tick already did the work.
        """
        reminder = db.get(Reminder, reminder_id, populate_existing=True)
        if reminder is None or not reminder.is_active:
            return self._record(reminder_id, RolloverOutcome.SUPERSEDED)

        current_next = to_utc_aware(reminder.next_trigger_datetime)
        if fired_at is not None and current_next != to_utc_aware(fired_at):
            return self._record(reminder_id, RolloverOutcome.SUPERSEDED)

        if is_no_recurrence(reminder.recurrence_rule):
            written = deactivate_reminder(db, reminder_id, current_next)
            return self._record(reminder_id, RolloverOutcome.DEACTIVATED if written else RolloverOutcome.SUPERSEDED)

        try:
            spec = parse_recurrence(reminder.recurrence_rule, to_utc_aware(reminder.trigger_datetime))
            next_occurrence = spec.next_after(current_next)
        except RecurrenceParseError as e:
            logger.error(
                f"[Reminders] Could not parse recurrence for reminder {reminder_id} "
                f"({reminder.recurrence_rule!r}): {e}"
            )
            return self._record(reminder_id, RolloverOutcome.DEFERRED)

        if next_occurrence is None:
            written = deactivate_reminder(db, reminder_id, current_next)
            return self._record(reminder_id, RolloverOutcome.DEACTIVATED if written else RolloverOutcome.SUPERSEDED)

        written = advance_reminder(db, reminder_id, current_next, next_occurrence)
        if written:
            logger.debug(f"[Reminders] Reminder {reminder_id} next at {next_occurrence.isoformat()}")
        return self._record(reminder_id, RolloverOutcome.ADVANCED if written else RolloverOutcome.SUPERSEDED)

    def _record(self, reminder_id: int, outcome: RolloverOutcome) -> RolloverOutcome:
        reminder_rollovers_total.labels(outcome=outcome.value).inc()
        if outcome is RolloverOutcome.SUPERSEDED:
            logger.info(f"[Reminders] Reminder {reminder_id} already rolled over elsewhere; skipping")
        return outcome
