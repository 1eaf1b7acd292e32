from datetime import datetime, timezone
from typing import Dict, List, Optional

from petcare.reminders.dispatcher import DeliveryOutcome, PushMessage
from petcare.reminders.models import Reminder
from petcare.utils.timezone import to_utc_aware


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def reload(db, reminder_id) -> Reminder:
    """Re-read a reminder, ignoring whatever the session has cached."""
    return db.get(Reminder, reminder_id, populate_existing=True)


def next_trigger_of(db, reminder_id) -> datetime:
    return to_utc_aware(reload(db, reminder_id).next_trigger_datetime)


class FakePushGateway:
    """Records every multicast and answers with canned per-token outcomes."""

    def __init__(self, outcomes: Optional[Dict[str, DeliveryOutcome]] = None, error: Optional[Exception] = None):
        self.outcomes = outcomes or {}
        self.error = error
        self.sent: List[PushMessage] = []

    def send_multicast(self, message: PushMessage) -> List[DeliveryOutcome]:
        self.sent.append(message)
        if self.error is not None:
            raise self.error
        return [self.outcomes.get(token, DeliveryOutcome.ok(f"msg-{token}")) for token in message.tokens]
