from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from petcare.utils.timezone import to_utc_aware
from .models import DeviceToken, Reminder
from .schemas import DeviceTokenCreate, ReminderCreate


def tick_window_end(now: datetime) -> datetime:
    """Last millisecond of the minute ``now`` falls in (UTC)."""
    minute_start = to_utc_aware(now).replace(second=0, microsecond=0)
    return minute_start + timedelta(seconds=59, milliseconds=999)


def get_due_reminders(db: Session, now: datetime, limit: int = 1000) -> List[Reminder]:
    stmt = (
        select(Reminder)
        .where(Reminder.is_active.is_(True))
        .where(Reminder.next_trigger_datetime <= tick_window_end(now))
        .order_by(Reminder.next_trigger_datetime.asc(), Reminder.id.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def get_reminder(db: Session, reminder_id: int) -> Optional[Reminder]:
    return db.get(Reminder, reminder_id)


def create_reminder(db: Session, data: ReminderCreate) -> Reminder:
    trigger = to_utc_aware(data.trigger_datetime)
    reminder = Reminder(
        user_id=data.user_id,
        pet_id=data.pet_id,
        title=data.title,
        body=data.body,
        instructions=data.instructions,
        reminder_type=data.reminder_type,
        trigger_datetime=trigger,
        next_trigger_datetime=trigger,
        recurrence_rule=data.recurrence_rule,
        is_active=True,
    )
    db.add(reminder)
    db.commit()
    db.refresh(reminder)
    return reminder


def delete_reminder(db: Session, reminder_id: int, user_id: str) -> bool:
    result = db.execute(
        delete(Reminder)
        .where(Reminder.id == reminder_id)
        .where(Reminder.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0


def list_upcoming_reminders(db: Session, user_id: str, start: datetime, end: datetime) -> List[Reminder]:
    stmt = (
        select(Reminder)
        .where(Reminder.user_id == user_id)
        .where(Reminder.next_trigger_datetime >= to_utc_aware(start))
        .where(Reminder.next_trigger_datetime <= to_utc_aware(end))
        .order_by(Reminder.next_trigger_datetime.asc())
    )
    return list(db.execute(stmt).scalars())


def advance_reminder(db: Session, reminder_id: int, expected_next: datetime, new_next: datetime) -> bool:
    """Move next_trigger_datetime forward only if nobody else did it first."""
    result = db.execute(
        update(Reminder)
        .where(Reminder.id == reminder_id)
        .where(Reminder.is_active.is_(True))
        .where(Reminder.next_trigger_datetime == to_utc_aware(expected_next))
        .values(next_trigger_datetime=to_utc_aware(new_next))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0


def deactivate_reminder(db: Session, reminder_id: int, expected_next: datetime) -> bool:
    """Mark a reminder inactive, keeping its next_trigger_datetime as it was."""
    result = db.execute(
        update(Reminder)
        .where(Reminder.id == reminder_id)
        .where(Reminder.is_active.is_(True))
        .where(Reminder.next_trigger_datetime == to_utc_aware(expected_next))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0


def get_tokens_for_user(db: Session, user_id: str) -> List[str]:
    stmt = (
        select(DeviceToken.fcm_token)
        .where(DeviceToken.user_id == user_id)
        .order_by(DeviceToken.id.asc())
    )
    return list(db.execute(stmt).scalars())


def register_device_token(db: Session, data: DeviceTokenCreate) -> DeviceToken:
    existing = db.execute(
        select(DeviceToken)
        .where(DeviceToken.user_id == data.user_id)
        .where(DeviceToken.fcm_token == data.fcm_token)
    ).scalar_one_or_none()
    if existing:
        if data.platform and existing.platform != data.platform:
            existing.platform = data.platform
            db.commit()
            db.refresh(existing)
        return existing

    token = DeviceToken(user_id=data.user_id, fcm_token=data.fcm_token, platform=data.platform)
    db.add(token)
    try:
        db.commit()
    except IntegrityError:
        # Registered concurrently by another request
        db.rollback()
        return db.execute(
            select(DeviceToken)
            .where(DeviceToken.user_id == data.user_id)
            .where(DeviceToken.fcm_token == data.fcm_token)
        ).scalar_one()
    db.refresh(token)
    return token


def delete_token_for_user(db: Session, user_id: str, fcm_token: str) -> bool:
    result = db.execute(
        delete(DeviceToken)
        .where(DeviceToken.user_id == user_id)
        .where(DeviceToken.fcm_token == fcm_token)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0
