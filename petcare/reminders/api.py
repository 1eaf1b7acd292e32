from datetime import timedelta
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from petcare.api.deps import get_db, verify_api_key_dependency
from petcare.utils.timezone import utc_now
from .config import ReminderSettings
from .recurrence import RecurrenceParseError, validate_rule
from .repository import (
    create_reminder,
    delete_reminder,
    delete_token_for_user,
    get_reminder,
    list_upcoming_reminders,
    register_device_token,
)
from .schemas import (
    DeviceTokenCreate,
    DeviceTokenDelete,
    DeviceTokenRead,
    ReminderCreate,
    ReminderRead,
    UpcomingReminders,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_api_key_dependency)])


def get_reminder_settings(request: Request) -> ReminderSettings:
    return request.app.state.reminder_settings


@router.get("/health")
def health_check():
    return {"status": "healthy", "service": "reminders"}


@router.post("/", response_model=ReminderRead, status_code=201)
def create_reminder_endpoint(payload: ReminderCreate, db: Session = Depends(get_db)):
    try:
        validate_rule(payload.recurrence_rule, payload.trigger_datetime)
    except RecurrenceParseError as e:
        raise HTTPException(status_code=400, detail=f"Invalid recurrence_rule: {e}")

    reminder = create_reminder(db, payload)
    logger.info(f"[Reminders] Created reminder {reminder.id} for user {reminder.user_id}")
    return ReminderRead.model_validate(reminder)


@router.get("/upcoming", response_model=UpcomingReminders)
def list_upcoming_endpoint(
    user_id: str,
    db: Session = Depends(get_db),
    settings: ReminderSettings = Depends(get_reminder_settings),
):
    now = utc_now()
    window_start = now - timedelta(days=settings.UPCOMING_LOOKBACK_DAYS)
    window_end = now + timedelta(days=settings.UPCOMING_LOOKAHEAD_DAYS)
    items = list_upcoming_reminders(db, user_id=user_id, start=window_start, end=window_end)
    return UpcomingReminders(
        user_id=user_id,
        window_start=window_start,
        window_end=window_end,
        reminders=[ReminderRead.model_validate(i) for i in items],
    )


@router.post("/devices", response_model=DeviceTokenRead)
def register_device_token_endpoint(payload: DeviceTokenCreate, db: Session = Depends(get_db)):
    return DeviceTokenRead.model_validate(register_device_token(db, payload))


@router.delete("/devices", status_code=204)
def delete_device_token_endpoint(payload: DeviceTokenDelete, db: Session = Depends(get_db)):
    # Logout; a token that is already gone is not an error
    delete_token_for_user(db, payload.user_id, payload.fcm_token)
    return Response(status_code=204)


@router.get("/{reminder_id}", response_model=ReminderRead)
def get_reminder_endpoint(reminder_id: int, db: Session = Depends(get_db)):
    r = get_reminder(db, reminder_id)
    if not r:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return ReminderRead.model_validate(r)


@router.delete("/{reminder_id}", status_code=204)
def delete_reminder_endpoint(reminder_id: int, user_id: str, db: Session = Depends(get_db)):
    if not delete_reminder(db, reminder_id, user_id):
        raise HTTPException(status_code=404, detail="Reminder not found")
    return Response(status_code=204)
