from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from petcare.db.base import Base
from petcare.db.session import build_session_factory
from petcare.reminders.config import ReminderSettings
from petcare.reminders.models import DeviceToken, Reminder
from tests.helpers import FakePushGateway


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def reminder_settings():
    return ReminderSettings(
        SCHEDULER_BATCH_SIZE=100,
        DEFAULT_NOTIFICATION_BODY="You have a new notification",
        METRICS_ENABLED=False,
    )


@pytest.fixture
def push_gateway():
    return FakePushGateway()


@pytest.fixture
def make_reminder(db):
    def _make(
        next_trigger: datetime,
        recurrence_rule: str = "FREQ=NONE",
        trigger: Optional[datetime] = None,
        user_id: str = "user-1",
        is_active: bool = True,
        **fields,
    ) -> Reminder:
        reminder = Reminder(
            user_id=user_id,
            pet_id=fields.pop("pet_id", "pet-7"),
            title=fields.pop("title", "Deworming"),
            body=fields.pop("body", None),
            instructions=fields.pop("instructions", None),
            reminder_type=fields.pop("reminder_type", "medication"),
            trigger_datetime=trigger or next_trigger,
            next_trigger_datetime=next_trigger,
            recurrence_rule=recurrence_rule,
            is_active=is_active,
        )
        db.add(reminder)
        db.commit()
        db.refresh(reminder)
        return reminder

    return _make


@pytest.fixture
def add_token(db):
    def _add(token: str, user_id: str = "user-1", platform: str = "ios") -> DeviceToken:
        device = DeviceToken(user_id=user_id, fcm_token=token, platform=platform)
        db.add(device)
        db.commit()
        return device

    return _add
