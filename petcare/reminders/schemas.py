"""
Request/response schemas for reminders and device tokens
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from petcare.utils.timezone import to_utc_aware


class ReminderCreate(BaseModel):
    """Schema for creating a reminder"""
    user_id: str
    pet_id: str
    title: str = Field(..., min_length=1)
    body: Optional[str] = None
    instructions: Optional[str] = None
    reminder_type: str = Field(..., min_length=1)
    trigger_datetime: datetime
    recurrence_rule: str = Field(..., min_length=1, description="RRULE text or FREQ=NONE")


class ReminderRead(BaseModel):
    """Schema for reading a reminder"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    pet_id: str
    title: str
    body: Optional[str] = None
    instructions: Optional[str] = None
    reminder_type: str
    trigger_datetime: datetime
    next_trigger_datetime: datetime
    recurrence_rule: str
    is_active: bool
    created_at: Optional[datetime] = None

    @field_validator("trigger_datetime", "next_trigger_datetime", "created_at")
    @classmethod
    def _as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # SQLite hands back naive values; they are stored as UTC
        return to_utc_aware(v)


class UpcomingReminders(BaseModel):
    user_id: str
    window_start: datetime
    window_end: datetime
    reminders: List[ReminderRead]


class DeviceTokenCreate(BaseModel):
    """Schema for registering a device token"""
    user_id: str
    fcm_token: str = Field(..., min_length=1)
    platform: Optional[str] = Field(default=None, pattern="^(ios|android|web)$")


class DeviceTokenDelete(BaseModel):
    user_id: str
    fcm_token: str = Field(..., min_length=1)


class DeviceTokenRead(BaseModel):
    """Schema for reading device tokens"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    fcm_token: str
    platform: Optional[str] = None
