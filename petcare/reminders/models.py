"""
Reminder and device token tables
"""
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint, func

from petcare.db.base import Base


class Reminder(Base):
    """A pet-care reminder; recurring when recurrence_rule is anything but FREQ=NONE"""
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    pet_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    reminder_type = Column(String, nullable=False)

    trigger_datetime = Column(DateTime(timezone=True), nullable=False)  # Original anchor (UTC)
    next_trigger_datetime = Column(DateTime(timezone=True), nullable=False)  # Next due instant (UTC)
    recurrence_rule = Column(String, nullable=False, default="FREQ=NONE")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_reminders_active_next_trigger", "is_active", "next_trigger_datetime"),
        Index("ix_reminders_user_next_trigger", "user_id", "next_trigger_datetime"),
    )


class DeviceToken(Base):
    """FCM registration token for one of a user's devices"""
    __tablename__ = "fcm_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    fcm_token = Column(String, nullable=False)
    platform = Column(String, nullable=True)  # ios, android, web
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "fcm_token", name="uq_fcm_tokens_user_token"),
    )
