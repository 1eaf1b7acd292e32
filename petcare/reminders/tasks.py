from functools import lru_cache
import logging

from celery import shared_task

from petcare.core.config import get_settings
from petcare.db.session import build_engine, build_session_factory
from .config import get_reminder_settings
from .dispatcher import FcmPushGateway
from .scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


@lru_cache
def get_scheduler() -> ReminderScheduler:
    """Build the scheduler once per worker process."""
    reminder_settings = get_reminder_settings()
    session_factory = build_session_factory(build_engine(get_settings()))
    return ReminderScheduler(
        session_factory=session_factory,
        push_gateway=FcmPushGateway(reminder_settings),
        settings=reminder_settings,
    )


@shared_task(name="reminders.process_due")
def process_due_reminders_task() -> int:
    """Run one scheduler tick. Returns the number of reminders selected."""
    try:
        report = get_scheduler().run_tick()
    except Exception:
        # The selection query itself failed; the next tick starts from scratch
        logger.exception("[Reminders] Tick aborted")
        return 0
    return report.selected
