from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue

from .config import ReminderSettings, get_reminder_settings


def create_celery_app(settings: ReminderSettings) -> Celery:
    app = Celery(
        "reminders",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND or None,
    )

    exchange = Exchange(settings.CELERY_QUEUE, type="direct", durable=True)

    app.conf.update(
        task_acks_late=True,
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        worker_prefetch_multiplier=1,
        worker_concurrency=settings.WORKER_CONCURRENCY,
        task_default_queue=settings.CELERY_QUEUE,
        task_default_exchange=settings.CELERY_QUEUE,
        task_default_routing_key=settings.CELERY_QUEUE,
        include=["petcare.reminders.tasks"],
        task_queues=(
            Queue(settings.CELERY_QUEUE, exchange=exchange, routing_key=settings.CELERY_QUEUE, durable=True),
        ),
        timezone="UTC",
        enable_utc=True,
    )

    # One tick at the start of every minute; the due window is one minute wide
    app.conf.beat_schedule = {
        "process-due-reminders": {
            "task": "reminders.process_due",
            "schedule": crontab(),
        },
    }
    return app


celery_app = create_celery_app(get_reminder_settings())
