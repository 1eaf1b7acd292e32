from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import inspect
from sqlalchemy.orm import sessionmaker

from petcare.core.config import Settings
from petcare.db.base import Base
from petcare.db.session import build_engine, build_session_factory
from .api import router as reminders_router
from .config import ReminderSettings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warn about missing tables on startup; migrations are run separately."""
    try:
        with app.state.session_factory() as db:
            existing_tables = inspect(db.get_bind()).get_table_names()
        missing_tables = [name for name in Base.metadata.tables if name not in existing_tables]
        if missing_tables:
            logger.warning(f"Missing database tables: {missing_tables}")
            logger.warning("Run the alembic migrations before starting the service")
        else:
            logger.info("All required database tables exist")
    except Exception as e:
        logger.warning(f"Could not check database tables: {e}")
    yield


def create_app(
    settings: Settings,
    reminder_settings: ReminderSettings,
    session_factory: Optional[sessionmaker] = None,
) -> FastAPI:
    app = FastAPI(title=f"{settings.PROJECT_NAME} - Reminders", version=settings.VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.reminder_settings = reminder_settings
    app.state.session_factory = session_factory or build_session_factory(build_engine(settings))

    app.include_router(reminders_router, prefix=f"{settings.API_V1_STR}/reminders", tags=["reminders"])
    if reminder_settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")
    return app
