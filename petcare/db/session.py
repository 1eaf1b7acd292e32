from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from petcare.core.config import Settings


def build_engine(settings: Settings) -> Engine:
    url = settings.SQLALCHEMY_DATABASE_URI
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    # PostgreSQL configuration with connection pooling
    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_recycle=300,      # Recycle connections every 5 minutes
        pool_pre_ping=True,    # Validate connections before use
        pool_timeout=30,
        echo=False,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
