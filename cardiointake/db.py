# cardiointake/db.py
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from cardiointake.config import get_settings


settings = get_settings()

# SQLite needs to be shared with the worker threads the sink runs on
_connect_args = (
    {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
)

engine = create_engine(
    settings.database_url,
    echo=False,  # set True if you want to see SQL queries
    future=True,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)


class Base(DeclarativeBase):
    """
    Base class for ORM models.
    """
    pass


@contextmanager
def db_session(session_factory=SessionLocal):
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind=None) -> None:
    """
    Create all tables. Call this once at startup.
    """
    # Import so the model is registered on Base.metadata
    from cardiointake import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
