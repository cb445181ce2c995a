# File: apuntes/core/database/connection.py

import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from apuntes.core.config.settings import settings
from .base import Base

logger = logging.getLogger(__name__)

# Progress updates open their own short sessions from the worker thread (SQLite test mode)
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, echo=False, pool_pre_ping=True, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Creates the job tracking tables if they are missing."""
    import apuntes.core.jobs.models  # noqa: F401  registers JobModel on Base

    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info(f"Database ready: {target.url.render_as_string(hide_password=True)}")


def get_db():
    """Yields a session and always closes it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
