# app/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite works for local runs and tests).
All models are auto-imported in create_tables() so one call creates every table.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from app.config import settings

_engine_kwargs = {
    "pool_pre_ping": True,       # Auto-reconnect if DB connection drops
    "echo": False,               # Set True to log all SQL queries (debug only)
}
if settings.DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    _engine_kwargs.update(pool_size=10, max_overflow=20)

engine = create_engine(settings.DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from app.models.alert import Alert                      # noqa
    from app.models.receiver import Receiver                # noqa
    from app.models.authorized_user import AuthorizedUser   # noqa

    Base.metadata.create_all(bind=engine)
