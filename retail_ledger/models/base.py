"""
Engine, session factory and declarative base for the ledger tables.

Services never open sessions themselves: a request gets one from
get_db() and the route decides when the posting unit commits.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from retail_ledger.config import get_settings

settings = get_settings()

# Row locks and SET LOCAL lock_timeout need PostgreSQL; a SQLite
# URL is only good for local runs, served from uvicorn's threadpool.
_connect_args = (
    {"check_same_thread": False}
    if settings.DATABASE_URL.startswith("sqlite")
    else {}
)

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

# Nothing reaches the database until a service flushes inside atomic()
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


def get_db():
    """One session per request, closed even when the route raises."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
