"""
Database engine, session management, and base model.

Every model inherits from Base. Every request gets a session
from get_db(). Services never commit: the caller owns the
unit of work and decides when to commit or roll back.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from budget_ledger.config import get_settings

settings = get_settings()

# --- Engine ---
# pool_pre_ping=True tests connections before using them,
# which handles a restarted database or a stale connection.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

# --- Session Factory ---
# autocommit=False: a posting and its balance snapshots are
# written in one transaction and committed together.
# autoflush=False: services flush explicitly when they need
# generated ids or need a later query to see earlier writes.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The try/finally pattern ensures the session is always
    closed, which also releases any ledger write locks the
    request still holds.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
