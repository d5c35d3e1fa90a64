"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch
the real one. Every test starts from freshly created tables.
"""

import os

# Must be set before budget_ledger is imported: the engine is
# created from settings at import time.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from budget_ledger.main import app
from budget_ledger.models.base import Base, get_db
from budget_ledger.schemas.ledger import AccountCreate, LedgerCreate
from budget_ledger.services.ledger_service import LedgerService


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

OWNER = "alice"
OTHER_OWNER = "bob"


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session):
    """
    Provide a test client bound to the test session.

    get_db is overridden so the app uses the same session
    the test inspects.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"X-Owner-Id": OWNER}


@pytest.fixture
def ledger(db_session):
    """A committed ledger owned by OWNER, with its special accounts."""
    ledger = LedgerService(db_session).create_ledger(
        OWNER, LedgerCreate(name="Personal")
    )
    db_session.commit()
    return ledger


@pytest.fixture
def checking(db_session, ledger):
    account = LedgerService(db_session).create_account(
        OWNER, ledger.id, AccountCreate(name="Checking", account_type="asset")
    )
    db_session.commit()
    return account


@pytest.fixture
def credit_card(db_session, ledger):
    account = LedgerService(db_session).create_account(
        OWNER, ledger.id,
        AccountCreate(name="Credit Card", account_type="liability"),
    )
    db_session.commit()
    return account


@pytest.fixture
def groceries(db_session, ledger):
    category = LedgerService(db_session).create_category(
        OWNER, ledger.id, "Groceries"
    )
    db_session.commit()
    return category


@pytest.fixture
def session_factory():
    """Factory for extra sessions, e.g. one per worker thread."""
    return TestSessionLocal
