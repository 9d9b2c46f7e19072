"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the real
one. Tables are created before each test and dropped after it.
"""

import os

# Must be set before retail_ledger.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from retail_ledger.actor import ActorContext
from retail_ledger.main import app
from retail_ledger.models.base import Base, get_db
from retail_ledger.models.catalog import ProductUnit
from retail_ledger.schemas.payment import PaymentMethodCreate
from retail_ledger.services.account_directory import AccountDirectory
from retail_ledger.services.payment_service import PaymentService


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)


# pysqlite's own transaction handling breaks SAVEPOINT; let
# SQLAlchemy emit BEGIN itself so begin_nested() works.
@event.listens_for(engine, "connect")
def _on_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(engine, "begin")
def _on_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


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
    """Test client whose get_db yields the test session."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def actor():
    return ActorContext(user_id=7)


@pytest.fixture
def chart(db_session):
    """Seeded chart of accounts, keyed by account code."""
    accounts = AccountDirectory(db_session).seed_chart_of_accounts(
        ActorContext.bootstrap()
    )
    db_session.commit()
    return {account.code: account for account in accounts}


@pytest.fixture
def product_unit(db_session):
    unit = ProductUnit(
        product_id=1,
        unit_name="piece",
        sale_price=Decimal("5.00"),
    )
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture
def other_unit(db_session):
    unit = ProductUnit(
        product_id=2,
        unit_name="box",
        conversion_factor=Decimal("12"),
        sale_price=Decimal("30.00"),
    )
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture
def cash_method(db_session, chart):
    method = PaymentService(db_session).create_method(
        PaymentMethodCreate(name="Cash")
    )
    db_session.commit()
    return method
