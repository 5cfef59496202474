"""Pytest configuration and fixtures."""

import os
import uuid
from datetime import date
from decimal import Decimal

import pytest

# Set test environment - only set if not already set
if "ENVIRONMENT" not in os.environ:
    os.environ["ENVIRONMENT"] = "development"
if "LOG_LEVEL" not in os.environ:
    os.environ["LOG_LEVEL"] = "DEBUG"

import structlog  # noqa: E402
from sqlalchemy import func, select  # noqa: E402

import apps.api.main  # noqa: E402,F401  configures structlog
import packages.common.models  # noqa: E402,F401  registers tables
from packages.common.database import Base, build_engine, make_sessionmaker  # noqa: E402
from packages.common.schemas.purchase import NewStop, PurchaseInput  # noqa: E402

# capture_logs needs loggers that re-read the config
structlog.configure(cache_logger_on_first_use=False)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def engine(database_url):
    """Fresh SQLite database with every table created."""
    engine = build_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def household_id():
    return uuid.uuid4()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def make_purchase(household_id, user_id):
    """Build a PurchaseInput with sensible defaults."""

    def _make(**overrides):
        values = {
            "household_id": household_id,
            "user_id": user_id,
            "brand": "Acme",
            "item": "Milk",
            "unit_measurement": "gal",
            "count": Decimal("1"),
            "price_per_unit": Decimal("3.49"),
            "total_price": Decimal("3.49"),
            "date": date(2024, 3, 5),
        }
        if "stop_id" not in overrides and "new_stop" not in overrides:
            values["new_stop"] = NewStop(store_name="Mart")
        values.update(overrides)
        return PurchaseInput(**values)

    return _make


@pytest.fixture
def count_rows():
    """Count rows of a model, optionally filtered."""

    async def _count(db, model, *criteria):
        result = await db.execute(select(func.count()).select_from(model).where(*criteria))
        return result.scalar_one()

    return _count


@pytest.fixture
def fetch_all():
    """Load fresh rows, bypassing stale identity-map state after bulk updates."""

    async def _fetch(db, model, *criteria):
        result = await db.execute(
            select(model).where(*criteria).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    return _fetch
