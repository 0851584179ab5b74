"""Pytest configuration and fixtures."""
import os
import tempfile
from datetime import datetime
from pathlib import Path

# The app reads these at import time; point them at throwaway locations first.
_TMP = Path(tempfile.mkdtemp(prefix="advisor-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP / 'api.db'}")
os.environ.setdefault("DOCUMENT_STORAGE_DIR", str(_TMP / "documents"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from connectors.document_storage import DocumentStorageConnector
from database import enable_sqlite_foreign_keys
from dependencies import build_services
from models import FinancialRecord
from seed_data import create_tables


def month_start(now: datetime, months_back: int) -> datetime:
    """Midnight on the first day of the month `months_back` months before `now`."""
    idx = now.year * 12 + (now.month - 1) - months_back
    y, m = divmod(idx, 12)
    return datetime(y, m + 1, 1)


async def add_record(db, business_id, type_, amount, date, category="General"):
    db.add(FinancialRecord(
        business_id=business_id,
        type=type_,
        amount=amount,
        currency="USD",
        date=date,
        category=category,
    ))
    await db.commit()


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    enable_sqlite_foreign_keys(engine)
    await create_tables(engine)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def storage(tmp_path):
    return DocumentStorageConnector(tmp_path / "blobs")


@pytest.fixture
def services(storage):
    return build_services(storage)


@pytest_asyncio.fixture
async def business(db, services):
    return await services.business.create_business(db, {
        "name": "Corner Shop",
        "type": "RETAIL",
        "size": "SMALL",
        "user_id": "user-1",
    })
