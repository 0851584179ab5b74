"""Create tables and seed reference data (mock currency rates)."""
import logging

from sqlalchemy import select

from database import engine, AsyncSessionLocal
from models import Base, Currency
from services.currency import CurrencyService

logger = logging.getLogger(__name__)


async def create_tables(bind=engine):
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed(bind=engine, session_factory=AsyncSessionLocal):
    await create_tables(bind)
    async with session_factory() as session:
        if await session.scalar(select(Currency).limit(1)):
            return  # already seeded
        count = await CurrencyService().refresh_rates(session)
        logger.info("Seeded %d currencies", count)
