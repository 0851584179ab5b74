"""Mock currency-exchange rates (quoted against USD)."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from errors import NotFoundError, ValidationError
from models import Currency, utcnow
from schemas import CurrencyOut

logger = logging.getLogger(__name__)

# Static quotes; a live rate provider would replace this table.
MOCK_RATES = [
    {"code": "USD", "name": "US Dollar", "rate": 1.0, "change": 0.0, "change_percent": 0.0, "is_historical": False},
    {"code": "EUR", "name": "Euro", "rate": 0.91, "change": -0.002, "change_percent": -0.22, "is_historical": False},
    {"code": "GBP", "name": "British Pound", "rate": 0.79, "change": 0.004, "change_percent": 0.51, "is_historical": False},
    {"code": "JPY", "name": "Japanese Yen", "rate": 149.52, "change": 0.52, "change_percent": 0.35, "is_historical": False},
    {"code": "CNY", "name": "Chinese Yuan", "rate": 7.25, "change": -0.01, "change_percent": -0.14, "is_historical": False},
    {"code": "DEM", "name": "German Mark", "rate": 1.95583, "change": 0.0, "change_percent": 0.0, "is_historical": True},
    {"code": "FRF", "name": "French Franc", "rate": 6.55957, "change": 0.0, "change_percent": 0.0, "is_historical": True},
]


class CurrencyService:
    async def list_currencies(self, db: AsyncSession, include_historical: bool = False) -> list[CurrencyOut]:
        q = select(Currency).order_by(Currency.code)
        if not include_historical:
            q = q.where(Currency.is_historical.is_(False))
        r = await db.execute(q)
        return [CurrencyOut.model_validate(c) for c in r.scalars().all()]

    async def list_historical_currencies(self, db: AsyncSession) -> list[CurrencyOut]:
        r = await db.execute(select(Currency).where(Currency.is_historical.is_(True)).order_by(Currency.code))
        return [CurrencyOut.model_validate(c) for c in r.scalars().all()]

    async def get_currency(self, db: AsyncSession, code: str) -> CurrencyOut:
        code = (code or "").strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValidationError("Currency must be a 3-letter code (e.g., USD)")
        r = await db.execute(select(Currency).where(Currency.code == code))
        currency = r.scalar_one_or_none()
        if currency is None:
            raise NotFoundError(f"Currency {code} not found")
        return CurrencyOut.model_validate(currency)

    async def refresh_rates(self, db: AsyncSession) -> int:
        """Upsert the mock quotes by code. Returns the number of currencies written."""
        r = await db.execute(select(Currency))
        existing = {c.code: c for c in r.scalars().all()}
        now = utcnow()
        for quote in MOCK_RATES:
            row = existing.get(quote["code"])
            if row is None:
                row = Currency(code=quote["code"])
                db.add(row)
            row.name = quote["name"]
            row.rate = quote["rate"]
            row.change = quote["change"]
            row.change_percent = quote["change_percent"]
            row.is_historical = quote["is_historical"]
            row.updated_at = now
        await db.commit()
        logger.info("Refreshed %d currency rates", len(MOCK_RATES))
        return len(MOCK_RATES)
