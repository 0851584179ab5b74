from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_currency_service
from schemas import CurrencyOut
from services import CurrencyService

router = APIRouter()


@router.get("", response_model=list[CurrencyOut])
async def list_currencies(
    include_historical: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    service: CurrencyService = Depends(get_currency_service),
):
    return await service.list_currencies(db, include_historical)


@router.get("/historical", response_model=list[CurrencyOut])
async def list_historical_currencies(
    db: AsyncSession = Depends(get_db),
    service: CurrencyService = Depends(get_currency_service),
):
    return await service.list_historical_currencies(db)


@router.post("/refresh")
async def refresh_rates(
    db: AsyncSession = Depends(get_db),
    service: CurrencyService = Depends(get_currency_service),
):
    count = await service.refresh_rates(db)
    return {"ok": True, "updated": count}


@router.get("/{code}", response_model=CurrencyOut)
async def get_currency(
    code: str,
    db: AsyncSession = Depends(get_db),
    service: CurrencyService = Depends(get_currency_service),
):
    return await service.get_currency(db, code)
