from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_analytics_service, get_business_service
from schemas import BusinessInsights, FinancialRecordCreate, FinancialRecordOut, FinancialSummary
from services import BusinessService, FinancialAnalyticsService
from services.financial_analytics import DEFAULT_MONTHS

router = APIRouter()


@router.post("", response_model=FinancialRecordOut, status_code=201)
async def add_financial_record(
    body: FinancialRecordCreate,
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    return await service.add_financial_record(db, body)


@router.get("/summary/{business_id}", response_model=FinancialSummary)
async def get_financial_summary(
    business_id: int,
    months: int = Query(DEFAULT_MONTHS, description="Number of calendar months, 1-60"),
    db: AsyncSession = Depends(get_db),
    analytics: FinancialAnalyticsService = Depends(get_analytics_service),
):
    return await analytics.generate_financial_summary(db, business_id, months)


@router.get("/insights/{business_id}", response_model=BusinessInsights)
async def get_business_insights(
    business_id: int,
    db: AsyncSession = Depends(get_db),
    analytics: FinancialAnalyticsService = Depends(get_analytics_service),
):
    return await analytics.generate_business_insights(db, business_id)


@router.get("/business/{business_id}", response_model=list[FinancialRecordOut])
async def get_financial_records(
    business_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db),
    service: BusinessService = Depends(get_business_service),
):
    """Ledger rows dated within [start_date, end_date], newest first. Both bounds are required."""
    return await service.get_financial_records(db, business_id, start_date, end_date)
