from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_analytics_service, get_reporting_service
from schemas import AnalyticsSnapshotOut, BusinessReport, ReportOptions
from services import FinancialAnalyticsService, ReportingService

router = APIRouter()


@router.post("/reports/{business_id}", response_model=BusinessReport)
async def generate_report(
    business_id: int,
    body: ReportOptions = ReportOptions(),
    db: AsyncSession = Depends(get_db),
    reporting: ReportingService = Depends(get_reporting_service),
):
    return await reporting.generate_business_report(db, business_id, body)


@router.get("/reports/{business_id}/history", response_model=list[AnalyticsSnapshotOut])
async def get_report_history(
    business_id: int,
    limit: int = Query(10),
    db: AsyncSession = Depends(get_db),
    reporting: ReportingService = Depends(get_reporting_service),
):
    return await reporting.get_report_history(db, business_id, limit)


@router.get("/{business_id}/{analytics_type}")
async def get_business_analytics(
    business_id: int,
    analytics_type: str,
    period: datetime = Query(..., description="Earliest snapshot period to consider"),
    db: AsyncSession = Depends(get_db),
    analytics: FinancialAnalyticsService = Depends(get_analytics_service),
):
    return await analytics.get_business_analytics(db, business_id, analytics_type, period)
