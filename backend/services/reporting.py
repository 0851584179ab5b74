"""Business reports: a point-in-time document assembled from ledger, insights and advice."""
import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Advice, AdviceStatus, AnalyticsSnapshot, AnalyticsType, FinancialRecord, utcnow
from schemas import (
    AdviceOut,
    AnalyticsSnapshotOut,
    BusinessInfo,
    BusinessReport,
    FinancialRecordOut,
    ReportAdvice,
    ReportFinancials,
    ReportOptions,
    SubscriptionOut,
)
from services.business import find_subscription, require_business
from services.financial_analytics import DEFAULT_MONTHS, FinancialAnalyticsService, build_insights
from validation import parse_model, validate_limit, validate_optional_date_range

logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS = 10
RECENT_IMPLEMENTED = 5


class ReportingService:
    def __init__(self, analytics: FinancialAnalyticsService):
        self.analytics = analytics

    async def generate_business_report(
        self, db: AsyncSession, business_id: int, options: Optional[Any] = None
    ) -> BusinessReport:
        """
        Build the report sections selected in `options` and store the result
        as a PERFORMANCE_KPI snapshot.
        """
        opts = parse_model(ReportOptions, options or {})
        start_date, end_date = validate_optional_date_range(opts.start_date, opts.end_date)
        business = await require_business(db, business_id)
        subscription = await find_subscription(db, business_id)
        now = utcnow()

        summary = None
        if opts.include_financials or opts.include_analytics:
            summary = await self.analytics.generate_financial_summary(db, business_id, DEFAULT_MONTHS, now=now)

        financials = None
        if opts.include_financials:
            q = select(FinancialRecord).where(FinancialRecord.business_id == business_id)
            if start_date is not None:
                q = q.where(FinancialRecord.date >= start_date)
            if end_date is not None:
                q = q.where(FinancialRecord.date <= end_date)
            r = await db.execute(
                q.order_by(FinancialRecord.date.desc(), FinancialRecord.id.desc()).limit(RECENT_TRANSACTIONS)
            )
            financials = ReportFinancials(
                summary=summary,
                recent_transactions=[FinancialRecordOut.model_validate(f) for f in r.scalars().all()],
            )

        advice = None
        if opts.include_advice:
            r_current = await db.execute(
                select(Advice)
                .where(Advice.business_id == business_id, Advice.status == AdviceStatus.PENDING.value)
                .order_by(Advice.created_at.desc(), Advice.id.desc())
            )
            r_done = await db.execute(
                select(Advice)
                .where(Advice.business_id == business_id, Advice.status == AdviceStatus.IMPLEMENTED.value)
                .order_by(Advice.updated_at.desc(), Advice.id.desc())
                .limit(RECENT_IMPLEMENTED)
            )
            advice = ReportAdvice(
                current=[AdviceOut.from_row(a) for a in r_current.scalars().all()],
                implemented=[AdviceOut.from_row(a) for a in r_done.scalars().all()],
            )

        report = BusinessReport(
            business_info=BusinessInfo(
                id=business.id,
                name=business.name,
                type=business.type,
                size=business.size,
                registration_no=business.registration_no,
            ),
            subscription=SubscriptionOut.model_validate(subscription) if subscription else None,
            financials=financials,
            analytics=build_insights(summary) if opts.include_analytics else None,
            advice=advice,
            generated_at=now,
        )
        db.add(AnalyticsSnapshot(
            business_id=business_id,
            type=AnalyticsType.PERFORMANCE_KPI.value,
            period=now,
            data_json=report.model_dump_json(),
        ))
        await db.commit()
        logger.info("Generated report for business %s", business_id)
        return report

    async def get_report_history(
        self, db: AsyncSession, business_id: int, limit: int = 10
    ) -> list[AnalyticsSnapshotOut]:
        validate_limit(limit)
        await require_business(db, business_id)
        r = await db.execute(
            select(AnalyticsSnapshot)
            .where(
                AnalyticsSnapshot.business_id == business_id,
                AnalyticsSnapshot.type == AnalyticsType.PERFORMANCE_KPI.value,
            )
            .order_by(AnalyticsSnapshot.period.desc(), AnalyticsSnapshot.id.desc())
            .limit(limit)
        )
        return [AnalyticsSnapshotOut.from_row(s) for s in r.scalars().all()]
