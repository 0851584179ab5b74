"""
Financial summary and insights.
Ledger rows are bucketed per calendar month; performance, risks and
recommendations are derived from the bucket list.
"""
import logging
import math
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from errors import ValidationError
from models import AnalyticsSnapshot, AnalyticsType, FinancialRecord, FinancialType, Priority, utcnow
from schemas import (
    BusinessInsights,
    BusinessPerformance,
    BusinessRecommendation,
    BusinessRisk,
    FinancialSummary,
    MonthlyMetrics,
)
from services.business import require_business
from validation import validate_analytics_query, validate_months

logger = logging.getLogger(__name__)

DEFAULT_MONTHS = 12
LOW_MARGIN_PCT = 20
RISK_WINDOW = 3


def _month_index(d: datetime) -> int:
    return d.year * 12 + (d.month - 1)


def month_keys(months: int, now: datetime) -> list[str]:
    """The `months` calendar months ending with the month of `now`, oldest first ("YYYY-MM")."""
    last = _month_index(now)
    keys = []
    for idx in range(last - months + 1, last + 1):
        y, m = divmod(idx, 12)
        keys.append(f"{y:04d}-{m + 1:02d}")
    return keys


def window_start(months: int, now: datetime) -> datetime:
    """Midnight on the first day of the oldest bucket."""
    y, m = divmod(_month_index(now) - months + 1, 12)
    return datetime(y, m + 1, 1)


def _pct_of(part: float, whole: float) -> float:
    """part / whole * 100, or 0 when whole is 0."""
    if not whole:
        return 0.0
    return part / whole * 100


def build_financial_summary(records: Iterable, months: int, now: datetime) -> FinancialSummary:
    """Bucket ledger rows (anything with type, amount, date) into monthly metrics."""
    buckets = {key: MonthlyMetrics(month=key) for key in month_keys(months, now)}
    total_revenue = 0.0
    total_expenses = 0.0
    for rec in records:
        bucket = buckets.get(rec.date.strftime("%Y-%m"))
        if bucket is None:
            continue
        if rec.type == FinancialType.REVENUE.value:
            bucket.revenue += rec.amount
            total_revenue += rec.amount
        elif rec.type == FinancialType.EXPENSE.value:
            bucket.expenses += rec.amount
            total_expenses += rec.amount

    metrics = list(buckets.values())
    for i, bucket in enumerate(metrics):
        bucket.profit = bucket.revenue - bucket.expenses
        if i == 0:
            continue
        previous = metrics[i - 1].revenue
        bucket.growth_rate = 0.0 if previous == 0 else (bucket.revenue - previous) / previous * 100

    return FinancialSummary(
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_profit=total_revenue - total_expenses,
        average_monthly_revenue=total_revenue / months,
        average_monthly_expenses=total_expenses / months,
        monthly_metrics=metrics,
    )


def profit_margin(summary: FinancialSummary) -> float:
    return _pct_of(summary.net_profit, summary.total_revenue)


def growth_rates(summary: FinancialSummary) -> list[float]:
    """Month-over-month growth for every bucket after the first."""
    return [m.growth_rate or 0.0 for m in summary.monthly_metrics[1:]]


def analyze_performance(summary: FinancialSummary) -> BusinessPerformance:
    rates = growth_rates(summary)
    revenue_growth = 0.0
    consistent = False
    volatility = 0.0
    if rates:
        revenue_growth = sum(rates) / len(rates)
        consistent = all(r > 0 for r in rates)
        volatility = math.sqrt(sum((r - revenue_growth) ** 2 for r in rates) / len(rates))
    return BusinessPerformance(
        profit_margin=profit_margin(summary),
        revenue_growth=revenue_growth,
        consistent_growth=consistent,
        volatility=volatility,
    )


def _strictly_monotonic(values: list[float], decreasing: bool) -> bool:
    if len(values) < RISK_WINDOW:
        return False
    pairs = zip(values, values[1:])
    if decreasing:
        return all(b < a for a, b in pairs)
    return all(b > a for a, b in pairs)


def identify_risks(summary: FinancialSummary) -> list[BusinessRisk]:
    last = summary.monthly_metrics[-RISK_WINDOW:]
    risks = []
    if _strictly_monotonic([m.revenue for m in last], decreasing=True):
        risks.append(BusinessRisk(
            type="REVENUE_DECLINE",
            severity=Priority.HIGH,
            description="Consistent revenue decline over the last 3 months",
        ))
    if _strictly_monotonic([m.expenses for m in last], decreasing=False):
        risks.append(BusinessRisk(
            type="EXPENSE_GROWTH",
            severity=Priority.MEDIUM,
            description="Consistently increasing expenses over the last 3 months",
        ))
    return risks


def generate_recommendations(summary: FinancialSummary) -> list[BusinessRecommendation]:
    recommendations = []
    if profit_margin(summary) < LOW_MARGIN_PCT:
        recommendations.append(BusinessRecommendation(
            type="COST_REDUCTION",
            priority=Priority.HIGH,
            suggestion="Consider reviewing operational costs to improve profit margins",
        ))
    if any(m.growth_rate is not None and m.growth_rate < 0 for m in summary.monthly_metrics):
        recommendations.append(BusinessRecommendation(
            type="REVENUE_GROWTH",
            priority=Priority.MEDIUM,
            suggestion="Develop strategies to stabilize and improve monthly revenue growth",
        ))
    return recommendations


def build_insights(summary: FinancialSummary) -> BusinessInsights:
    return BusinessInsights(
        performance=analyze_performance(summary),
        recommendations=generate_recommendations(summary),
        risks=identify_risks(summary),
    )


def derive_analytics(analytics_type: AnalyticsType, summary: FinancialSummary) -> dict:
    """Payload for an analytics type, computed from a fresh summary."""
    if analytics_type == AnalyticsType.REVENUE_TREND:
        return summary.model_dump()
    if analytics_type == AnalyticsType.EXPENSE_TREND:
        return {
            "total_expenses": summary.total_expenses,
            "monthly_expenses": [{"month": m.month, "expenses": m.expenses} for m in summary.monthly_metrics],
        }
    if analytics_type == AnalyticsType.GROWTH_METRICS:
        monthly = [{"month": m.month, "growth_rate": m.growth_rate or 0.0} for m in summary.monthly_metrics]
        return {
            "monthly_growth": monthly,
            "average_growth": sum(g["growth_rate"] for g in monthly) / (len(monthly) or 1),
        }
    if analytics_type == AnalyticsType.PERFORMANCE_KPI:
        last = summary.monthly_metrics[-1] if summary.monthly_metrics else None
        return {
            "profit_margin": profit_margin(summary),
            "revenue_growth": (last.growth_rate or 0.0) if last else 0.0,
            "expense_ratio": _pct_of(summary.total_expenses, summary.total_revenue),
        }
    raise ValidationError(f"Unsupported analytics type: {analytics_type}")


class FinancialAnalyticsService:
    """Summaries, insights and typed analytics lookups over a business ledger."""

    async def generate_financial_summary(
        self,
        db: AsyncSession,
        business_id: int,
        months: int = DEFAULT_MONTHS,
        now: Optional[datetime] = None,
    ) -> FinancialSummary:
        """Summarise the last `months` calendar months and store it as a REVENUE_TREND snapshot."""
        validate_months(months)
        await require_business(db, business_id)
        now = now or utcnow()
        r = await db.execute(
            select(FinancialRecord)
            .where(
                FinancialRecord.business_id == business_id,
                FinancialRecord.date >= window_start(months, now),
                FinancialRecord.date <= now,
            )
            .order_by(FinancialRecord.date)
        )
        summary = build_financial_summary(r.scalars().all(), months, now)
        db.add(AnalyticsSnapshot(
            business_id=business_id,
            type=AnalyticsType.REVENUE_TREND.value,
            period=now,
            data_json=summary.model_dump_json(),
        ))
        await db.commit()
        logger.info(
            "Financial summary for business %s over %d months: revenue=%.2f expenses=%.2f",
            business_id, months, summary.total_revenue, summary.total_expenses,
        )
        return summary

    async def generate_business_insights(
        self, db: AsyncSession, business_id: int, now: Optional[datetime] = None
    ) -> BusinessInsights:
        summary = await self.generate_financial_summary(db, business_id, DEFAULT_MONTHS, now=now)
        return build_insights(summary)

    async def _latest_full_summary(
        self, db: AsyncSession, business_id: int, period: datetime
    ) -> Optional[FinancialSummary]:
        """Newest stored DEFAULT_MONTHS summary at or after `period`; shorter windows are skipped."""
        r = await db.execute(
            select(AnalyticsSnapshot)
            .where(
                AnalyticsSnapshot.business_id == business_id,
                AnalyticsSnapshot.type == AnalyticsType.REVENUE_TREND.value,
                AnalyticsSnapshot.period >= period,
            )
            .order_by(AnalyticsSnapshot.period.desc(), AnalyticsSnapshot.id.desc())
        )
        for snapshot in r.scalars():
            summary = FinancialSummary.model_validate_json(snapshot.data_json)
            if len(summary.monthly_metrics) == DEFAULT_MONTHS:
                return summary
        return None

    async def get_business_analytics(
        self, db: AsyncSession, business_id: int, analytics_type, period
    ) -> dict:
        """
        Typed payload derived from the most recent 12-month summary stored at or
        after `period`. A fresh summary is computed when none exists.
        """
        query = validate_analytics_query({"business_id": business_id, "type": analytics_type, "period": period})
        await require_business(db, query.business_id)
        summary = await self._latest_full_summary(db, query.business_id, query.period)
        if summary is None:
            summary = await self.generate_financial_summary(db, query.business_id, DEFAULT_MONTHS)
        return derive_analytics(query.type, summary)
