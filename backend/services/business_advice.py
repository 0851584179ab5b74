"""
Benchmark-driven advice, catalog advice, and advice history tracking.

Advice rows are only ever mutated through status transitions
(PENDING -> IMPLEMENTED | DISMISSED) or by being re-offered while still PENDING.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from errors import ConflictError, NotFoundError, ValidationError
from models import Advice, AdviceStatus, AdviceType, Priority, utcnow
from schemas import (
    AdviceCreate,
    AdviceMetadata,
    AdviceOut,
    AdvicePage,
    Pagination,
    TrendAnalysis,
)
from services.business import require_business
from services.financial_analytics import FinancialAnalyticsService
from validation import validate_pagination

logger = logging.getLogger(__name__)

# Targets per industry: profit margin %, mean monthly growth %, growth volatility %.
INDUSTRY_BENCHMARKS = {
    "RETAIL": {"profit_margin": 25, "growth_rate": 10, "volatility": 12},
    "ECOMMERCE": {"profit_margin": 30, "growth_rate": 15, "volatility": 15},
    "SERVICE": {"profit_margin": 35, "growth_rate": 8, "volatility": 10},
    "MANUFACTURING": {"profit_margin": 20, "growth_rate": 5, "volatility": 8},
    "TECHNOLOGY": {"profit_margin": 40, "growth_rate": 20, "volatility": 18},
    "OTHER": {"profit_margin": 25, "growth_rate": 10, "volatility": 12},
}

TREND_PROFIT_MARGIN = "PROFIT_MARGIN"
TREND_REVENUE_GROWTH = "REVENUE_GROWTH"
TREND_VOLATILITY = "VOLATILITY"
TREND_METRICS = (TREND_PROFIT_MARGIN, TREND_REVENUE_GROWTH, TREND_VOLATILITY)

TREND_HISTORY = 10
EFFECTIVENESS_RECENT = 5
EFFECTIVENESS_WINDOW_DAYS = 90

RISK_BASE_ACTIONS = {
    "REVENUE_DECLINE": [
        "Review pricing strategy",
        "Enhance marketing efforts",
        "Analyze customer churn",
        "Develop new revenue streams",
    ],
    "EXPENSE_GROWTH": [
        "Conduct cost-benefit analysis",
        "Identify cost-cutting opportunities",
        "Negotiate with suppliers",
        "Optimize resource allocation",
    ],
}
RISK_DEFAULT_ACTIONS = [
    "Develop risk mitigation strategy",
    "Monitor key performance indicators",
    "Review business processes",
]
RISK_INDUSTRY_ACTIONS = {
    "RETAIL": {
        "REVENUE_DECLINE": [
            "Optimize store layouts and product placement",
            "Implement customer loyalty programs",
            "Analyze foot traffic patterns",
        ],
        "EXPENSE_GROWTH": [
            "Review inventory management practices",
            "Optimize staffing schedules",
            "Evaluate store operating hours",
        ],
    },
    "ECOMMERCE": {
        "REVENUE_DECLINE": [
            "Optimize conversion funnel",
            "Improve website performance",
            "Enhance digital marketing strategies",
        ],
        "EXPENSE_GROWTH": [
            "Review shipping costs and options",
            "Optimize warehouse operations",
            "Automate order processing",
        ],
    },
}

# Static advice offered to every business regardless of its ledger.
CATALOG_TEMPLATES = [
    {
        "title": "Optimize your currency exchange strategy",
        "content": "Based on current exchange rate trends, consider purchasing EUR in the next 2-3 months "
                   "as indicators suggest favorable movement against your base currency.",
        "category": "finance",
        "impact": "high",
        "effort": "medium",
    },
    {
        "title": "Expand your digital marketing presence",
        "content": "Your industry analytics show below-average digital presence for {business_type} businesses. "
                   "Consider investing in SEO and content marketing to improve visibility and customer acquisition.",
        "category": "marketing",
        "impact": "high",
        "effort": "high",
    },
    {
        "title": "Implement customer retention program",
        "content": "Implementing a loyalty program could increase repeat business by an estimated 15%.",
        "category": "customer",
        "impact": "medium",
        "effort": "medium",
    },
    {
        "title": "Review operational expenses",
        "content": "Keep monitoring supply chain costs, which have shown volatility in recent months.",
        "category": "operations",
        "impact": "medium",
        "effort": "low",
    },
    {
        "title": "Consider regional market expansion",
        "content": "Market analysis shows potential growth opportunities in neighboring regions with similar "
                   "customer demographics to your current base.",
        "category": "growth",
        "impact": "high",
        "effort": "high",
    },
]
CATALOG_CATEGORY_TYPES = {
    "finance": AdviceType.FINANCIAL,
    "marketing": AdviceType.STRATEGIC,
    "customer": AdviceType.OPERATIONAL,
    "operations": AdviceType.OPERATIONAL,
    "growth": AdviceType.STRATEGIC,
}


def risk_action_items(risk_type: str, industry: str) -> list[str]:
    base = RISK_BASE_ACTIONS.get(risk_type, RISK_DEFAULT_ACTIONS)
    extra = RISK_INDUSTRY_ACTIONS.get(industry, {}).get(risk_type, [])
    return [*base, *extra]


def significance_for(impact: float) -> Priority:
    if impact > 70:
        return Priority.HIGH
    if impact > 40:
        return Priority.MEDIUM
    return Priority.LOW


class BusinessAdviceService:
    """Generates advice from insights and tracks how past advice was acted on."""

    def __init__(self, analytics: FinancialAnalyticsService):
        self.analytics = analytics

    async def generate_advice(self, db: AsyncSession, business_id: int) -> list[AdviceOut]:
        business = await require_business(db, business_id)
        insights = await self.analytics.generate_business_insights(db, business_id)
        industry = business.type
        benchmark = INDUSTRY_BENCHMARKS.get(industry, INDUSTRY_BENCHMARKS["OTHER"])
        perf = insights.performance
        effectiveness: dict[AdviceType, float] = {}

        async def metadata(advice_type: AdviceType, priority: Priority, actions: list[str], trend: str) -> AdviceMetadata:
            if advice_type not in effectiveness:
                effectiveness[advice_type] = await self.calculate_effectiveness(db, business_id, advice_type)
            return AdviceMetadata(
                priority=priority,
                action_items=actions,
                industry=industry,
                trend=trend,
                effectiveness=effectiveness[advice_type],
            )

        drafts: list[AdviceCreate] = []
        if perf.profit_margin < benchmark["profit_margin"]:
            drafts.append(AdviceCreate(
                type=AdviceType.FINANCIAL,
                title="Improve profit margin",
                content=f"Your profit margins ({perf.profit_margin:.1f}%) are below the {industry} "
                        f"industry average of {benchmark['profit_margin']}%.",
                metadata=await metadata(AdviceType.FINANCIAL, Priority.HIGH, [
                    "Review and optimize operational costs",
                    "Consider strategic pricing adjustments",
                    "Identify and eliminate inefficient processes",
                    f"Research {industry} industry best practices for margin improvement",
                ], TREND_PROFIT_MARGIN),
            ))
        if perf.revenue_growth < benchmark["growth_rate"]:
            drafts.append(AdviceCreate(
                type=AdviceType.OPERATIONAL,
                title="Accelerate revenue growth",
                content=f"Your growth rate ({perf.revenue_growth:.1f}%) is below the {industry} "
                        f"industry average of {benchmark['growth_rate']}%.",
                metadata=await metadata(AdviceType.OPERATIONAL, Priority.MEDIUM, [
                    "Develop industry-specific marketing strategies",
                    "Analyze competitor growth tactics",
                    "Identify new market opportunities",
                    f"Implement {industry}-focused customer acquisition strategies",
                ], TREND_REVENUE_GROWTH),
            ))
        if perf.volatility > benchmark["volatility"]:
            drafts.append(AdviceCreate(
                type=AdviceType.STRATEGIC,
                title="Stabilize revenue",
                content=f"Your revenue volatility ({perf.volatility:.1f}%) is higher than the {industry} "
                        f"industry average of {benchmark['volatility']}%.",
                metadata=await metadata(AdviceType.STRATEGIC, Priority.MEDIUM, [
                    "Diversify revenue streams",
                    "Build recurring revenue models",
                    "Implement risk management strategies",
                    f"Study {industry} industry seasonality patterns",
                ], TREND_VOLATILITY),
            ))
        for risk in insights.risks:
            if risk.severity != Priority.HIGH:
                continue
            drafts.append(AdviceCreate(
                type=AdviceType.RISK,
                title=f"Address {risk.type.replace('_', ' ').lower()}",
                content=f"{risk.description} - This is critical for your {industry} business.",
                metadata=await metadata(
                    AdviceType.RISK, Priority.HIGH, risk_action_items(risk.type, industry), risk.type
                ),
            ))

        advice = await self._offer(db, business_id, drafts)
        logger.info("Generated %d advice items for business %s", len(advice), business_id)
        return advice

    async def generate_catalog_advice(self, db: AsyncSession, business_id: int) -> list[AdviceOut]:
        business = await require_business(db, business_id)
        drafts = [
            AdviceCreate(
                type=CATALOG_CATEGORY_TYPES[t["category"]],
                title=t["title"],
                content=t["content"].format(business_type=business.type),
                metadata=AdviceMetadata(
                    priority=Priority(t["impact"].upper()),
                    industry=business.type,
                    category=t["category"],
                    effort=t["effort"],
                ),
            )
            for t in CATALOG_TEMPLATES
        ]
        return await self._offer(db, business_id, drafts)

    async def _offer(self, db: AsyncSession, business_id: int, drafts: list[AdviceCreate]) -> list[AdviceOut]:
        """
        Persist drafts as PENDING advice. A PENDING row with the same title is
        refreshed in place instead of duplicated; every draft is returned.
        """
        if not drafts:
            return []
        r = await db.execute(
            select(Advice).where(
                Advice.business_id == business_id,
                Advice.status == AdviceStatus.PENDING.value,
                Advice.title.in_([d.title for d in drafts]),
            )
        )
        pending = {a.title: a for a in r.scalars().all()}
        now = utcnow()
        rows = []
        for draft in drafts:
            row = pending.get(draft.title)
            if row is None:
                row = Advice(business_id=business_id, title=draft.title, status=AdviceStatus.PENDING.value, created_at=now)
                db.add(row)
                pending[draft.title] = row
            row.type = draft.type.value
            row.content = draft.content
            row.metadata_json = draft.metadata.model_dump_json()
            row.updated_at = now
            rows.append(row)
        await db.commit()
        return [AdviceOut.from_row(row) for row in rows]

    async def add_advice(self, db: AsyncSession, business_id: int, data: AdviceCreate) -> AdviceOut:
        await require_business(db, business_id)
        row = Advice(
            business_id=business_id,
            type=data.type.value,
            title=data.title,
            content=data.content,
            status=AdviceStatus.PENDING.value,
            metadata_json=data.metadata.model_dump_json(),
        )
        db.add(row)
        await db.commit()
        return AdviceOut.from_row(row)

    async def list_advice(self, db: AsyncSession, business_id: int) -> list[AdviceOut]:
        await require_business(db, business_id)
        r = await db.execute(
            select(Advice).where(Advice.business_id == business_id).order_by(Advice.created_at.desc(), Advice.id.desc())
        )
        return [AdviceOut.from_row(a) for a in r.scalars().all()]

    async def search_advice(self, db: AsyncSession, business_id: int, query: str) -> list[AdviceOut]:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query is required")
        await require_business(db, business_id)
        r = await db.execute(
            select(Advice)
            .where(
                Advice.business_id == business_id,
                or_(
                    Advice.title.icontains(query, autoescape=True),
                    Advice.content.icontains(query, autoescape=True),
                ),
            )
            .order_by(Advice.created_at.desc(), Advice.id.desc())
        )
        return [AdviceOut.from_row(a) for a in r.scalars().all()]

    async def update_advice_status(self, db: AsyncSession, advice_id: int, status: AdviceStatus) -> AdviceOut:
        try:
            status = AdviceStatus(status)
        except ValueError as e:
            raise ValidationError("Invalid status") from e
        advice = await db.get(Advice, advice_id)
        if advice is None:
            raise NotFoundError("Advice not found")
        if advice.status == status.value:
            return AdviceOut.from_row(advice)
        if advice.status != AdviceStatus.PENDING.value:
            raise ConflictError(f"Advice is already {advice.status}")
        advice.status = status.value
        advice.updated_at = utcnow()
        await db.commit()
        logger.info("Advice %s moved to %s", advice_id, status.value)
        return AdviceOut.from_row(advice)

    async def get_implemented_advice(
        self, db: AsyncSession, business_id: int, page: int = 1, limit: int = 10
    ) -> AdvicePage:
        page, limit = validate_pagination(page, limit)
        await require_business(db, business_id)
        where = (Advice.business_id == business_id, Advice.status == AdviceStatus.IMPLEMENTED.value)
        total = await db.scalar(select(func.count()).select_from(Advice).where(*where)) or 0
        r = await db.execute(
            select(Advice)
            .where(*where)
            .order_by(Advice.updated_at.desc(), Advice.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return AdvicePage(
            data=[AdviceOut.from_row(a) for a in r.scalars().all()],
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=-(-total // limit)),
        )

    async def calculate_effectiveness(
        self,
        db: AsyncSession,
        business_id: int,
        advice_type: Optional[AdviceType] = None,
        now: Optional[datetime] = None,
    ) -> float:
        """
        Implemented share of recent advice, as a percentage capped at 100.
        Numerator: IMPLEMENTED rows among the 5 most recently updated ones.
        Denominator: rows created in the trailing 90 days. No type means all types.
        """
        await require_business(db, business_id)
        now = now or utcnow()
        filters = [Advice.business_id == business_id]
        if advice_type is not None:
            filters.append(Advice.type == AdviceType(advice_type).value)
        r = await db.execute(
            select(Advice.id)
            .where(*filters, Advice.status == AdviceStatus.IMPLEMENTED.value)
            .order_by(Advice.updated_at.desc(), Advice.id.desc())
            .limit(EFFECTIVENESS_RECENT)
        )
        implemented = len(r.all())
        if implemented == 0:
            return 0.0
        total = await db.scalar(
            select(func.count())
            .select_from(Advice)
            .where(*filters, Advice.created_at >= now - timedelta(days=EFFECTIVENESS_WINDOW_DAYS))
        )
        if not total:
            return 0.0
        return min(implemented / total * 100, 100.0)

    async def analyze_trends(self, db: AsyncSession, business_id: int) -> list[TrendAnalysis]:
        """Implementation rate of the 10 latest advice rows per tracked metric."""
        await require_business(db, business_id)
        r = await db.execute(
            select(Advice).where(Advice.business_id == business_id).order_by(Advice.created_at.desc(), Advice.id.desc())
        )
        history = [(a.status, AdviceMetadata.model_validate_json(a.metadata_json or "{}").trend) for a in r.scalars().all()]
        trends = []
        for metric in TREND_METRICS:
            related = [status for status, trend in history if trend == metric][:TREND_HISTORY]
            if not related:
                continue
            implemented = sum(1 for status in related if status == AdviceStatus.IMPLEMENTED.value)
            impact = implemented / len(related) * 100
            trends.append(TrendAnalysis(trend=metric, significance=significance_for(impact), impact=impact))
        return trends
