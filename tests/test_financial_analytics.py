import json
from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from conftest import add_record, month_start
from errors import NotFoundError, ValidationError
from models import AnalyticsSnapshot, AnalyticsType, Priority, utcnow
from services.financial_analytics import (
    analyze_performance,
    build_financial_summary,
    build_insights,
    derive_analytics,
    identify_risks,
    month_keys,
    window_start,
)

NOW = datetime(2024, 6, 15, 10, 30)


def rec(type_, amount, date):
    return SimpleNamespace(type=type_, amount=amount, date=date)


def test_month_keys_cross_year_boundary():
    assert month_keys(3, datetime(2024, 1, 15)) == ["2023-11", "2023-12", "2024-01"]
    assert window_start(3, datetime(2024, 1, 15)) == datetime(2023, 11, 1)


def test_empty_ledger_gives_zero_buckets():
    summary = build_financial_summary([], 12, NOW)
    assert len(summary.monthly_metrics) == 12
    assert summary.monthly_metrics[-1].month == "2024-06"
    assert summary.total_revenue == 0
    assert summary.monthly_metrics[0].growth_rate is None
    assert all(m.growth_rate == 0 for m in summary.monthly_metrics[1:])
    insights = build_insights(summary)
    assert insights.performance.profit_margin == 0
    assert insights.risks == []


def test_single_month_revenue_and_expense():
    summary = build_financial_summary(
        [rec("REVENUE", 1000, datetime(2024, 6, 2)), rec("EXPENSE", 800, datetime(2024, 6, 3))], 1, NOW
    )
    bucket = summary.monthly_metrics[0]
    assert (bucket.revenue, bucket.expenses, bucket.profit) == (1000, 800, 200)
    assert summary.net_profit == 200
    assert analyze_performance(summary).profit_margin == pytest.approx(20.0)


def test_totals_ignore_other_types_and_out_of_window_rows():
    records = [
        rec("REVENUE", 100, datetime(2024, 5, 1)),
        rec("INVESTMENT", 5000, datetime(2024, 5, 1)),
        rec("REVENUE", 999, datetime(2023, 1, 1)),
    ]
    summary = build_financial_summary(records, 3, NOW)
    assert summary.total_revenue == 100
    assert summary.total_expenses == 0
    assert summary.average_monthly_revenue == pytest.approx(100 / 3)


def test_growth_rates_per_bucket():
    records = [rec("REVENUE", 100, datetime(2024, 5, 10)), rec("REVENUE", 150, datetime(2024, 6, 1))]
    summary = build_financial_summary(records, 3, NOW)
    assert [m.growth_rate for m in summary.monthly_metrics] == [None, 0.0, 50.0]


def test_performance_mean_and_volatility():
    records = [
        rec("REVENUE", 100, datetime(2024, 4, 1)),
        rec("REVENUE", 110, datetime(2024, 5, 1)),
        rec("REVENUE", 143, datetime(2024, 6, 1)),
    ]
    perf = analyze_performance(build_financial_summary(records, 3, NOW))
    assert perf.revenue_growth == pytest.approx(20.0)
    assert perf.volatility == pytest.approx(10.0)
    assert perf.consistent_growth is True


def test_revenue_decline_is_high_risk():
    records = [
        rec("REVENUE", 300, datetime(2024, 4, 5)),
        rec("REVENUE", 200, datetime(2024, 5, 5)),
        rec("REVENUE", 100, datetime(2024, 6, 5)),
    ]
    risks = identify_risks(build_financial_summary(records, 12, NOW))
    assert [(r.type, r.severity) for r in risks] == [("REVENUE_DECLINE", Priority.HIGH)]


def test_expense_growth_is_medium_risk():
    records = [
        rec("EXPENSE", 100, datetime(2024, 4, 5)),
        rec("EXPENSE", 200, datetime(2024, 5, 5)),
        rec("EXPENSE", 300, datetime(2024, 6, 5)),
    ]
    risks = identify_risks(build_financial_summary(records, 12, NOW))
    assert [(r.type, r.severity) for r in risks] == [("EXPENSE_GROWTH", Priority.MEDIUM)]


def test_short_window_never_flags_risks():
    records = [rec("REVENUE", 200, datetime(2024, 5, 5)), rec("REVENUE", 100, datetime(2024, 6, 5))]
    assert identify_risks(build_financial_summary(records, 2, NOW)) == []


def test_recommendations():
    records = [
        rec("REVENUE", 200, datetime(2024, 5, 5)),
        rec("REVENUE", 100, datetime(2024, 6, 5)),
        rec("EXPENSE", 290, datetime(2024, 6, 5)),
    ]
    recommendations = build_insights(build_financial_summary(records, 3, NOW)).recommendations
    assert {r.type for r in recommendations} == {"COST_REDUCTION", "REVENUE_GROWTH"}


def test_derive_analytics_payloads():
    summary = build_financial_summary([rec("REVENUE", 100, datetime(2024, 6, 1))], 2, NOW)
    assert derive_analytics(AnalyticsType.EXPENSE_TREND, summary)["total_expenses"] == 0
    growth = derive_analytics(AnalyticsType.GROWTH_METRICS, summary)
    assert len(growth["monthly_growth"]) == 2
    kpi = derive_analytics(AnalyticsType.PERFORMANCE_KPI, summary)
    assert kpi["profit_margin"] == 100


@pytest.mark.asyncio
async def test_summary_is_stored_as_snapshot(db, services, business):
    await add_record(db, business.id, "REVENUE", 1000, datetime(2024, 6, 2))
    await add_record(db, business.id, "EXPENSE", 800, datetime(2024, 6, 3))
    summary = await services.analytics.generate_financial_summary(db, business.id, 12, now=NOW)
    assert summary.total_revenue == 1000
    assert summary.monthly_metrics[-1].profit == 200

    r = await db.execute(select(AnalyticsSnapshot).where(AnalyticsSnapshot.business_id == business.id))
    snapshot = r.scalar_one()
    assert snapshot.type == "REVENUE_TREND"
    assert json.loads(snapshot.data_json)["total_revenue"] == 1000


@pytest.mark.asyncio
async def test_summary_rejects_bad_input(db, services, business):
    with pytest.raises(ValidationError):
        await services.analytics.generate_financial_summary(db, business.id, 0)
    with pytest.raises(NotFoundError):
        await services.analytics.generate_financial_summary(db, 9999)


@pytest.mark.asyncio
async def test_insights_use_current_window(db, services, business):
    now = utcnow()
    for back, amount in ((2, 300), (1, 200), (0, 100)):
        await add_record(db, business.id, "REVENUE", amount, month_start(now, back))
    insights = await services.analytics.generate_business_insights(db, business.id)
    assert any(r.type == "REVENUE_DECLINE" for r in insights.risks)


@pytest.mark.asyncio
async def test_analytics_by_type_prefers_latest_snapshot(db, services, business):
    await add_record(db, business.id, "REVENUE", 500, datetime(2024, 6, 2))
    await services.analytics.generate_financial_summary(db, business.id, 12, now=datetime(2024, 5, 20))
    await services.analytics.generate_financial_summary(db, business.id, 12, now=NOW)

    data = await services.analytics.get_business_analytics(db, business.id, "REVENUE_TREND", datetime(2024, 5, 1))
    assert data["total_revenue"] == 500
    assert data["monthly_metrics"][-1]["month"] == "2024-06"


@pytest.mark.asyncio
async def test_analytics_by_type_computes_when_missing(db, services, business):
    data = await services.analytics.get_business_analytics(db, business.id, "EXPENSE_TREND", datetime(2000, 1, 1))
    assert data["total_expenses"] == 0
    assert len(data["monthly_expenses"]) == 12


@pytest.mark.asyncio
async def test_analytics_by_type_rejects_unknown_type(db, services, business):
    with pytest.raises(ValidationError):
        await services.analytics.get_business_analytics(db, business.id, "PROFIT", datetime(2024, 1, 1))


@pytest.mark.asyncio
async def test_analytics_by_type_skips_short_window_summaries(db, services, business):
    await add_record(db, business.id, "REVENUE", 500, datetime(2024, 6, 2))
    await add_record(db, business.id, "REVENUE", 300, datetime(2024, 3, 2))
    await services.analytics.generate_financial_summary(db, business.id, 12, now=datetime(2024, 6, 10))
    await services.analytics.generate_financial_summary(db, business.id, 1, now=NOW)

    data = await services.analytics.get_business_analytics(db, business.id, "REVENUE_TREND", datetime(2024, 5, 1))
    assert len(data["monthly_metrics"]) == 12
    assert data["total_revenue"] == 800


@pytest.mark.asyncio
async def test_kpi_lookup_keeps_its_shape_after_a_report(db, services, business):
    now = utcnow()
    await add_record(db, business.id, "REVENUE", 1000, month_start(now, 0))
    await add_record(db, business.id, "EXPENSE", 400, month_start(now, 0))
    before = await services.analytics.get_business_analytics(db, business.id, "PERFORMANCE_KPI", datetime(2000, 1, 1))

    await services.reporting.generate_business_report(db, business.id)
    after = await services.analytics.get_business_analytics(db, business.id, "PERFORMANCE_KPI", datetime(2000, 1, 1))

    assert set(after) == {"profit_margin", "revenue_growth", "expense_ratio"}
    assert after == before
    assert after["profit_margin"] == 60
    assert after["expense_ratio"] == 40
