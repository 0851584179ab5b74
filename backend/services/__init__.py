"""
Domain services. Each takes an AsyncSession per call and holds no per-request state.
"""
from .business import BusinessService
from .business_advice import BusinessAdviceService
from .currency import CurrencyService
from .financial_analytics import FinancialAnalyticsService
from .reporting import ReportingService
from .subscription import SubscriptionService

__all__ = [
    "BusinessService",
    "BusinessAdviceService",
    "CurrencyService",
    "FinancialAnalyticsService",
    "ReportingService",
    "SubscriptionService",
]
