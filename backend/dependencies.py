"""Service wiring. Built once at startup and handed to routes through Depends."""
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from connectors.document_storage import DocumentStorageConnector
from services import (
    BusinessAdviceService,
    BusinessService,
    CurrencyService,
    FinancialAnalyticsService,
    ReportingService,
    SubscriptionService,
)


@dataclass
class Services:
    business: BusinessService
    subscription: SubscriptionService
    currency: CurrencyService
    analytics: FinancialAnalyticsService
    advice: BusinessAdviceService
    reporting: ReportingService


def build_services(storage: Optional[DocumentStorageConnector] = None) -> Services:
    storage = storage or DocumentStorageConnector()
    analytics = FinancialAnalyticsService()
    return Services(
        business=BusinessService(storage),
        subscription=SubscriptionService(),
        currency=CurrencyService(),
        analytics=analytics,
        advice=BusinessAdviceService(analytics),
        reporting=ReportingService(analytics),
    )


def _services(request: Request) -> Services:
    return request.app.state.services


def get_business_service(request: Request) -> BusinessService:
    return _services(request).business


def get_subscription_service(request: Request) -> SubscriptionService:
    return _services(request).subscription


def get_currency_service(request: Request) -> CurrencyService:
    return _services(request).currency


def get_analytics_service(request: Request) -> FinancialAnalyticsService:
    return _services(request).analytics


def get_advice_service(request: Request) -> BusinessAdviceService:
    return _services(request).advice


def get_reporting_service(request: Request) -> ReportingService:
    return _services(request).reporting
