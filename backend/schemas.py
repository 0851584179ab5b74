"""Pydantic schemas for API request/response."""
import json
import math
from datetime import datetime, timezone
from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator
from typing import Annotated, Optional

from models import (
    AdviceStatus,
    AdviceType,
    AnalyticsType,
    BusinessSize,
    BusinessType,
    FinancialType,
    Priority,
)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _naive_utc(v: datetime) -> datetime:
    """Stored timestamps are naive UTC; normalise aware inputs to match."""
    if v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


NaiveUTCDatetime = Annotated[datetime, AfterValidator(_naive_utc)]


# ----- Businesses -----

class BusinessCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    type: BusinessType
    size: BusinessSize
    registration_no: Optional[str] = None
    user_id: str = Field(..., min_length=1)


class BusinessUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    type: Optional[BusinessType] = None
    size: Optional[BusinessSize] = None
    registration_no: Optional[str] = None


class SubscriptionOut(BaseModel):
    plan: str
    status: str
    current_period_end: datetime

    class Config:
        from_attributes = True


class SubscriptionAccess(BaseModel):
    has_access: bool
    plan: str
    is_free_user: bool


class BusinessOut(BaseModel):
    id: int
    name: str
    type: str
    size: str
    registration_no: Optional[str] = None
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    subscription: Optional[SubscriptionOut] = None

    @classmethod
    def from_row(cls, row, subscription=None, **extra) -> "BusinessOut":
        return cls(
            id=row.id,
            name=row.name,
            type=row.type,
            size=row.size,
            registration_no=row.registration_no,
            user_id=row.user_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
            subscription=SubscriptionOut.model_validate(subscription) if subscription else None,
            **extra,
        )


# ----- Ledger -----

class FinancialRecordCreate(BaseModel):
    business_id: int
    type: FinancialType
    amount: float
    currency: str
    date: NaiveUTCDatetime
    category: str = Field(..., min_length=1)
    description: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def amount_positive_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Amount must be a finite number")
        if v <= 0:
            raise ValueError("Amount must be greater than 0")
        return v

    @field_validator("currency")
    @classmethod
    def currency_code(cls, v: str) -> str:
        v = v.strip()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a 3-letter code (e.g., USD)")
        return v.upper()


class FinancialRecordOut(BaseModel):
    id: int
    business_id: int
    type: str
    amount: float
    currency: str
    date: datetime
    category: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class DateRange(BaseModel):
    start_date: NaiveUTCDatetime
    end_date: NaiveUTCDatetime

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start_date > self.end_date:
            raise ValueError("Start date must be before or equal to end date")
        return self


# ----- Analytics -----

class MonthlyMetrics(BaseModel):
    month: str  # YYYY-MM
    revenue: float = 0
    expenses: float = 0
    profit: float = 0
    growth_rate: Optional[float] = None  # None for the first bucket


class FinancialSummary(BaseModel):
    total_revenue: float
    total_expenses: float
    net_profit: float
    average_monthly_revenue: float
    average_monthly_expenses: float
    monthly_metrics: list[MonthlyMetrics]


class BusinessPerformance(BaseModel):
    profit_margin: float
    revenue_growth: float
    consistent_growth: bool
    volatility: float


class BusinessRisk(BaseModel):
    type: str
    severity: Priority
    description: str


class BusinessRecommendation(BaseModel):
    type: str
    priority: Priority
    suggestion: str


class BusinessInsights(BaseModel):
    performance: BusinessPerformance
    recommendations: list[BusinessRecommendation]
    risks: list[BusinessRisk]


class AnalyticsQuery(BaseModel):
    business_id: int
    type: AnalyticsType
    period: NaiveUTCDatetime


class AnalyticsSnapshotOut(BaseModel):
    id: int
    business_id: int
    type: str
    period: datetime
    data: dict

    @classmethod
    def from_row(cls, row) -> "AnalyticsSnapshotOut":
        return cls(
            id=row.id,
            business_id=row.business_id,
            type=row.type,
            period=row.period,
            data=json.loads(row.data_json) if row.data_json else {},
        )


# ----- Advice -----

class AdviceMetadata(BaseModel):
    """Typed form of the advice metadata blob."""
    priority: Priority = Priority.MEDIUM
    action_items: list[str] = []
    industry: Optional[str] = None
    trend: Optional[str] = None
    effectiveness: float = 0
    category: Optional[str] = None
    effort: Optional[str] = None


class AdviceCreate(BaseModel):
    type: AdviceType
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    metadata: AdviceMetadata = AdviceMetadata()


class AdviceOut(BaseModel):
    id: int
    business_id: int
    type: str
    title: str
    content: str
    status: str
    metadata: AdviceMetadata
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "AdviceOut":
        return cls(
            id=row.id,
            business_id=row.business_id,
            type=row.type,
            title=row.title,
            content=row.content,
            status=row.status,
            metadata=AdviceMetadata.model_validate_json(row.metadata_json or "{}"),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class AdviceStatusUpdate(BaseModel):
    status: AdviceStatus


class TrendAnalysis(BaseModel):
    trend: str
    significance: Priority
    impact: float


class EffectivenessOut(BaseModel):
    type: Optional[AdviceType] = None
    effectiveness: float


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AdvicePage(BaseModel):
    data: list[AdviceOut]
    pagination: Pagination


# ----- Reporting -----

class ReportOptions(BaseModel):
    include_financials: bool = False
    include_analytics: bool = False
    include_advice: bool = False
    start_date: Optional[NaiveUTCDatetime] = None
    end_date: Optional[NaiveUTCDatetime] = None


class BusinessInfo(BaseModel):
    id: int
    name: str
    type: str
    size: str
    registration_no: Optional[str] = None


class ReportFinancials(BaseModel):
    summary: FinancialSummary
    recent_transactions: list[FinancialRecordOut]


class ReportAdvice(BaseModel):
    current: list[AdviceOut]
    implemented: list[AdviceOut]


class BusinessReport(BaseModel):
    business_info: BusinessInfo
    subscription: Optional[SubscriptionOut] = None
    financials: Optional[ReportFinancials] = None
    analytics: Optional[BusinessInsights] = None
    advice: Optional[ReportAdvice] = None
    generated_at: datetime


class BusinessDetail(BusinessOut):
    financials: list[FinancialRecordOut] = []
    analytics: list[AnalyticsSnapshotOut] = []
    advice: list[AdviceOut] = []


# ----- Documents -----

class UploadedFile(BaseModel):
    file_name: str = Field(..., min_length=1)
    file_type: str = Field(..., min_length=1)
    size: int
    content: bytes

    @field_validator("size")
    @classmethod
    def size_within_limit(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("File size must be greater than 0")
        if v > MAX_UPLOAD_BYTES:
            raise ValueError("File size cannot exceed 10MB")
        return v


class BusinessDocumentOut(BaseModel):
    id: int
    business_id: int
    file_name: str
    file_type: str
    file_path: str
    size: int
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ----- Currencies -----

class CurrencyOut(BaseModel):
    code: str
    name: str
    rate: float
    change: float
    change_percent: float
    is_historical: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
