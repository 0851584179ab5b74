"""Business, ledger, analytics and advice models for the Business Advisor backend."""
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Boolean, ForeignKey, UniqueConstraint
from database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite has no timezone-aware column type."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BusinessType(str, enum.Enum):
    RETAIL = "RETAIL"
    ECOMMERCE = "ECOMMERCE"
    SERVICE = "SERVICE"
    MANUFACTURING = "MANUFACTURING"
    TECHNOLOGY = "TECHNOLOGY"
    OTHER = "OTHER"


class BusinessSize(str, enum.Enum):
    MICRO = "MICRO"
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"


class FinancialType(str, enum.Enum):
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"
    INVESTMENT = "INVESTMENT"
    LOAN = "LOAN"


class AnalyticsType(str, enum.Enum):
    REVENUE_TREND = "REVENUE_TREND"
    EXPENSE_TREND = "EXPENSE_TREND"
    GROWTH_METRICS = "GROWTH_METRICS"
    PERFORMANCE_KPI = "PERFORMANCE_KPI"


class AdviceType(str, enum.Enum):
    FINANCIAL = "FINANCIAL"
    OPERATIONAL = "OPERATIONAL"
    STRATEGIC = "STRATEGIC"
    RISK = "RISK"


class AdviceStatus(str, enum.Enum):
    PENDING = "PENDING"
    IMPLEMENTED = "IMPLEMENTED"
    DISMISSED = "DISMISSED"


class Priority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class SubscriptionPlan(str, enum.Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CANCELED = "CANCELED"
    PAST_DUE = "PAST_DUE"


class Business(Base):
    __tablename__ = "businesses"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_business_user_name"),)
    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    type = Column(String(32), nullable=False)  # BusinessType
    size = Column(String(32), nullable=False)  # BusinessSize
    registration_no = Column(String(64), nullable=True)
    user_id = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)


class Subscription(Base):
    """Informational only; no plan enforcement."""
    __tablename__ = "subscriptions"
    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), unique=True, nullable=False)
    plan = Column(String(32), nullable=False, default=SubscriptionPlan.FREE.value)
    status = Column(String(32), nullable=False, default=SubscriptionStatus.ACTIVE.value)
    current_period_end = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class FinancialRecord(Base):
    """Ledger row. Amount is always positive; the sign lives in `type`."""
    __tablename__ = "financial_records"
    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)  # FinancialType
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    date = Column(DateTime, nullable=False)
    category = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class AnalyticsSnapshot(Base):
    """Write-once computed payload (summary, KPI, report)."""
    __tablename__ = "analytics_snapshots"
    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)  # AnalyticsType
    period = Column(DateTime, nullable=False)
    data_json = Column(Text, nullable=False)


class Advice(Base):
    __tablename__ = "advice"
    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)  # AdviceType
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(String(32), nullable=False, default=AdviceStatus.PENDING.value)
    metadata_json = Column(Text, nullable=False, default="{}")  # AdviceMetadata
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)


class BusinessDocument(Base):
    __tablename__ = "business_documents"
    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(128), nullable=False)
    file_path = Column(String(512), nullable=False, unique=True)  # key in the document store
    size = Column(Integer, nullable=False)
    uploaded_at = Column(DateTime, default=utcnow)


class Currency(Base):
    """Mock exchange rate against USD."""
    __tablename__ = "currencies"
    id = Column(Integer, primary_key=True)
    code = Column(String(3), unique=True, nullable=False)
    name = Column(String(128), nullable=False)
    rate = Column(Float, nullable=False)
    change = Column(Float, default=0)
    change_percent = Column(Float, default=0)
    is_historical = Column(Boolean, default=False)
    updated_at = Column(DateTime, default=utcnow)
