"""Input validation: schema checks on inbound DTOs and query parameters.

Every helper raises errors.ValidationError carrying the first failing message,
so the API layer can answer 400 with a single readable sentence.
"""
from datetime import datetime
from typing import Any, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError
from schemas import (
    AnalyticsQuery,
    BusinessCreate,
    BusinessUpdate,
    DateRange,
    FinancialRecordCreate,
    UploadedFile,
)

M = TypeVar("M", bound=BaseModel)

MIN_MONTHS = 1
MAX_MONTHS = 60
MAX_PAGE_SIZE = 100
REQUEST_LOCATIONS = ("body", "query", "path", "header")


def first_error_message(exc) -> str:
    """Flatten a pydantic (or FastAPI request) error into "field: message" for the first failure."""
    errors = exc.errors()
    if not errors:
        return "Invalid data provided"
    err = errors[0]
    msg = err.get("msg", "Invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p not in REQUEST_LOCATIONS)
    return f"{loc}: {msg}" if loc else msg


def parse_model(model: type[M], data: Any) -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(first_error_message(e)) from e


def validate_business(data: Any) -> BusinessCreate:
    return parse_model(BusinessCreate, data)


def validate_business_update(data: Any) -> BusinessUpdate:
    return parse_model(BusinessUpdate, data)


def validate_financial_record(data: Any) -> FinancialRecordCreate:
    return parse_model(FinancialRecordCreate, data)


def validate_analytics_query(data: Any) -> AnalyticsQuery:
    return parse_model(AnalyticsQuery, data)


def validate_uploaded_file(data: Any) -> UploadedFile:
    return parse_model(UploadedFile, data)


def validate_date_range(start_date: Any, end_date: Any) -> DateRange:
    if start_date is None or end_date is None:
        raise ValidationError("Both start_date and end_date are required")
    return parse_model(DateRange, {"start_date": start_date, "end_date": end_date})


def validate_optional_date_range(
    start_date: Optional[datetime], end_date: Optional[datetime]
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Check ordering only when both ends are given."""
    if start_date is not None and end_date is not None:
        rng = validate_date_range(start_date, end_date)
        return rng.start_date, rng.end_date
    return start_date, end_date


def validate_months(months: int) -> int:
    if not isinstance(months, int) or isinstance(months, bool) or not MIN_MONTHS <= months <= MAX_MONTHS:
        raise ValidationError(f"Invalid months value. Must be between {MIN_MONTHS} and {MAX_MONTHS}")
    return months


def validate_limit(limit: int) -> int:
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"Invalid limit value. Must be between 1 and {MAX_PAGE_SIZE}")
    return limit


def validate_pagination(page: int, limit: int) -> tuple[int, int]:
    if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError("Invalid pagination parameters")
    return page, limit
