"""
Business Advisor: FastAPI backend.
Business registry, financial ledger, analytics, advice and reports under /api.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from backend directory before modules that read the environment at import time
load_dotenv(Path(__file__).resolve().parent / ".env")

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from dependencies import build_services
from errors import AppError
from routes import advice, analytics, businesses, currencies, financials, health
from seed_data import seed
from validation import first_error_message

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await seed()
    app.state.services = build_services()
    if not app.state.services.business.storage.is_configured():
        logger.warning("Document storage at %s is not writable", app.state.services.business.storage.root)
    yield


app = FastAPI(title="Business Advisor API", version="1.0.0", lifespan=lifespan)
_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").strip().split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _cors_origins if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _cors_headers_for_request(request: Request) -> dict:
    """Return CORS headers so browser doesn't hide error responses (e.g. 401)."""
    origin = request.headers.get("origin")
    allowed = [o.strip() for o in _cors_origins if o.strip()]
    if origin and origin in allowed:
        return {"Access-Control-Allow-Origin": origin, "Access-Control-Allow-Credentials": "true"}
    return {}


def error_response(request: Request, status_code: int, message: str, code: str | None = None) -> JSONResponse:
    """Uniform error body. A client X-Request-ID takes the place of the error code."""
    request_id = request.headers.get("X-Request-ID")
    if request_id:
        code = f"REQ_{request_id}"
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "code": code}, "status": status_code},
    )


class RequireAppPasswordMiddleware(BaseHTTPMiddleware):
    """When APP_PASSWORD is set, require X-App-Password header on all /api/ requests."""

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith("/api/"):
            return await call_next(request)
        # Let OPTIONS (CORS preflight) through so the browser gets 200 and can send the real request with the password header
        if request.method == "OPTIONS":
            return await call_next(request)
        password = os.getenv("APP_PASSWORD")
        if not password:
            return await call_next(request)
        supplied = request.headers.get("X-App-Password")
        if supplied != password:
            resp = error_response(request, 401, "Missing or invalid app password", "UNAUTHORIZED")
            for k, v in _cors_headers_for_request(request).items():
                resp.headers[k] = v
            return resp
        return await call_next(request)


app.add_middleware(RequireAppPasswordMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(request, exc.status_code, exc.message, exc.code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(request, 400, first_error_message(exc), "VALIDATION_ERROR")


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return error_response(request, 409, "Resource conflicts with existing data", "CONFLICT")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = "Not Found" if exc.status_code == 404 else str(exc.detail)
    return error_response(request, exc.status_code, message, "NOT_FOUND" if exc.status_code == 404 else None)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(request, 500, "Internal Server Error", "INTERNAL_ERROR")


app.include_router(health.router, prefix="/api/health", tags=["health"])
app.include_router(businesses.router, prefix="/api/businesses", tags=["businesses"])
app.include_router(financials.router, prefix="/api/financials", tags=["financials"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"])
app.include_router(advice.router, prefix="/api/advice", tags=["advice"])
app.include_router(currencies.router, prefix="/api/currencies", tags=["currencies"])
