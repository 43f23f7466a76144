import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api import admin, exchange_rate, notices, orders, pi, products, refunds
from app.config import settings
from app.db_init import init_db, seed_exchange_rate
from app.errors import AppError, PersistenceError
from app.models import get_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("app.startup")


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def _get_cors_origins(cors_raw: str) -> list[str]:
    return [origin.strip() for origin in cors_raw.split(",") if origin.strip()]


def _validate_database_url_for_runtime(database_url: str) -> None:
    parsed = urlparse(database_url)
    scheme = parsed.scheme
    postgres_schemes = {"postgres", "postgresql", "postgresql+psycopg"}

    if not scheme:
        raise RuntimeError("DATABASE_URL is missing URL scheme (expected postgresql:// or postgresql+psycopg://).")
    if scheme == "sqlite":
        return
    if scheme not in postgres_schemes:
        raise RuntimeError(
            f"DATABASE_URL has unsupported scheme '{scheme}' "
            "(expected postgresql:// or postgresql+psycopg://)."
        )
    if not parsed.hostname:
        raise RuntimeError("DATABASE_URL is missing host.")
    if not parsed.path.lstrip("/"):
        raise RuntimeError("DATABASE_URL is missing database name in path.")


def _db_url_diagnostics(database_url: str) -> str:
    parsed = urlparse(database_url)
    host = parsed.hostname or "<missing>"
    port = parsed.port or "<missing>"
    db_name = parsed.path.lstrip("/") or "<missing>"
    scheme = parsed.scheme or "<missing>"
    return f"scheme={scheme}, host={host}, port={port}, database={db_name}"


def _validate_required_env_for_runtime() -> None:
    errors = [f"{name} is required." for name in settings.missing_required()]

    base_url = settings.PI_API_BASE_URL
    if not _is_http_url(base_url):
        errors.append("PI_API_BASE_URL must be an absolute http(s) URL, e.g. https://api.minepi.com/v2")

    origins = _get_cors_origins(settings.CORS_ORIGINS)
    if not origins:
        errors.append("CORS_ORIGINS must contain at least one origin or '*'.")
    else:
        invalid_origins = [origin for origin in origins if origin != "*" and not _is_http_url(origin)]
        if invalid_origins:
            errors.append(f"CORS_ORIGINS contains invalid URL(s): {', '.join(invalid_origins)}")

    if settings.REFUND_POLL_ATTEMPTS < 1:
        errors.append("REFUND_POLL_ATTEMPTS must be at least 1.")
    if settings.REFUND_POLL_INTERVAL_SECONDS * settings.REFUND_POLL_ATTEMPTS > settings.REFUND_POLL_DEADLINE_SECONDS:
        logger.warning(
            "Refund polling budget (%s x %ss) exceeds REFUND_POLL_DEADLINE_SECONDS=%s; polling stops at the deadline.",
            settings.REFUND_POLL_ATTEMPTS,
            settings.REFUND_POLL_INTERVAL_SECONDS,
            settings.REFUND_POLL_DEADLINE_SECONDS,
        )

    if errors:
        raise RuntimeError("Startup environment validation failed: " + " | ".join(errors))


@asynccontextmanager
async def lifespan(app: FastAPI):
    database_url = "<unavailable>"
    logger.info("Application startup initiated.")
    try:
        _validate_required_env_for_runtime()
        database_url = settings.DATABASE_URL
        logger.info("DATABASE_URL diagnostics at startup: %s", _db_url_diagnostics(database_url))
        _validate_database_url_for_runtime(database_url)
        init_db()
    except Exception as exc:
        diagnostics = (
            _db_url_diagnostics(database_url)
            if database_url != "<unavailable>"
            else "DATABASE_URL unavailable (missing or unreadable)."
        )
        logger.exception("Startup failed: %s. DATABASE_URL diagnostics: %s", str(exc), diagnostics)
        raise
    db = next(get_db())
    try:
        seed_exchange_rate(db)
    finally:
        db.close()
    logger.info("Application startup completed successfully.")
    yield


app = FastAPI(
    title="Pi Shop API",
    description=(
        "Orders, products and exchange rates for a shop that accepts Pi Network payments. "
        "Admin endpoints require the `x-admin-token` header."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Orders", "description": "Create, list and update orders."},
        {"name": "Products", "description": "Product catalogue."},
        {"name": "Exchange rate", "description": "Local currency per Pi."},
        {"name": "Pi payments", "description": "Approve, complete and cancel user payments."},
        {"name": "Refunds", "description": "Refunds paid back as app-to-user Pi payments."},
        {"name": "Admin", "description": "Shared-secret protected administration."},
    ],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    error = f"{location}: {message}" if location else message
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": error},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s raised %s", request.method, request.url.path, exc.__class__.__name__)
    if isinstance(exc, SQLAlchemyError):
        error = PersistenceError("Database operation failed")
    else:
        error = AppError("Internal server error")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error.to_payload())


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(settings.CORS_ORIGINS),
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", "x-admin-token"],
)

app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(products.router, prefix="/products", tags=["Products"])
app.include_router(exchange_rate.router, prefix="/exchange-rate", tags=["Exchange rate"])
app.include_router(notices.router, prefix="/maintenance-notice", tags=["Admin"])
app.include_router(pi.router, prefix="/pi", tags=["Pi payments"])
app.include_router(refunds.router, prefix="/refund", tags=["Refunds"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/")
def root():
    return {"status": "ok", "service": "Pi Shop API"}


@app.get("/health")
def health():
    return {"status": "ok"}
