import logging
import time
from contextlib import asynccontextmanager
from urllib.parse import urlparse
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import admin, order, payments, seller
from app.config import settings
from app.db_init import init_db
from app.services.errors import CheckoutError
from app.webhooks import gateway_webhook

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("app.startup")

REQUEST_ID_HEADER = "X-Request-ID"


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
    errors = []
    warnings = []

    if not settings.JWT_SECRET.strip():
        errors.append("JWT_SECRET is required.")

    if not _is_http_url(settings.BASE_URL):
        errors.append("BASE_URL must be an absolute http(s) URL, e.g. https://shop.example.com")

    origins = _get_cors_origins(settings.CORS_ORIGINS)
    if not origins:
        errors.append("CORS_ORIGINS must contain at least one comma-separated origin URL.")
    else:
        invalid_origins = [origin for origin in origins if not _is_http_url(origin)]
        if invalid_origins:
            errors.append(f"CORS_ORIGINS contains invalid URL(s): {', '.join(invalid_origins)}")

    if not (settings.GATEWAY_KEY_ID and settings.GATEWAY_KEY_SECRET):
        warnings.append("GATEWAY_KEY_ID/GATEWAY_KEY_SECRET are not set; checkout is disabled.")
    if not settings.GATEWAY_WEBHOOK_SECRET:
        warnings.append("GATEWAY_WEBHOOK_SECRET is not set; every webhook will be rejected.")

    if warnings:
        logger.warning("Startup environment warnings: %s", " | ".join(warnings))

    if errors:
        raise RuntimeError("Startup environment validation failed: " + " | ".join(errors))


@asynccontextmanager
async def lifespan(app: FastAPI):
    database_url = "<unavailable>"
    logger.info("Application startup initiated.")
    try:
        database_url = settings.DATABASE_URL
        logger.info("DATABASE_URL diagnostics at startup: %s", _db_url_diagnostics(database_url))
        _validate_database_url_for_runtime(database_url)
        _validate_required_env_for_runtime()
        init_db()
    except Exception as exc:
        diagnostics = (
            _db_url_diagnostics(database_url)
            if database_url != "<unavailable>"
            else "DATABASE_URL unavailable (missing or unreadable)."
        )
        logger.exception(
            "Database initialization failed: %s. DATABASE_URL diagnostics: %s",
            str(exc),
            diagnostics,
        )
        raise
    logger.info("Application startup completed successfully.")
    yield


app = FastAPI(
    title="Storefront Checkout API",
    description=(
        "Payment links, order confirmation and fulfilment for a multi-vendor storefront. "
        "Use **Authorize** with a bearer JWT for protected endpoints."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Payments", "description": "Start checkout and confirm payments (requires auth)."},
        {"name": "Orders", "description": "My orders, cancellations and returns (requires auth)."},
        {"name": "Seller", "description": "Dispatch requests and payouts for shop owners."},
        {"name": "Admin", "description": "Dispatch approval, delivery, payouts and cleanup."},
        {"name": "Webhooks", "description": "Called by the payment gateway and the customer's browser."},
    ],
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        **openapi_schema.get("components", {}).get("securitySchemes", {}),
        "bearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        },
    }
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(settings.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Tag every request with a correlation id for support lookups."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    request.state.request_id = request_id
    start = time.perf_counter()

    response = await call_next(request)

    duration = (time.perf_counter() - start) * 1000
    response.headers["X-Response-Time-Ms"] = f"{duration:.2f}"
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    request_id = getattr(request.state, "request_id", None)
    logger.warning(
        "%s %s failed with %s (request %s)",
        request.method,
        request.url.path,
        exc.code,
        request_id,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "detail": exc.message,
            "code": exc.code,
            "requestId": request_id,
        },
    )


app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])
app.include_router(order.router, prefix="/api/orders", tags=["Orders"])
app.include_router(seller.router, prefix="/api/seller", tags=["Seller"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(gateway_webhook.router, prefix="/webhooks", tags=["Webhooks"])


@app.get("/")
def root():
    return {"status": "ok", "service": "Storefront Checkout API"}


@app.get("/health")
def health():
    return {"status": "ok"}
