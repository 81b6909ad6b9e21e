"""
ServiceConnect - Main FastAPI Application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from serviceconnect.core.config import settings
from serviceconnect.core.logging import setup_logging, get_logger
from serviceconnect.core.middleware import setup_middleware, setup_exception_handlers
from serviceconnect.api.routes import router as api_router
from serviceconnect.db import models  # noqa: F401  רישום הטבלאות ב-metadata
from serviceconnect.db.database import engine, Base

# Setup logging before anything else
setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
    app_name=settings.APP_NAME
)

logger = get_logger(__name__)


def _parse_allowed_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


_OPENAPI_TAGS = [
    {"name": "jobs", "description": "Posting jobs, unlock state and paid unlocks of customer contacts."},
    {"name": "wallets", "description": "Provider prepaid wallets: balance, recharge and ledger history."},
    {"name": "users", "description": "Customers, providers and provider profiles."},
    {"name": "admin", "description": "Provider approval, user blocking and unlock prices (X-Admin-API-Key)."},
    {"name": "Health", "description": "Liveness and readiness probes."},
]


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description=(
        "Local services marketplace backend. Providers pay from a prepaid wallet "
        "to unlock a customer's contact; each job accepts a limited number of unlocks."
    ),
    openapi_tags=_OPENAPI_TAGS,
)

# Setup middleware (correlation ID, request logging, security headers)
setup_middleware(app)
setup_exception_handlers(app)

allowed_origins = _parse_allowed_origins(settings.ALLOWED_ORIGINS)

# Safe dev default to support local frontend development without opening CORS in production.
if not allowed_origins and settings.DEBUG:
    allowed_origins = [
        "http://localhost",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "X-Correlation-ID", "X-Admin-API-Key"],
    )

app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup() -> None:
    """Initialize database tables on startup"""
    logger.info("Starting application", extra_data={"app_name": settings.APP_NAME})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


@app.on_event("shutdown")
async def shutdown() -> None:
    """Cleanup on shutdown"""
    logger.info("Shutting down application")
    # סגירת חיבורי מסד הנתונים
    await engine.dispose()
    logger.info("Database connections disposed")


@app.get(
    "/health",
    summary="Liveness probe",
    description="The process is up and responding. Does not check the database.",
    tags=["Health"],
)
async def health_check() -> dict[str, str]:
    """Liveness probe: התהליך חי ומגיב."""
    return {"status": "healthy"}


@app.get(
    "/health/ready",
    summary="Readiness probe",
    description="Checks the database. status=healthy when it answers, otherwise degraded with 503.",
    responses={
        200: {"content": {"application/json": {"example": {"status": "healthy", "db": "ok"}}}},
        503: {"content": {"application/json": {"example": {"status": "degraded", "db": "error: db_unavailable"}}}},
    },
    tags=["Health"],
)
async def readiness_check() -> JSONResponse:
    """Readiness probe: בדיקת מסד הנתונים."""
    from serviceconnect.domain.services.health_service import check_readiness

    result = await check_readiness()
    status_code = 200 if result["status"] == "healthy" else 503
    return JSONResponse(content=result, status_code=status_code)
