import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from app.core.config import settings
from app.api.v1 import api_router
from app.db.session import check_db_connection
from app.core.errors import register_exception_handlers
from app.core.logging_config import setup_logging, RequestLoggingMiddleware
from app.core.rate_limiter import limiter

# JSON logs in production, colored console output in development
setup_logging()
logger = logging.getLogger("perftracker")

APP_VERSION = "1.0.0"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.
    """
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    environment: str
    checks: dict[str, bool]


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Employee records, department history, performance reviews and goals",
    version=APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,  # Disabled in production
    redoc_url="/redoc" if settings.DEBUG else None,
)

app.state.limiter = limiter
register_exception_handlers(app)

# Cookies need credentials, so origins must be explicit (never "*")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router, prefix=settings.API_V1_STR)

# Exposes /metrics for Prometheus scraping
instrumentator = Instrumentator(
    should_group_status_codes=False,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/health", "/metrics"],
    inprogress_name="perftracker_inprogress_requests",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=False)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Returns 503 when the database is unreachable.
    """
    db_healthy = await check_db_connection()

    response = HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        service="perftracker-api",
        version=APP_VERSION,
        environment=settings.ENVIRONMENT,
        checks={"database": db_healthy},
    )

    if not db_healthy:
        logger.warning("Health check failed: database unreachable")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response


@app.get("/")
async def root():
    return {"success": True, "message": f"Welcome to the {settings.PROJECT_NAME} API"}
