"""Keys Depot - Main Application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from keysdepot.api.depot import router as depot_router
from keysdepot.core.config import settings
from keysdepot.dependencies import get_vault_service
from keysdepot.errors import DepotError
from keysdepot.logging_hardening import configure_logging
from keysdepot.observability.tracing import setup_tracing
from keysdepot.routers import health

# Initialize logging redaction filters early
configure_logging(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup checks (fail fast in prod)
    settings.check_production_secrets()
    # Builds the adapters now; in dev this also creates the schema on the service engine
    app.dependency_overrides.get(get_vault_service, get_vault_service)()
    logger.info(f"Keys Depot starting (mode={settings.MODE}, store={settings.STORE_BACKEND})")
    yield
    logger.info("Shutdown complete.")


app = FastAPI(
    title="Keys Depot",
    description="Multi-tenant secret vault for named key material",
    version="0.1.0",
    lifespan=lifespan
)

if settings.TRACING_ENABLED:
    setup_tracing(app, settings.OTEL_EXPORTER_OTLP_ENDPOINT, settings.is_dev)


@app.exception_handler(DepotError)
async def depot_error_handler(request: Request, exc: DepotError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies share the VALIDATION_FAILED envelope with service-side checks
    fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "VALIDATION_FAILED",
                "message": "Request body is invalid",
                "details": {"fields": fields},
            }
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    # Errors raised through raise_depot_error already carry the envelope
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = {"detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


app.include_router(depot_router.router, prefix="/v1", tags=["Depot"])
app.include_router(health.router, tags=["Health"])
