import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from app.api.deps import build_services
from app.api.errors import map_error_code
from app.api.routes import enrichment, health, leads, messages
from app.config import settings
from app.observability.metrics import metrics
from app.services.errors import LeadDeskError

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _init_sentry() -> None:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[
            FastApiIntegration(auto_enabling_instrumentations=False),
            LoggingIntegration(level=logging.INFO),
        ],
        traces_sample_rate=0.1,
        environment=settings.environment,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build shared services on startup and release provider clients on shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    if settings.sentry_dsn:
        _init_sentry()

    # Services may already be installed on app.state.
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services()
    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    services = getattr(app.state, "services", None)
    if services is not None:
        services.close()
        app.state.services = None


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Lead enrichment and outreach drafting for the WalletConnect Pay sales team",
    lifespan=lifespan,
    debug=settings.debug,
)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(LeadDeskError)
async def lead_desk_error_handler(request: Request, exc: LeadDeskError) -> JSONResponse:
    """Service errors that escape a route still map onto their HTTP status."""
    logger.error(
        "api.unhandled_service_error",
        extra={"path": request.url.path, "code": exc.code, "error": str(exc)},
    )
    return JSONResponse(status_code=map_error_code(exc.code), content={"detail": str(exc), "code": exc.code})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log and time every request."""
    with metrics.timer("http.request_ms", tags={"method": request.method}) as tags:
        response = await call_next(request)
        tags["status"] = response.status_code
    logger.info(
        "http.request",
        extra={"method": request.method, "path": request.url.path, "status": response.status_code},
    )
    return response


app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(leads.router, prefix="/api", tags=["leads"])
app.include_router(enrichment.router, prefix="/api", tags=["enrichment"])
app.include_router(messages.router, prefix="/api", tags=["outreach"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.environment,
    }
