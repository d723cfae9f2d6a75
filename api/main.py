"""
Main FastAPI application for the helpdesk triage engine.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routes import chatbot, triage
from .services import Services, get_services, initialize_services
from .middleware.metrics import MetricsMiddleware, metrics_endpoint
from .middleware.rate_limit import RateLimitMiddleware
from config.settings import get_settings
from llm.errors import StoreError, TicketNotFoundError, ValidationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Triage API starting up...")

    settings = get_settings()
    session_factory = None
    if settings.database_url:
        from database.session import init_db
        session_factory = await init_db(settings.database_url)

    initialize_services(session_factory=session_factory)
    logger.info("Triage API ready")
    yield
    logger.info("Triage API shutting down...")

    if settings.database_url:
        from database.session import close_db
        await close_db()


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def ticket_not_found_handler(request: Request, exc: TicketNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Ticket store error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": "Ticket store unavailable"})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.api_title,
        description="AI triage for helpdesk tickets: replies, status transitions and escalation.",
        version=settings.api_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics middleware
    app.add_middleware(MetricsMiddleware)

    # Rate limiting middleware
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=settings.rate_limit_per_minute,
    )

    # Domain errors; TicketNotFoundError is a StoreError, the most specific handler wins
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(TicketNotFoundError, ticket_not_found_handler)
    app.add_exception_handler(StoreError, store_error_handler)

    # --- Core routers ---
    app.include_router(triage.router, prefix="/api/v1", tags=["Triage"])
    app.include_router(chatbot.router, prefix="/api/v1", tags=["ChatBot"])

    # --- Prometheus metrics endpoint ---
    app.get("/metrics", tags=["Monitoring"])(metrics_endpoint)

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "service": settings.api_title,
            "version": settings.api_version,
            "status": "operational",
            "docs": "/docs",
        }

    # Health check
    @app.get("/health")
    async def health(services: Services = Depends(get_services)):
        return {
            "status": "healthy" if services.is_ready else "degraded",
            "services": services.health(),
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
