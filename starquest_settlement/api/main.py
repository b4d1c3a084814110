"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from starquest_settlement.api.middleware import RequestIDMiddleware, MetricsMiddleware
from starquest_settlement.api.v1 import cron, settlements, tiers, credit
from starquest_settlement.infrastructure.observability.logging import setup_logging
from starquest_settlement.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="StarQuest Settlement Service",
        description="Interest, credit limit settlement and settlement notices for StarQuest families",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(cron.router, prefix="/v1", tags=["cron"])
    app.include_router(settlements.router, prefix="/v1", tags=["settlements"])
    app.include_router(tiers.router, prefix="/v1", tags=["interest-tiers"])
    app.include_router(credit.router, prefix="/v1", tags=["credit"])

    return app


app = create_app()
