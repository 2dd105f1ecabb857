# backend/courtbook/main.py
"""
FastAPI application for the Courtbook booking engine.

Routers are mounted under /api/v1; /metrics exposes the Prometheus
registry and /health a liveness probe.
"""

import logging
from typing import Dict

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.exceptions import DomainException
from .routes import prometheus
from .routes.v1 import (
    availability as availability_v1,
    bookings as bookings_v1,
    recurring_bookings as recurring_bookings_v1,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Courtbook API",
        description="Scheduling and availability engine for sports facility bookings",
        version="1.0.0",
    )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        # Domain errors that escape a route's own handling
        logger.warning(f"Unhandled domain exception on {request.url.path}: {exc.code}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": {"message": exc.message, "code": exc.code, "details": exc.details}},
        )

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(availability_v1.router, prefix="/resources")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(recurring_bookings_v1.router, prefix="/recurring-bookings")

    app.include_router(api_v1)
    app.include_router(prometheus.router)

    @app.get("/health", tags=["health"])
    def health() -> Dict[str, str]:
        return {"status": "healthy", "environment": settings.environment}

    return app


app = create_app()
