"""FastAPI application for the inflight catering order-to-cash backend."""
from __future__ import annotations

import logging
import os
from typing import Optional

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import app_context
from .app.errors import GatewayError, ServiceError
from .app.routes.health import router as health_router
from .app.routes.invoices import router as invoices_router
from .app.routes.orders import router as orders_router
from .app.routes.payments import router as payments_router
from .app.routes.webhooks import router as webhooks_router
from .app.services.container import ServiceContainer, build_container
from .settings import load_database_config, load_log_level

load_dotenv()

logger = logging.getLogger("catering")

DB_CONFIG = load_database_config()


def get_conn():
    return psycopg2.connect(**DB_CONFIG.as_connect_kwargs())


def _cors_origins() -> list:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, GatewayError):
        logger.error(
            "Gateway error on %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
            extra={"gateway_code": exc.gateway_code, "gateway_context": exc.context},
        )
    elif exc.status_code >= 500:
        logger.error("Service error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=dict(exc.payload))


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the API; the container defaults to PostgreSQL-backed services."""

    logging.basicConfig(level=load_log_level())

    if container is None:
        app_context.configure(get_conn=get_conn)
        container = build_container()

    app = FastAPI(title="Inflight Catering API")
    app.state.services = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ServiceError, handle_service_error)

    app.include_router(health_router)
    app.include_router(orders_router)
    app.include_router(invoices_router)
    app.include_router(payments_router)
    app.include_router(webhooks_router)
    return app


app = create_app()
