"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from flowsend_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from flowsend_gateway.api.v1 import chat, ledger, ramp, sponsorship
from flowsend_gateway.domain.exceptions import ConfigurationError, InvalidParametersError, LedgerAPIError
from flowsend_gateway.infrastructure.observability.logging import setup_logging
from flowsend_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain exceptions that escape a route to HTTP responses"""

    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError):
        return JSONResponse(status_code=503, content={"detail": {"error": "not_configured", "message": str(exc)}})

    @app.exception_handler(InvalidParametersError)
    async def invalid_parameters(request: Request, exc: InvalidParametersError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(LedgerAPIError)
    async def ledger_error(request: Request, exc: LedgerAPIError):
        return JSONResponse(status_code=502, content={"detail": {"error": "upstream_error", "message": str(exc)}})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logging.exception(
            "Unhandled error", extra={"request_id": getattr(request.state, "request_id", "unknown")}
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="FlowSend Gateway",
        description="Conversational stablecoin banking: chat actions, ramp sessions and ledger passthrough",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(chat.router, prefix="/v1", tags=["chat"])
    app.include_router(ramp.router, prefix="/v1", tags=["ramp"])
    app.include_router(ledger.router, prefix="/v1", tags=["ledger"])
    app.include_router(sponsorship.router, prefix="/v1", tags=["sponsorship"])

    return app


app = create_app()
