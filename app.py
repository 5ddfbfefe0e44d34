"""
CeyLog FastAPI Application

This is the main FastAPI application entry point for CeyLog, a trade-assistance
API for exporters: AI market reports, UK buyer matchmaking, marketing copy,
Pro membership billing and emailed report exports.

Example usage:
    # Start the server
    uvicorn app:app --host 0.0.0.0 --port 8000 --reload

    # Health check
    curl http://localhost:8000/health
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from api.routes.ai import router as ai_router
from api.routes.pay import router as payment_router
from api.routes.products import router as products_router
from api.routes.reports import router as reports_router
from core.config import Settings
from core.errors import CeyLogError, ceylog_error_handler
from core.logging import RequestLoggingMiddleware, get_logger, setup_logging
from core.models import first_validation_message
from core.rate_limit import limiter
from core.services import ServiceContainer, build_services

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all HTTP responses.

    The API serves JSON only, so the content security policy denies everything.

    Example:
        app.add_middleware(SecurityHeadersMiddleware)
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Strict Transport Security - force HTTPS for 1 year including subdomains
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body/query validation errors in the shared ``{"error": ...}`` envelope."""
    return JSONResponse(status_code=400, content={"error": first_validation_message(exc)})


def create_app(services: Optional[ServiceContainer] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        services: Prebuilt service container; built from ``settings`` at
            startup when omitted
        settings: Runtime settings; read from the environment when omitted

    Returns:
        FastAPI: Configured FastAPI application instance

    Example:
        >>> app = create_app(services=fake_services)
        >>> client = TestClient(app)
    """
    if services is not None:
        settings = services.settings
    settings = settings or Settings.from_env()
    setup_logging(level=settings.log_level, format_type=settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = getattr(app.state, "services", None) is None
        if owned:
            logger.info("Starting CeyLog API")
            app.state.services = build_services(settings)
        yield
        if owned:
            logger.info("Shutting down CeyLog API")
            await app.state.services.aclose()

    tags_metadata = [
        {"name": "reports", "description": "Report export and email delivery"},
        {"name": "ai", "description": "AI market analysis, buyer matching and marketing copy"},
        {"name": "products", "description": "Product registry"},
        {"name": "billing", "description": "Pro membership checkout and subscription status"},
        {"name": "health", "description": "System health and status endpoints"},
    ]

    app = FastAPI(
        title="CeyLog",
        description="Trade assistance API for exporters",
        version="0.1.0",
        docs_url="/api-docs",
        redoc_url="/redoc",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # Add security headers middleware (should be first to apply to all responses)
    app.add_middleware(SecurityHeadersMiddleware)

    # Configure CORS
    # With credentials, browsers require explicit origins (not *)
    _allow_origins = settings.cors_origins if settings.cors_origins != ["*"] else ["https://ceylog.com"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )

    app.add_middleware(RequestLoggingMiddleware)

    # Add rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(CeyLogError, ceylog_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include API routers
    app.include_router(reports_router)
    app.include_router(ai_router)
    app.include_router(products_router)
    app.include_router(payment_router)

    @app.get("/health", tags=["health"])
    async def health_check() -> JSONResponse:
        """
        Health check endpoint for monitoring and load balancer readiness.

        Example:
            >>> # GET /health
            >>> {"status": "healthy", "service": "ceylog", "version": "0.1.0"}
        """
        health_data: Dict[str, Any] = {
            "status": "healthy",
            "service": "ceylog",
            "version": "0.1.0"
        }
        return JSONResponse(content=health_data, status_code=200)

    return app


app = create_app()


if __name__ == "__main__":
    """
    Development server entry point.
    Run with: python app.py
    """
    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
