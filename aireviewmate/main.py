"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.
It sets up all routes, middleware, and exception handlers.

Design Decisions:
- Use lifespan events for startup/shutdown
- CORS restricted to the configured front-end origin
- Every error leaves as JSON {"error", ...}; stack traces only in development
"""

import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aireviewmate import __version__
from aireviewmate.config import Settings, get_settings
from aireviewmate.errors import AppError, QuotaExceededError
from aireviewmate.logging_config import get_logger, setup_logging
from aireviewmate.models import HealthResponse
from aireviewmate.routes import github_router, review_router

# Initialize logging first
setup_logging()

logger = get_logger(__name__)

AVAILABLE_ROUTES = (
    "POST /api/review, GET /api/health, GET /api/github/login, "
    "GET /api/github/callback, GET /api/github/repos, POST /api/github/pull-request"
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Credentials are not validated here; each component raises
    ConfigurationError when it first needs a missing value.
    """
    settings: Settings = app.state.settings
    logger.info(
        "Starting AIReviewMate API",
        host=settings.host,
        port=settings.port,
        environment=settings.environment,
        cors_origin=settings.client_url,
        gemini_configured=settings.has_gemini_api_key,
        github_login_configured=bool(
            settings.github_client_id and settings.github_client_secret
            and settings.github_redirect_uri
        )
    )

    yield

    logger.info("Shutting down AIReviewMate API")


def _with_stack(request: Request, body: Dict[str, Any], exc: BaseException) -> Dict[str, Any]:
    settings: Settings = request.app.state.settings
    if settings.is_development:
        body["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return body


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use; defaults to the cached environment settings

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="AIReviewMate",
        description="AI code review with GitHub pull request automation",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Register routes
    app.include_router(review_router)
    app.include_router(github_router)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Render taxonomy errors with their own status code."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Request failed",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error=exc.message,
            error_type=type(exc).__name__
        )

        headers = None
        if isinstance(exc, QuotaExceededError) and exc.retry_after is not None:
            headers = {"Retry-After": str(exc.retry_after)}

        return JSONResponse(
            status_code=exc.status_code,
            content=_with_stack(request, exc.to_dict(), exc),
            headers=headers
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed request bodies are a 400, never FastAPI's default 422."""
        errors = exc.errors()
        if any(err.get("type") == "json_invalid" for err in errors):
            content = {"error": "Invalid JSON in request body"}
        else:
            first = errors[0] if errors else {}
            location = ".".join(str(part) for part in first.get("loc", ()))
            content = {
                "error": "Invalid request",
                "message": f"{location}: {first.get('msg', 'invalid value')}"
            }
        logger.warning("Invalid request", path=request.url.path, error=content["error"])
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException
    ) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            logger.warning("Route not found", method=request.method, path=request.url.path)
            content = {
                "error": f"Route not found: {request.method} {request.url.path}",
                "message": f"Available routes: {AVAILABLE_ROUTES}"
            }
        else:
            content = {"error": str(exc.detail)}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__
        )

        status_code = getattr(exc, "status_code", None)
        if not isinstance(status_code, int) or not 400 <= status_code < 600:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        return JSONResponse(
            status_code=status_code,
            content=_with_stack(request, {
                "error": str(exc) or "The Reaper could not be summoned… internal server error"
            }, exc)
        )

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """
        Health check endpoint.

        Returns basic health status for load balancers and monitors.
        """
        return HealthResponse(timestamp=datetime.now(timezone.utc))

    return app


# Create the application instance
app = create_app()
