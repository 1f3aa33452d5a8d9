"""
FastAPI Application Factory
===========================

Runnable application wiring ``Padlock`` from environment settings.

Routes:
    - /auth            : Login entry point (OAuth redirect or trusted POST)
    - /auth/callback   : OAuth callback
    - /me              : Current session (requires a valid session token)
    - /health          : Health check endpoint

Environment Variables:
    - PADLOCK_BASE_URL: Public base URL (default: http://localhost:8000)
    - GITHUB_CLIENT_ID / GITHUB_CLIENT_SECRET / GITHUB_SCOPES
    - MICROSOFT_CLIENT_ID / MICROSOFT_CLIENT_SECRET / MICROSOFT_SCOPES
    - MICROSOFT_ALLOWED_TENANTS: Comma-separated tenant ids
    - AUTH_SECRET: Session signing secret (sessions disabled when unset)
    - ALLOWED_ORIGINS: Comma-separated CORS origins
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn padlock.main:app --reload --host 0.0.0.0 --port 8000

    With custom log level:
        LOG_LEVEL=DEBUG uvicorn padlock.main:app --reload
"""

import logging
import sys
from typing import Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth.flow import Padlock
from .auth.routes import create_auth_router
from .config import Settings, get_settings
from .models import SessionPayload


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def create_app(
    padlock: Optional[Padlock] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI application around a Padlock instance.

    Args:
        padlock: Preconfigured orchestrator; built from ``settings`` when omitted
        settings: Environment settings; ``get_settings()`` when omitted

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("padlock.main")

    if padlock is None:
        padlock = Padlock(settings.to_padlock_config())

    app = FastAPI(
        title="Padlock",
        description="OAuth2 + PKCE and trusted-provider authentication",
        version="0.1.0",
    )
    app.state.padlock = padlock

    if settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(create_auth_router(padlock))

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        return {"status": "ok", "service": "padlock"}

    if padlock.config.session is not None:
        @app.get("/me", tags=["System"])
        async def me(session: SessionPayload = Depends(padlock.require_session)) -> dict:
            """Return the claims of the current session."""
            return session.to_claims()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Render anything that escaped the auth error mapping as a generic 500.
        """
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            }
        )

    logger.info(
        "Padlock application created",
        extra={
            "base_url": padlock.config.base_url,
            "providers": sorted(padlock.config.providers),
            "sessions_enabled": padlock.config.session is not None,
        },
    )
    return app


# Module-level instance for `uvicorn padlock.main:app`
app = create_app()


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "padlock.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
