"""
ASGI entrypoint.

    uvicorn main:app

`app` is built on first access so that importing this module (tests do)
never needs Supabase credentials. `uvicorn --factory main:create_app`
works too.
"""

from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Core
from core.config import settings
from core.config_validator import validate_config_on_startup
from core.errors import AccessDenied
from core.logging_config import logger
from services.access_service import AccessControlService, build_access_service


# -------------------------------------------------
# Create the Application
# -------------------------------------------------
def create_app(access_service: Optional[AccessControlService] = None) -> FastAPI:
    """
    Build the app with one shared access service.

    Pass `access_service` to inject a service over another store (tests do);
    otherwise the Supabase-backed service is built from settings.
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Tour-scoped authorization and data isolation",
    )

    if access_service is None:
        validate_config_on_startup()
        access_service = build_access_service()
    app.state.access_service = access_service

    # -------------------------------------------------
    # Startup logging
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        rules = ", ".join(r.resource_type for r in access_service.get_isolation_rules())
        logger.info(f"Starting {settings.PROJECT_NAME} (isolation rules: {rules})")

    # -------------------------------------------------
    # Error handling
    # -------------------------------------------------
    @app.exception_handler(AccessDenied)
    async def handle_access_denied(request: Request, exc: AccessDenied):
        logger.warning(f"HTTP 403 at {request.url}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "resource_type": exc.resource_type,
                "resource_id": exc.resource_id,
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (401, 403, 500):
            logger.warning(
                f"HTTP {exc.status_code} at {request.url}: {exc.detail}"
            )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error at %s", request.url, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


_app: Optional[FastAPI] = None


def __getattr__(name: str):
    global _app
    if name == "app":
        if _app is None:
            _app = create_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
