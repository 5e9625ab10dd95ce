"""Moderation Desk: admin moderation backend for a content-sharing platform."""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from moddesk.errors import ModerationError, RateLimitExceeded

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    """Render every client-facing failure in the shared error envelope."""

    @app.exception_handler(ModerationError)
    async def moderation_error_handler(request: Request, exc: ModerationError) -> JSONResponse:
        headers = None
        if isinstance(exc, RateLimitExceeded):
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {"field": str(err["loc"][-1]) if err.get("loc") else "request", "message": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse(
            {
                "status": "error",
                "kind": "validation",
                "message": "Validation failed",
                "errors": errors,
            },
            status_code=400,
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(f"Store failure on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            {
                "status": "error",
                "kind": "unavailable",
                "message": "The service is temporarily unavailable. Please try again later.",
            },
            status_code=503,
        )


def create_app() -> FastAPI:
    """Create and configure the Moderation Desk application."""
    from moddesk.config import get_settings
    from moddesk.models.tables import utcnow
    from moddesk.services.rate_limiter import RateLimiter, RouteClass, policies_from_settings, rate_limit

    settings = get_settings()
    app = FastAPI(
        title="Moderation Desk",
        description="Search, review and categorize submitted content.",
        version=settings.MODDESK_VERSION,
    )

    # Shared request state
    app.state.rate_limiter = RateLimiter(policies_from_settings(settings))
    app.state.clock = utcnow

    _register_error_handlers(app)

    # Database init
    from moddesk.models.database import SessionLocal, init_db
    init_db()

    if settings.MODDESK_SEED_CATEGORIES:
        from moddesk.services.categories import CategoryStore
        db = SessionLocal()
        try:
            CategoryStore(db).seed_hierarchy()
        finally:
            db.close()

    # Routes
    from moddesk.routes.admin import router as admin_router
    from moddesk.routes.api import router as api_router
    from moddesk.routes.categories import router as categories_router
    throttled = [Depends(rate_limit(RouteClass.API))]
    app.include_router(api_router, prefix="/api")
    app.include_router(categories_router, prefix="/api", dependencies=throttled)
    app.include_router(admin_router, prefix="/api", dependencies=throttled)

    logger.info("Moderation Desk is ready.")
    return app
