"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from installer_ops.api.routes import (
    certificates_router,
    health_router,
    invoices_router,
    timeline_router,
    timesheets_router,
)
from installer_ops.calculators import InvoicingNotAllowedError, OtherCostsCommentRequiredError
from installer_ops.config import settings
from installer_ops.database import create_schema, dispose_db, init_db
from installer_ops.errors import EntityNotFoundError, PermissionDeniedError
from installer_ops.logging_config import configure_logging
from installer_ops.services import (
    AlreadyInvoicedError,
    DailyHoursExceededError,
    InvalidTransitionError,
    RejectionReasonRequiredError,
)

logger = logging.getLogger(__name__)

# Domain errors answered with 400 and their error code
BAD_REQUEST_ERRORS: dict[type[Exception], str] = {
    InvalidTransitionError: "INVALID_TRANSITION",
    RejectionReasonRequiredError: "REJECTION_REASON_REQUIRED",
    DailyHoursExceededError: "DAILY_HOURS_EXCEEDED",
    InvoicingNotAllowedError: "INVOICING_NOT_ALLOWED",
    OtherCostsCommentRequiredError: "OTHER_COSTS_COMMENT_REQUIRED",
    AlreadyInvoicedError: "ALREADY_INVOICED",
    ValueError: "VALIDATION_ERROR",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging(settings.log_level)
    init_db()
    await create_schema()
    logger.info("Installer ops API %s started", settings.app_version)
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Installer Ops API",
        description="Scheduling timeline, timesheets and invoicing for installation crews",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(EntityNotFoundError)
    async def not_found_handler(request: Request, exc: EntityNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": str(exc), "code": "NOT_FOUND"},
        )

    @app.exception_handler(PermissionDeniedError)
    async def permission_handler(request: Request, exc: PermissionDeniedError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": str(exc), "code": "PERMISSION_DENIED"},
        )

    async def bad_request_handler(request: Request, exc: Exception) -> JSONResponse:
        code = next(
            (code for error, code in BAD_REQUEST_ERRORS.items() if isinstance(exc, error)),
            "VALIDATION_ERROR",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc), "code": code},
        )

    for error_class in BAD_REQUEST_ERRORS:
        app.add_exception_handler(error_class, bad_request_handler)

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(timeline_router, prefix="/api/v1")
    app.include_router(timesheets_router, prefix="/api/v1")
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(certificates_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
