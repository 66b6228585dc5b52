"""CODEMA council administration FastAPI application."""
import logging
import os
from contextlib import asynccontextmanager

# macOS: so WeasyPrint finds pango/glib when generating PDFs (only if not already set)
if os.name == "posix" and os.environ.get("DYLD_LIBRARY_PATH") in (None, ""):
    _brew_lib = "/opt/homebrew/opt/glib/lib:/opt/homebrew/opt/pango/lib:/opt/homebrew/lib"
    if os.path.exists("/opt/homebrew/opt/glib/lib"):
        os.environ["DYLD_LIBRARY_PATH"] = _brew_lib

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from codema.core.attachments.router import router as attachments_router
from codema.core.audit.router import router as audit_router
from codema.core.auth.router import router as auth_router
from codema.core.config import settings
from codema.core.exceptions import AppException
from codema.core.exceptions.handlers import (
    app_exception_handler,
    http_exception_handler,
    sqlalchemy_db_error_handler,
    validation_exception_handler,
)
from codema.core.logging_config import configure_logging
from codema.core.protocols.router import router as protocols_router
from codema.modules.archive.router import router as archive_router
from codema.modules.complaints.router import router as complaints_router
from codema.modules.dashboard.router import router as dashboard_router
from codema.modules.fma.router import router as fma_router
from codema.modules.meetings.router import router as meetings_router
from codema.modules.notifications.router import router as notifications_router
from codema.modules.processes.router import router as processes_router
from codema.modules.resolutions.router import router as resolutions_router
from codema.modules.reports.router import router as reports_router
from codema.modules.users.router import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging()
    logger.info("Starting %s (%s)", app.title, settings.app_env)
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="CODEMA",
        description="Administrative API for a municipal environmental council",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_db_error_handler)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(protocols_router, prefix="/api/v1")
    app.include_router(attachments_router, prefix="/api/v1")
    app.include_router(audit_router, prefix="/api/v1")
    app.include_router(complaints_router, prefix="/api/v1")
    app.include_router(meetings_router, prefix="/api/v1")
    app.include_router(resolutions_router, prefix="/api/v1")
    app.include_router(archive_router, prefix="/api/v1")
    app.include_router(processes_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1")
    app.include_router(fma_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")
    app.include_router(dashboard_router, prefix="/api/v1")

    return app


app = create_app()
