"""
Temple Portal Backend - FastAPI Application
============================================
Temples, events, services and admin management over Firestore and Firebase Auth.

Security Architecture:
- Firebase Admin SDK (backend-only)
- Firebase ID tokens verified on every privileged request
- Admin grants read from Firestore and enforced here, never in the client
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from temple_portal.core.config import Settings, configure_logging
from temple_portal.core.errors import AppError
from temple_portal.core.firebase import FirebaseContext, initialize_firebase
from temple_portal.routers import admin, events, notifications, profile, quick_links, services, temples

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as `{"error": message}`."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        parts = []
        for item in exc.errors():
            field = ".".join(str(p) for p in item.get("loc", ())[1:])
            parts.append(f"{field}: {item.get('msg')}" if field else item.get("msg", ""))
        return JSONResponse(status_code=400, content={"error": "; ".join(parts) or "Invalid request"})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[FirebaseContext] = None
) -> FastAPI:
    """
    Build the application.

    When `context` is given (tests), Firebase is not initialized.
    """
    settings = settings or (context.settings if context else Settings())
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - initialize Firebase on startup."""
        if getattr(app.state, "context", None) is None:
            app.state.context = initialize_firebase(settings)
        logger.info("%s started (%s)", settings.app_name, settings.environment)
        yield
        logger.info("Shutting down %s", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        description="Temple management backend API",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include API Routers
    app.include_router(admin.router, prefix="/api", tags=["Admin"])
    app.include_router(temples.router, prefix="/api/temples", tags=["Temples"])
    app.include_router(events.router, prefix="/api/events", tags=["Events"])
    app.include_router(profile.router, prefix="/api/profile", tags=["Profile"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
    app.include_router(services.router, prefix="/api/services", tags=["Services"])
    app.include_router(quick_links.router, prefix="/api/quick-links", tags=["Quick Links"])

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {
            "status": "online",
            "service": settings.app_name,
            "version": "1.0.0"
        }

    @app.get("/health")
    async def health_check():
        """Detailed health check."""
        return {
            "status": "healthy",
            "firebase": "connected" if app.state.context is not None else "not initialized",
            "database": "firestore"
        }

    return app


app = create_app()
