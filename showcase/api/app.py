"""FastAPI application factory for the prototype showcase.

Creates and configures the FastAPI app with sessions, CORS, audit
logging, rate limiting and all route modules registered.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.sessions import SessionMiddleware

from .. import __version__
from ..core.audit import AuditService
from ..core.config import ShowcaseSettings, get_settings
from ..core.links.link_manager import LinkManager
from ..core.notifications import EmailService, SlackService
from ..core.prototype import PrototypeManager, UploadService
from ..core.users import UserManager
from .core import ServiceUnavailableError, register_exception_handlers
from .core.audit_middleware import AuditLogMiddleware
from .core.rate_limit import configure_limiter

logger = logging.getLogger(__name__)


def create_app(
    db_manager,
    settings: Optional[ShowcaseSettings] = None,
    upload_service: Optional[UploadService] = None,
    email_service: Optional[EmailService] = None,
    slack_service: Optional[SlackService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        db_manager: DatabaseManager instance
        settings: Application settings (defaults to the loaded config)
        upload_service: UploadService instance (optional)
        email_service: EmailService instance (optional)
        slack_service: SlackService instance (optional)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Prototype Showcase API",
        description="Share HTML prototypes through magic links and collect feedback",
        version=__version__,
    )

    # Audit middleware first so the session middleware wraps it
    app.add_middleware(AuditLogMiddleware)

    # Session middleware (required for auth sessions and magic-link state)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        max_age=settings.session_max_age_hours * 3600,
        same_site="lax",
        https_only=settings.is_production,
    )

    # CORS for the single-page frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting
    app.state.limiter = configure_limiter(settings)

    # Store shared dependencies on app state
    upload_service = upload_service or UploadService(settings.upload_dir, settings.max_upload_size_mb)
    app.state.settings = settings
    app.state.db_manager = db_manager
    app.state.upload_service = upload_service
    app.state.prototype_manager = PrototypeManager(db_manager, upload_service)
    app.state.link_manager = LinkManager(db_manager, settings.client_url)
    app.state.user_manager = UserManager(db_manager, settings.invite_expiry_days)
    app.state.audit_service = AuditService(db_manager)
    app.state.email_service = email_service or EmailService(settings.smtp, settings.invite_expiry_days)
    app.state.slack_service = slack_service or SlackService(db_manager)

    register_exception_handlers(app, settings.is_production)

    # Register routers
    from .routes.fastapi_auth import router as auth_router
    from .routes.prototypes import router as prototypes_router
    from .routes.links import router as links_router
    from .routes.viewer import router as viewer_router
    from .routes.prospect import router as prospect_router
    from .routes.viewer_dashboard import router as viewer_dashboard_router
    from .routes.admin import router as admin_router
    from .routes.analytics import router as analytics_router
    from .routes.fastapi_settings import router as settings_router

    app.include_router(auth_router, prefix="/api")
    app.include_router(prototypes_router, prefix="/api")
    app.include_router(links_router, prefix="/api")
    app.include_router(viewer_router, prefix="/api")
    app.include_router(prospect_router, prefix="/api")
    app.include_router(viewer_dashboard_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")
    app.include_router(settings_router, prefix="/api")

    @app.get("/api/health")
    async def health_check():
        try:
            db_manager.ping()
        except SQLAlchemyError as e:
            logger.error(f"Health check failed: {e}")
            raise ServiceUnavailableError("Database unavailable")
        return {"status": "ok", "service": "showcase"}

    logger.info("FastAPI app created with all routes registered")
    return app
