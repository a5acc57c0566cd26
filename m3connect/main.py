# m3connect/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import Depends, FastAPI

from m3connect.core.auth import get_snapshot
from m3connect.core.auth_controller import AuthSnapshot
from m3connect.core.browser_sessions import SessionRegistry
from m3connect.core.config import get_settings
from m3connect.core.recovery import RecoveryRedirectMiddleware, RecoveryRouter
from m3connect.core.supabase_client import (
    connect_admin_profiles,
    connect_portal_backend,
    connect_recovery_identity,
)
from m3connect.database import create_db_and_tables
from m3connect.repositories.profile_repo import ProfileRepository
from m3connect.schemas.auth import AuthStateRead
from m3connect.services.recovery_service import RecoveryService

# Import models so SQLModel metadata is populated before create_all()
from m3connect.models import resource as _resource_models  # noqa: F401
from m3connect.models import event as _event_models  # noqa: F401
from m3connect.models import partner as _partner_models  # noqa: F401
from m3connect.models import lead as _lead_models  # noqa: F401

# Routers
from m3connect.routers.auth import router as auth_router
from m3connect.routers.recovery import router as recovery_router
from m3connect.routers.resources import router as resources_router
from m3connect.routers.events import router as events_router
from m3connect.routers.partners import router as partners_router
from m3connect.routers.projects import router as projects_router
from m3connect.routers.admin import router as admin_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


def create_app(
    registry: SessionRegistry | None = None,
    recovery_service: RecoveryService | None = None,
    admin_store: ProfileRepository | None = None,
) -> FastAPI:
    """
    Build the portal application.

    Arguments override the Supabase-backed defaults (tests pass in-memory
    fakes); anything left as None is wired from settings.
    """
    link_router = RecoveryRouter(settings.RECOVERY_PATH)

    if registry is None:
        registry = SessionRegistry(
            connect_portal_backend,
            link_router,
            home_path=settings.HOME_PATH,
            idle_seconds=settings.PORTAL_SESSION_IDLE_SECONDS,
            max_sessions=settings.PORTAL_MAX_SESSIONS,
        )
    if recovery_service is None:
        recovery_service = RecoveryService(
            connect_recovery_identity,
            min_password_length=settings.PASSWORD_MIN_LENGTH,
            home_path=settings.HOME_PATH,
            redirect_delay_seconds=settings.RECOVERY_REDIRECT_DELAY_SECONDS,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Startup:
          - Verify DB connectivity and create content tables.
          - Connect the back-office profile store (service role), if configured.

        Shutdown:
          - Close every live browser session (unsubscribes auth listeners).
          - Close pending recovery flows and their connections.
        """
        logger.info("🔄 Startup: Connecting to content database...")
        try:
            create_db_and_tables()
            logger.info("✅ Startup: DB connection OK, tables verified.")
        except Exception as e:
            logger.error(f"❌ Startup: DB connection FAILED: {e}")
            raise

        if app.state.admin_store is None:
            if settings.SUPABASE_SERVICE_ROLE_KEY:
                app.state.admin_store = await connect_admin_profiles()
            else:
                logger.warning(
                    "⚠️ SUPABASE_SERVICE_ROLE_KEY not set: back office disabled."
                )

        yield

        await app.state.registry.close_all()
        await app.state.recovery_service.close_all()
        logger.info("Shutdown: browser sessions and recovery flows closed.")

    app = FastAPI(
        title=settings.PROJECT_NAME or "M3 Connect Portal API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.registry = registry
    app.state.recovery_router = link_router
    app.state.recovery_service = recovery_service
    app.state.admin_store = admin_store

    # --- Middleware ---
    # Recovery links are redirected before any auth controller is created.
    app.add_middleware(RecoveryRedirectMiddleware, router=link_router)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(recovery_router)
    app.include_router(resources_router)
    app.include_router(events_router)
    app.include_router(partners_router)
    app.include_router(projects_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root(snapshot: AuthSnapshot = Depends(get_snapshot)):
        """Health check endpoint, with the visitor's auth state."""
        return {
            "status": "ok",
            "service": "m3connect-portal",
            "auth": AuthStateRead.from_snapshot(snapshot),
        }

    return app


app = create_app()
