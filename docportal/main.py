from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from docportal.core.config import CoreConfig
from docportal.core.errors import InfrastructureError
from docportal.core.lifecycle import DocumentLifecycle
from docportal.core.passwords import PasswordHasher
from docportal.core.permissions import PermissionResolver
from docportal.core.ratelimit import UserRateLimiter
from docportal.core.revocation import RevocationCache, Sweeper
from docportal.core.service import AuthService
from docportal.core.tokens import TokenService
from docportal.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from docportal.db.init_db import init_db
from docportal.db.session import build_engine, build_session_factory
from docportal.db.stores import SqlCredentialStore, SqlPermissionStore
from docportal.logging_config import configure_app_logging
from docportal.routers import admin, auth, documents, health
from docportal.settings import Settings, get_settings

logger = logging.getLogger(__name__)


async def _infrastructure_error_handler(request: Request, exc: InfrastructureError) -> JSONResponse:
    logger.exception("Infrastructure failure path=%s method=%s", request.url.path, request.method, exc_info=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        cfg = settings or get_settings()
        configure_app_logging(cfg.log_level)
        logger.info("App startup beginning environment=%s", cfg.environment)

        engine = build_engine(cfg.resolved_db_url())
        session_factory = build_session_factory(engine)
        hasher = PasswordHasher(cfg.bcrypt_rounds)

        admin_password = cfg.bootstrap_admin_password.get_secret_value() if cfg.bootstrap_admin_password else None
        init_db(
            engine,
            session_factory,
            cfg.resolved_permission_matrix_path(),
            hasher=hasher,
            admin_email=cfg.bootstrap_admin_email,
            admin_password=admin_password,
        )
        logger.info("Database initialized (tables ensured + seed if needed)")

        core_config = CoreConfig.from_settings(cfg)
        revocation = RevocationCache()
        resolver = PermissionResolver.from_store(SqlPermissionStore(session_factory))
        tokens = TokenService(core_config, revocation)
        limiter = UserRateLimiter(core_config.rate_limit_max_requests, core_config.rate_limit_window_seconds)
        sweeper = Sweeper(core_config.revocation_sweep_seconds, revocation)

        app.state.session_factory = session_factory
        app.state.auth_service = AuthService(
            SqlCredentialStore(session_factory), resolver, tokens, hasher, core_config
        )
        app.state.lifecycle = DocumentLifecycle(resolver)
        app.state.rate_limiter = limiter

        sweeper.start()
        try:
            yield
        finally:
            # Shutdown
            sweeper.stop()
            engine.dispose()
            logger.info("App shutdown complete")

    app = FastAPI(title="docportal", lifespan=lifespan)
    app.add_exception_handler(InfrastructureError, _infrastructure_error_handler)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(documents.router)
    app.include_router(admin.router)

    return app


app = create_app()
