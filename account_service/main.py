"""FastAPI application wiring for the account service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api.errors import register_error_handlers
from .api.routes import auth_router, router as accounts_router
from .bootstrap import provision_default_admin
from .config import Settings, get_settings, validate_settings
from .domain.service import AccountService
from .repository import AccountStore, build_repository

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, repository: AccountStore | None = None) -> FastAPI:
    """Build the application; ``repository`` overrides the configured store backend."""
    settings = validate_settings(settings or get_settings())
    logging.basicConfig(level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialise the account store, provision the admin, and expose the service."""
        pool = None
        store = repository
        if store is None:
            store, pool = build_repository(settings)
        provision_default_admin(store, settings)
        logger.info("account service ready with %s store", settings.store_backend)
        app.state.settings = settings
        app.state.account_service = AccountService(store, settings)
        try:
            yield
        finally:
            if pool is not None:
                pool.close()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    register_error_handlers(app)

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {"status": "ok"}

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(accounts_router)
    app.include_router(auth_router)
    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("account_service.main:app", host=settings.http_host, port=settings.http_port)
