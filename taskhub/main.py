from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from taskhub.authz.matrix import PermissionMatrix
from taskhub.db import filters as _filters  # noqa: F401  (register soft-delete filter)
from taskhub.db.init_db import init_db
from taskhub.errors import register_exception_handlers
from taskhub.logging_config import configure_app_logging
from taskhub.presence import PresenceTracker
from taskhub.routers import authz, resources, users
from taskhub.settings import get_settings

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        # A missing or incomplete table raises ConfigurationError and aborts startup.
        app.state.permission_matrix = PermissionMatrix.from_yaml(settings.resolved_permission_matrix_path())
        app.state.presence = PresenceTracker(settings.presence_ttl_seconds)

        init_db(seed=settings.seed_demo_data)
        logger.info("Database initialized (tables ensured, seed=%s)", settings.seed_demo_data)

        yield
        # Shutdown (nothing to clean up)

    app = FastAPI(title="taskhub", lifespan=lifespan)
    register_exception_handlers(app)

    app.include_router(authz.router)
    app.include_router(users.router)
    app.include_router(resources.router)

    return app


app = create_app()
