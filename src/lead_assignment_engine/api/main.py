"""FastAPI application factory for the lead assignment API."""

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core.config import EngineConfigManager
from ..routing.engine import LeadAssignmentEngine
from ..storage.database import AssignmentDatabase
from .config import settings
from .routes.health import router as health_router
from .routes.assignments import router as assignments_router

logger = logging.getLogger(__name__)


def create_app(
    db: Optional[AssignmentDatabase] = None,
    engine: Optional[LeadAssignmentEngine] = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title="Lead Assignment Engine API",
        description="Branch-scoped assignment of inbound sales leads",
        version=__version__,
        debug=settings.debug,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    if db is None:
        db = AssignmentDatabase(Path(settings.db_path))
    if engine is None:
        config_path = Path(settings.config_path) if settings.config_path else None
        config = EngineConfigManager(config_path).config
        engine = LeadAssignmentEngine.from_database(db, config=config)

    app.state.db = db
    app.state.engine = engine
    app.state.assign_timeout = settings.assign_timeout
    logger.info(f"Lead assignment API using database {db.db_path}")

    # Routes
    app.include_router(health_router)
    app.include_router(assignments_router)

    return app
