"""
Entry point for the evacuation status backend.

This script creates the FastAPI application, includes the API routers and
starts the periodic evacuation refresh. Run with:

    uvicorn evac_status.main:app --reload

"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .api import api_router
from .core import db as core_db
from .core.config import Settings, get_app_env, settings
from .core.errors import log_exception
from .integrations.face_api import FaceApiClient
from .models import Base
from .scripts.run_migrations import run_migrations_to_head
from .services.evacuation_refresh import RefreshScheduler, build_refresher, refresh_interval_sec
from .services.evacuation_store import EvacuationStatusStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def create_app(
    *,
    cfg: Settings = settings,
    engine: Optional[Engine] = None,
    face_api_client: Optional[FaceApiClient] = None,
) -> FastAPI:
    app = FastAPI(title="Evacuation Status Backend", version="0.1.0")
    app.include_router(api_router)

    bind = engine or core_db.engine
    session_factory = (
        core_db.SessionLocal
        if engine is None
        else sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    )
    store = EvacuationStatusStore(session_factory)
    app.state.evacuation_store = store
    app.state.evacuation_refresher = build_refresher(cfg, client=face_api_client, store=store)
    app.state.evacuation_scheduler = None

    @app.on_event("startup")
    def _startup() -> None:
        logger = logging.getLogger("startup")
        env = get_app_env()
        if cfg.auto_create_db:
            try:
                Base.metadata.create_all(bind=bind)
            except Exception as exc:
                log_exception(logger, "DB create_all failed", exc=exc)
                if env == "prod":
                    raise
        if cfg.auto_run_migrations:
            try:
                run_migrations_to_head(str(bind.url.render_as_string(hide_password=False)))
            except Exception as exc:
                log_exception(logger, "DB migrations failed", exc=exc)
                if env == "prod":
                    raise
        if cfg.evacuation_enabled:
            scheduler = RefreshScheduler(
                app.state.evacuation_refresher,
                refresh_interval_sec(cfg),
                run_on_start=cfg.evacuation_autostart,
            )
            scheduler.start()
            app.state.evacuation_scheduler = scheduler
        else:
            logger.info("Evacuation refresh disabled")

    @app.on_event("shutdown")
    def _shutdown() -> None:
        scheduler = app.state.evacuation_scheduler
        if scheduler is not None:
            # A cycle in flight is not cancelled; the daemon thread ends with it.
            scheduler.stop(timeout=5.0)
            app.state.evacuation_scheduler = None

    return app


app = create_app()
