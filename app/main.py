# app/main.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

# ---------------------------
# Env loading (root .env first, then app/.env as fallback)
# ---------------------------
# 1) root .env (if present)
load_dotenv(find_dotenv(usecwd=True))
# 2) app/.env (do not override values already loaded)
load_dotenv(Path(__file__).resolve().parent / ".env", override=False)

from app.api import health  # noqa: E402
from app.api.v1 import actions, admin, auth, companies, teams  # noqa: E402
from app.core.errors import register_exception_handlers  # noqa: E402
from app.crud.user import migrate_legacy_roles  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import make_engine, make_session_factory  # noqa: E402
from app.middleware.request_logging import RequestLoggingMiddleware  # noqa: E402
from app.worker.scheduler import make_scheduler  # noqa: E402

# registers every table on Base.metadata
from app import models  # noqa: E402,F401

log = logging.getLogger("app")

if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _custom_openapi(app: FastAPI):
    def _openapi():
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description="Accounts, tenants, memberships and usage ledger",
            routes=app.routes,
        )
        openapi_schema.setdefault("components", {}).setdefault("securitySchemes", {})
        openapi_schema["components"]["securitySchemes"]["OAuth2PasswordBearer"] = {
            "type": "oauth2",
            "flows": {"password": {"tokenUrl": "/api/auth/login", "scopes": {}}},
        }
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    return _openapi


def create_app(database_url: Optional[str] = None) -> FastAPI:
    """
    Build one application instance with its own engine and session factory.
    Both live on app.state; routes reach them through the get_db dependency.
    """
    app = FastAPI(title="Accounts API", version="1.0.0")

    engine = make_engine(database_url)
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.scheduler = None

    # ---------------------------
    # CREATE TABLES (dev-only; guard with env)
    # ---------------------------
    if os.getenv("ENABLE_CREATE_ALL", "1") == "1":
        Base.metadata.create_all(bind=engine)

    # ---------------------------
    # Middleware / errors
    # ---------------------------
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    # ---------------------------
    # ROUTER MOUNT
    # ---------------------------
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
    app.include_router(companies.router, prefix="/api/companies", tags=["companies"])
    app.include_router(teams.router, prefix="/api/teams", tags=["teams"])
    app.include_router(actions.router, prefix="/api/actions", tags=["actions"])
    app.include_router(health.router, prefix="/api", tags=["health"])

    @app.on_event("startup")
    def _startup():
        db = app.state.session_factory()
        try:
            migrate_legacy_roles(db)
        finally:
            db.close()

        # Enable with ENABLE_SCHEDULER=1 (default 1)
        if os.getenv("ENABLE_SCHEDULER", "1") == "1":
            app.state.scheduler = make_scheduler(app.state.session_factory)
            app.state.scheduler.start()
            log.info("Scheduler started")

    @app.on_event("shutdown")
    def _shutdown():
        sched = app.state.scheduler
        if sched:
            sched.shutdown(wait=False)
        app.state.engine.dispose()

    app.openapi = _custom_openapi(app)
    return app


app = create_app()
