from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

HEALING_ADAPTERS = {"heuristic", "openai"}
ROBOTS_FAILURE_POLICIES = {"open", "closed"}


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - A database URL must be configured (DATABASE_URL, CLOUD_DATABASE_URL
      or LOCAL_DATABASE_URL).
    - SCRAPE_ROBOTS_FAILURE_POLICY, when set, must be 'open' or 'closed'.
    - SCRAPE_HEALING_ADAPTER, when set, must be 'heuristic' or 'openai'.
    - OPENAI_API_KEY is required whenever SCRAPE_HEALING_ADAPTER=openai.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    database_urls = [
        os.getenv(name, "").strip()
        for name in ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    ]
    if not any(database_urls):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL."
        )

    # --- Compliance policy ----------------------------------------------
    policy = os.getenv("SCRAPE_ROBOTS_FAILURE_POLICY", "open").strip().lower()
    if policy not in ROBOTS_FAILURE_POLICIES:
        errors.append(
            f"SCRAPE_ROBOTS_FAILURE_POLICY='{policy}' is not valid. "
            f"Allowed values: {sorted(ROBOTS_FAILURE_POLICIES)}."
        )

    # --- Selector healing -----------------------------------------------
    adapter = os.getenv("SCRAPE_HEALING_ADAPTER", "heuristic").strip().lower()
    if adapter not in HEALING_ADAPTERS:
        errors.append(
            f"SCRAPE_HEALING_ADAPTER='{adapter}' is not valid. "
            f"Allowed values: {sorted(HEALING_ADAPTERS)}."
        )
    elif adapter == "openai" and not os.getenv("OPENAI_API_KEY", "").strip():
        errors.append(
            "OPENAI_API_KEY is not set but SCRAPE_HEALING_ADAPTER is 'openai'. "
            "Set OPENAI_API_KEY or use SCRAPE_HEALING_ADAPTER=heuristic."
        )

    if errors:
        raise RuntimeError(
            "Startup validation failed. Missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema on boot."""
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Regulatory Scrape Orchestrator API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import scrape_router

    application.include_router(scrape_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
