from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    refresh_scheduler_running: bool
    active_product_identifiers: int


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle. Empty strings are
    treated as unset.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not database_url and not cloud_database_url and not local_database_url:
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL."
        )

    if not os.getenv("APIFY_API_TOKEN", "").strip():
        errors.append("APIFY_API_TOKEN is not set. Scrape runs cannot be started without it.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
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
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Abort startup when a mapped table or column is missing from the live
    database. Migrations are never applied automatically.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    existing = set(inspector.get_table_names())

    problems: list[str] = []
    for name, table in sorted(Base.metadata.tables.items()):
        if name not in existing:
            problems.append(f"table {name}")
            continue
        live_columns = {column["name"] for column in inspector.get_columns(name)}
        problems.extend(f"column {name}.{column.name}" for column in table.columns if column.name not in live_columns)

    if problems:
        logging.getLogger(__name__).critical(
            "Schema mismatch, missing from the database: %s. Run 'alembic upgrade head' and restart.",
            ", ".join(problems),
        )
        raise RuntimeError(f"Schema mismatch ({', '.join(problems)}). Run migrations and restart.")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, start the scrape runtime on boot; shut it down on exit."""
    log = logging.getLogger(__name__)
    _check_db()
    log.info("Database connectivity confirmed")
    _check_schema()
    log.info("Database schema validated")

    from app.services.scraping_runtime import get_scraping_runtime

    runtime = get_scraping_runtime()
    runtime.start()
    try:
        yield
    finally:
        runtime.shutdown(wait=True)

        from db.session import dispose_engine

        dispose_engine()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Product Scrape API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import scraping_router
    from app.services.scraping_runtime import get_scraping_runtime

    application.include_router(scraping_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        runtime = get_scraping_runtime()
        return HealthResponse(
            status="ok",
            refresh_scheduler_running=runtime.refresh_scheduler.is_running,
            active_product_identifiers=len(runtime.product_orchestrator.in_flight),
        )

    return application


app = create_app()
