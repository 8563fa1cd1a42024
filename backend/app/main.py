"""FastAPI application entrypoint."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from app.api import api_router
from app.api.errors import register_exception_handlers
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.manager import DatabaseError, init_manager, shutdown_manager
from app.middleware.rate_limit import GeneralRateLimitMiddleware
from app.services.auth import ensure_default_credentials
from app.services.monitor import schedule_pool_monitor_job, start_scheduler, stop_scheduler
from app.services.rate_limit import build_rate_limiters

logger = logging.getLogger(__name__)


def _log_unhandled_loop_error(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    # Logged only: a stray task failure must not take the pool down with it.
    logger.error(
        "Unhandled asyncio error: %s",
        context.get("message", "unknown"),
        exc_info=context.get("exception"),
    )


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    settings.validate_for_startup()

    manager = await init_manager(settings)
    try:
        await manager.create_schema()
        await ensure_default_credentials(
            manager, settings.default_admin_password, settings.default_guest_password
        )
    except (DatabaseError, SQLAlchemyError):
        if not settings.is_production:
            await shutdown_manager()
            raise
        logger.exception("Schema bootstrap failed; continuing with the existing schema")

    loop = asyncio.get_running_loop()
    previous_handler = loop.get_exception_handler()
    loop.set_exception_handler(_log_unhandled_loop_error)

    start_scheduler()
    schedule_pool_monitor_job(settings)
    logger.info("%s ready (environment=%s)", settings.app_name, settings.environment)

    try:
        yield
    finally:
        stop_scheduler()
        await shutdown_manager()
        loop.set_exception_handler(previous_handler)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.rate_limiters = build_rate_limiters(settings)

    app.add_middleware(GeneralRateLimitMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(api_router)

    # Serve the front-end when present; API routes are registered first and take precedence.
    if settings.static_dir:
        static_dir = Path(settings.static_dir)
        if static_dir.exists() and static_dir.is_dir():
            app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

    return app


app = create_app()
