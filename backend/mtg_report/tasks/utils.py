"""
Shared utilities for Celery tasks.

Provides common functions for database session management and async execution.
"""
import asyncio
from typing import Any, Coroutine

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from mtg_report.core.config import Settings, settings as default_settings
from mtg_report.db.session import create_engine_for, create_session_maker

logger = structlog.get_logger()


def create_task_session_maker(
    settings: Settings | None = None,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """
    Create a new async engine and session maker for the current event loop.

    Each task creates its own engine to avoid connection pool conflicts
    between event loops.

    Returns:
        Tuple of (async_sessionmaker, engine). The engine should be disposed
        after use to free resources.
    """
    engine = create_engine_for(settings or default_settings)
    return create_session_maker(engine), engine


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """
    Run async function in sync context (for Celery tasks and scripts).

    Uses asyncio.run() which creates a new event loop, runs the coroutine
    to completion and closes the loop afterwards.
    """
    return asyncio.run(coro)


def log_pool_status(engine: AsyncEngine, context: str = "") -> None:
    """Log connection pool status for debugging."""
    try:
        pool = engine.pool
        logger.debug(
            f"Connection pool status{' - ' + context if context else ''}",
            pool_size=pool.size(),
            checked_in=pool.checkedin(),
            checked_out=pool.checkedout(),
            overflow=pool.overflow(),
        )
    except AttributeError as e:
        # Non-queue pools (e.g. SQLite's) do not report these counters
        logger.debug("Could not get pool status", error=str(e))
