"""
Database engine and session factory construction.

Batch jobs build their own engine per run and dispose of it when the run
ends, so no pool outlives the event loop that created it.
"""
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mtg_report.core.config import Settings, settings as default_settings


def create_engine_for(settings: Settings | None = None, **overrides) -> AsyncEngine:
    """
    Create an async engine for the configured database.

    Args:
        settings: Settings to read the database URL from.
        **overrides: Extra keyword arguments for ``create_async_engine``.
    """
    settings = settings or default_settings
    url = settings.database_url_computed

    options: dict = {
        "echo": settings.debug,
        "pool_pre_ping": True,
    }
    if url.startswith("postgresql+asyncpg"):
        options.update(
            pool_size=5,
            max_overflow=5,
            connect_args={
                "server_settings": {
                    "statement_timeout": "60000",  # 60 second query timeout for jobs
                    "application_name": "mtg_report_reconcile",
                },
                "command_timeout": 60,  # asyncpg command timeout (in seconds)
            },
        )
    options.update(overrides)
    return create_async_engine(url, **options)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the settings every job uses."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
