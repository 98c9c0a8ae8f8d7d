"""
Price reconciliation task.

Refreshes the price of every card in the collection once a day:
reads the collection page by page, fetches current Scryfall prices,
converts them to the target currency and appends price snapshots.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from celery import shared_task

from mtg_report.core.config import Settings, get_settings
from mtg_report.core.deadline import Deadline
from mtg_report.repositories import CollectionRepository
from mtg_report.services.pricing import ExchangeRateClient, ScryfallPriceSource
from mtg_report.services.reconciliation import PipelineConfig, ReconciliationPipeline
from mtg_report.tasks.utils import create_task_session_maker, log_pool_status, run_async

logger = structlog.get_logger()


@dataclass
class ReconciliationJobResult:
    """Outcome of one reconciliation job run."""
    cards_updated: int
    started_at: str
    completed_at: str
    stats: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


async def run_reconciliation_job(
    settings: Settings | None = None,
    *,
    timeout_seconds: float | None = None,
    commit_size: int | None = None,
) -> ReconciliationJobResult:
    """
    Wire up the collaborators from settings and run one reconciliation.

    Args:
        settings: Settings to use; defaults to the environment's.
        timeout_seconds: Overrides ``reconcile_timeout_seconds``.
        commit_size: Overrides ``reconcile_commit_size``.
    """
    settings = settings or get_settings()
    started_at = datetime.now(timezone.utc)

    config = PipelineConfig.from_settings(settings)
    if commit_size is not None:
        config = PipelineConfig(
            commit_size=commit_size,
            default_exchange_rate=config.default_exchange_rate,
            max_requests_per_second=config.max_requests_per_second,
        )
    timeout = timeout_seconds if timeout_seconds is not None else settings.reconcile_timeout_seconds

    logger.info("conciliate", timeout_seconds=timeout, commit_size=config.commit_size)

    price_source = ScryfallPriceSource(
        settings.scryfall_base_url,
        timeout_seconds=settings.scryfall_timeout_seconds,
        user_agent=settings.http_user_agent,
    )
    exchange_source = ExchangeRateClient(
        settings.exchange_rate_url,
        settings.exchange_target_currency,
        timeout_seconds=settings.exchange_timeout_seconds,
    )
    session_maker, engine = create_task_session_maker(settings)
    try:
        async with price_source, exchange_source:
            pipeline = ReconciliationPipeline(
                store=CollectionRepository(session_maker),
                price_source=price_source,
                exchange_source=exchange_source,
                config=config,
            )
            cards_updated = await pipeline.run(Deadline.after(timeout))
            log_pool_status(engine, "after reconciliation")
    finally:
        await engine.dispose()

    result = ReconciliationJobResult(
        cards_updated=cards_updated,
        started_at=started_at.isoformat(),
        completed_at=datetime.now(timezone.utc).isoformat(),
        stats=pipeline.last_stats.as_dict() if pipeline.last_stats else {},
    )
    logger.info("job done", cards_updated=cards_updated)
    return result


@shared_task(
    bind=True,
    name="mtg_report.tasks.reconciliation.reconcile_prices",
)
def reconcile_prices(self) -> dict[str, Any]:
    """
    Reconcile every card's price against Scryfall.

    Runs daily. Not retried automatically: a run is best effort and the
    next scheduled run picks up whatever this one missed.

    Returns:
        Summary with cards_updated, timestamps and run stats.
    """
    return run_async(run_reconciliation_job()).to_dict()
