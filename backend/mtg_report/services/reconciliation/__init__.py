"""
Price reconciliation service.
"""
from mtg_report.services.reconciliation.pipeline import (
    PipelineConfig,
    ReconciliationPipeline,
    ReconciliationStats,
    StopReason,
)

__all__ = [
    "PipelineConfig",
    "ReconciliationPipeline",
    "ReconciliationStats",
    "StopReason",
]
