"""
Celery tasks for background job processing.

Includes:
- Price reconciliation: daily refresh of every card's price
"""
from mtg_report.tasks.celery_app import celery_app
from mtg_report.tasks.reconciliation import reconcile_prices

__all__ = [
    "celery_app",
    "reconcile_prices",
]
