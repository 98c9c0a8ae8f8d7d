"""
Core module containing configuration and shared utilities.
"""
from mtg_report.core.config import settings
from mtg_report.core.deadline import Deadline, DeadlineExceeded
from mtg_report.core.rate_limit import IntervalRateLimiter

__all__ = [
    "settings",
    "Deadline",
    "DeadlineExceeded",
    "IntervalRateLimiter",
]
