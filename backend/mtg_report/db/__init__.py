"""
Database module containing session management and base models.
"""
from mtg_report.db.base import Base
from mtg_report.db.session import create_engine_for, create_session_maker

__all__ = ["Base", "create_engine_for", "create_session_maker"]
