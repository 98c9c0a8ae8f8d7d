"""
Repository layer for database access.
"""
from mtg_report.repositories.collection_repo import CollectionRepository

__all__ = ["CollectionRepository"]
