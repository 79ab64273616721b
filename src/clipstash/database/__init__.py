"""
Persistence for clipstash.

Provides the SQLite clipboard history store and its always-empty fallback.
"""

from clipstash.database.history_store import HistoryStore, NullHistoryStore, open_history_store

__all__ = [
    'HistoryStore',
    'NullHistoryStore',
    'open_history_store',
]
