"""SQLite-backed clipboard history.

The store owns the ``clipboard_items`` table. Callers only ever receive
``ClipboardEntry`` copies. Mutations are serialized through the write side of
a readers/writer lock so an insert and its retention cleanup are observed as
one step by every other thread. Queries degrade to empty results when the
database cannot be read.
"""

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from clipstash.models.clipboarditem import ClipboardEntry, ContentKind
from clipstash.models.errors import InitFailed, ReadFailed, WriteFailed
from clipstash.utils.rwlock import LockTimeout, ReadWriteLock

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 100

SCHEMA = """
CREATE TABLE IF NOT EXISTS clipboard_items (
    id TEXT PRIMARY KEY,
    timestamp TEXT NOT NULL,
    is_favorite INTEGER NOT NULL DEFAULT 0,
    content_type TEXT NOT NULL CHECK (content_type IN ('text', 'image')),
    text_content TEXT,
    image_data BLOB,
    CHECK (
        (content_type = 'text' AND text_content IS NOT NULL AND image_data IS NULL)
        OR (content_type = 'image' AND image_data IS NOT NULL AND text_content IS NULL)
    )
);
CREATE INDEX IF NOT EXISTS idx_clipboard_items_timestamp
    ON clipboard_items (timestamp);
CREATE INDEX IF NOT EXISTS idx_clipboard_items_favorite
    ON clipboard_items (is_favorite, timestamp);
"""

# rowid follows insertion order and breaks timestamp ties.
NEWEST_FIRST = "ORDER BY timestamp DESC, rowid DESC"
OLDEST_FIRST = "ORDER BY timestamp ASC, rowid ASC"

COLUMNS = "id, timestamp, is_favorite, content_type, text_content, image_data"


def _format_ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # fixed width so lexical order is chronological
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _contains(haystack: Optional[str], needle: Optional[str]) -> bool:
    if haystack is None or needle is None:
        return False
    return needle.casefold() in haystack.casefold()


def _row_to_entry(row: sqlite3.Row) -> ClipboardEntry:
    image = row["image_data"]
    return ClipboardEntry(
        kind=ContentKind(row["content_type"]),
        text_payload=row["text_content"],
        image_payload=bytes(image) if image is not None else None,
        favorite=bool(row["is_favorite"]),
        item_id=row["id"],
        created_at=datetime.fromisoformat(row["timestamp"]),
    )


class HistoryStore:

    def __init__(
        self,
        db_path: Union[str, Path],
        max_items: int = DEFAULT_MAX_ITEMS,
        write_timeout: float = 5.0,
        busy_timeout: float = 2.0,
    ) -> None:
        if max_items < 1:
            raise ValueError("max_items must be at least 1")

        self.db_path = Path(db_path)
        self.max_items = max_items
        self.write_timeout = write_timeout
        self.busy_timeout = busy_timeout
        self._lock = ReadWriteLock()
        self._local = threading.local()
        self._connections: List[Tuple[threading.Thread, sqlite3.Connection]] = []
        self._connections_lock = threading.Lock()
        self._closed = False
        self._initialize()

    def _initialize(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connection()
            conn.executescript(SCHEMA)
            conn.commit()
        except (OSError, sqlite3.Error) as exc:
            self.close()
            raise InitFailed(f"Could not open history database at {self.db_path}: {exc}") from exc
        logger.debug("History store ready at %s (max_items=%s)", self.db_path, self.max_items)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    def _connection(self) -> sqlite3.Connection:
        if self._closed:
            raise sqlite3.ProgrammingError("history store is closed")

        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(
                str(self.db_path), timeout=self.busy_timeout, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.create_function("clip_contains", 2, _contains, deterministic=True)
            self._local.conn = conn
            with self._connections_lock:
                self._prune_dead_connections()
                self._connections.append((threading.current_thread(), conn))
        return conn

    def _prune_dead_connections(self) -> None:
        # connections of finished threads are unreachable through threading.local
        alive = []
        for thread, conn in self._connections:
            if thread.is_alive():
                alive.append((thread, conn))
                continue
            try:
                conn.close()
            except sqlite3.Error:
                logger.debug("Ignoring error while closing connection", exc_info=True)
        self._connections = alive

    @property
    def open_connections(self) -> int:
        with self._connections_lock:
            return len(self._connections)

    def close(self) -> None:
        self._closed = True
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for _, conn in connections:
            try:
                conn.close()
            except sqlite3.Error:
                logger.debug("Ignoring error while closing connection", exc_info=True)

    def __enter__(self) -> "HistoryStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Low level helpers
    # ------------------------------------------------------------------
    def _write(self, action: str, fn):
        try:
            with self._lock.write(timeout=self.write_timeout):
                conn = self._connection()
                try:
                    result = fn(conn)
                    conn.commit()
                    return result
                except (sqlite3.Error, ValueError):
                    conn.rollback()
                    raise
        except LockTimeout as exc:
            logger.error("Failed to %s: store busy", action)
            raise WriteFailed(f"{action}: timed out waiting for the store") from exc
        # UnicodeEncodeError (a ValueError) for payloads sqlite cannot bind
        except (sqlite3.Error, ValueError) as exc:
            logger.error("Failed to %s: %s", action, exc)
            raise WriteFailed(f"{action}: {exc}") from exc

    def _query(self, sql: str, params=()) -> List[sqlite3.Row]:
        try:
            with self._lock.read(timeout=self.write_timeout):
                return self._connection().execute(sql, params).fetchall()
        except (LockTimeout, sqlite3.Error, ValueError) as exc:
            raise ReadFailed(str(exc)) from exc

    def _read_entries(self, action: str, sql: str, params=()) -> List[ClipboardEntry]:
        try:
            rows = self._query(sql, params)
        except ReadFailed as exc:
            logger.warning("Failed to %s: %s", action, exc)
            return []
        return [_row_to_entry(row) for row in rows]

    @staticmethod
    def _check_limit(limit: int) -> int:
        if limit < 0:
            raise ValueError("limit must be >= 0")
        return limit

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def insert(self, entry: ClipboardEntry) -> None:
        """Persist ``entry`` and trim the oldest non-favorites past ``max_items``.

        Both steps share one transaction; on failure nothing changes and
        ``WriteFailed`` is raised.
        """
        def run(conn: sqlite3.Connection) -> int:
            conn.execute(
                f"INSERT INTO clipboard_items ({COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    entry.item_id,
                    _format_ts(entry.created_at),
                    int(entry.favorite),
                    entry.kind.value,
                    entry.text_payload,
                    entry.image_payload,
                ),
            )
            return self._cleanup(conn)

        removed = self._write("insert entry", run)
        logger.debug("Stored %s entry %s (%d trimmed)", entry.kind.value, entry.item_id, removed)

    def _cleanup(self, conn: sqlite3.Connection) -> int:
        count = conn.execute(
            "SELECT COUNT(*) FROM clipboard_items WHERE is_favorite = 0").fetchone()[0]
        excess = count - self.max_items
        if excess <= 0:
            return 0

        conn.execute(
            f"""
            DELETE FROM clipboard_items WHERE rowid IN (
                SELECT rowid FROM clipboard_items WHERE is_favorite = 0
                {OLDEST_FIRST} LIMIT ?
            )
            """,
            (excess,),
        )
        return excess

    def cleanup(self) -> int:
        """Apply retention without inserting. Returns the number of rows removed."""
        return self._write("clean up history", self._cleanup)

    def set_favorite(self, item_id: str, value: bool) -> None:
        def run(conn: sqlite3.Connection) -> int:
            cur = conn.execute(
                "UPDATE clipboard_items SET is_favorite = ? WHERE id = ?",
                (int(bool(value)), item_id),
            )
            return cur.rowcount

        if not self._write("update favorite", run):
            logger.debug("Favorite update for unknown id %s ignored", item_id)

    def toggle_favorite(self, item_id: str) -> Optional[bool]:
        """Flip the favorite flag. Returns the new value, or None for unknown ids."""
        def run(conn: sqlite3.Connection) -> Optional[bool]:
            conn.execute(
                "UPDATE clipboard_items SET is_favorite = 1 - is_favorite WHERE id = ?",
                (item_id,),
            )
            row = conn.execute(
                "SELECT is_favorite FROM clipboard_items WHERE id = ?", (item_id,)).fetchone()
            return None if row is None else bool(row[0])

        return self._write("toggle favorite", run)

    def clear_history(self) -> int:
        def run(conn: sqlite3.Connection) -> int:
            return conn.execute("DELETE FROM clipboard_items WHERE is_favorite = 0").rowcount

        removed = self._write("clear history", run)
        logger.info("Cleared %d history entries", removed)
        return removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def recent(self, limit: int) -> List[ClipboardEntry]:
        if self._check_limit(limit) == 0:
            return []
        return self._read_entries(
            "fetch recent entries",
            f"SELECT {COLUMNS} FROM clipboard_items {NEWEST_FIRST} LIMIT ?",
            (limit,),
        )

    def favorites(self) -> List[ClipboardEntry]:
        return self._read_entries(
            "fetch favorites",
            f"SELECT {COLUMNS} FROM clipboard_items WHERE is_favorite = 1 {NEWEST_FIRST}",
        )

    def all_items(self) -> List[ClipboardEntry]:
        return self._read_entries(
            "fetch all entries",
            f"SELECT {COLUMNS} FROM clipboard_items {NEWEST_FIRST}",
        )

    def search(self, query: str, limit: int, favorites_only: bool = False) -> List[ClipboardEntry]:
        """Case-insensitive substring match over text entries.

        An empty query lists ``recent(limit)`` (or the newest favorites).
        """
        if self._check_limit(limit) == 0:
            return []
        if not query:
            if favorites_only:
                return self.favorites()[:limit]
            return self.recent(limit)

        favorite_clause = "AND is_favorite = 1" if favorites_only else ""
        return self._read_entries(
            "search entries",
            f"""
            SELECT {COLUMNS} FROM clipboard_items
            WHERE content_type = 'text' AND clip_contains(text_content, ?) {favorite_clause}
            {NEWEST_FIRST} LIMIT ?
            """,
            (query, limit),
        )

    def get(self, item_id: str) -> Optional[ClipboardEntry]:
        entries = self._read_entries(
            "fetch entry",
            f"SELECT {COLUMNS} FROM clipboard_items WHERE id = ?",
            (item_id,),
        )
        return entries[0] if entries else None

    def count(self, favorite: Optional[bool] = None) -> int:
        if favorite is None:
            sql, params = "SELECT COUNT(*) FROM clipboard_items", ()
        else:
            sql, params = "SELECT COUNT(*) FROM clipboard_items WHERE is_favorite = ?", (int(favorite),)
        try:
            return self._query(sql, params)[0][0]
        except ReadFailed as exc:
            logger.warning("Failed to count entries: %s", exc)
            return 0

    def is_duplicate_of_most_recent(self, candidate: ClipboardEntry) -> bool:
        """True when ``candidate`` repeats the last inserted entry's kind and payload."""
        latest = self._read_entries(
            "fetch latest entry",
            f"SELECT {COLUMNS} FROM clipboard_items ORDER BY rowid DESC LIMIT 1",
        )
        if not latest:
            return False
        return candidate.same_content(latest[0])


class NullHistoryStore:
    """Stand-in used when the database cannot be opened.

    Behaves as a store that never holds anything: writes are accepted and
    dropped, every query is empty.
    """

    max_items = DEFAULT_MAX_ITEMS

    def insert(self, entry: ClipboardEntry) -> None:
        logger.debug("History disabled; dropping entry %s", entry.item_id)

    def cleanup(self) -> int:
        return 0

    def set_favorite(self, item_id: str, value: bool) -> None:
        return None

    def toggle_favorite(self, item_id: str) -> Optional[bool]:
        return None

    def clear_history(self) -> int:
        return 0

    def recent(self, limit: int) -> List[ClipboardEntry]:
        HistoryStore._check_limit(limit)
        return []

    def favorites(self) -> List[ClipboardEntry]:
        return []

    def all_items(self) -> List[ClipboardEntry]:
        return []

    def search(self, query: str, limit: int, favorites_only: bool = False) -> List[ClipboardEntry]:
        HistoryStore._check_limit(limit)
        return []

    def get(self, item_id: str) -> Optional[ClipboardEntry]:
        return None

    def count(self, favorite: Optional[bool] = None) -> int:
        return 0

    def is_duplicate_of_most_recent(self, candidate: ClipboardEntry) -> bool:
        return False

    def close(self) -> None:
        return None

    def __enter__(self) -> "NullHistoryStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


def open_history_store(settings) -> Union[HistoryStore, NullHistoryStore]:
    """Open the configured store, falling back to an always-empty one."""
    try:
        return HistoryStore(
            settings.db_path,
            max_items=settings.max_items,
            write_timeout=settings.write_timeout,
        )
    except InitFailed as exc:
        logger.error("Clipboard history disabled: %s", exc)
        return NullHistoryStore()
