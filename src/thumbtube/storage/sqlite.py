"""SQLite implementation of the thumbnail index."""

import sqlite3
import threading
from collections.abc import Iterable
from datetime import datetime, timezone

from thumbtube.models import ChannelCount, Form, IndexCounts, Quality, ThumbnailEntry
from thumbtube.storage.repository import ThumbnailIndex


class SQLiteThumbnailIndex(ThumbnailIndex):
    """SQLite-backed thumbnail index.

    Implements ThumbnailIndex using stdlib sqlite3. One connection is
    shared behind a lock so download workers on other threads can record
    attempts and qualities without interleaving writes. The title/channel
    pairing is also enforced by a CHECK constraint.
    """

    _CREATE_TABLE = """
        CREATE TABLE IF NOT EXISTS thumbnails (
            video_id    TEXT PRIMARY KEY,
            form        TEXT NOT NULL CHECK (form IN ('long', 'short')),
            quality     TEXT,
            attempts    INTEGER NOT NULL DEFAULT 0 CHECK (attempts >= 0),
            title       TEXT,
            channel     TEXT,
            indexed_at  TEXT NOT NULL,
            CHECK ((title IS NULL) = (channel IS NULL))
        )
    """

    _COLUMNS = "video_id, form, quality, attempts, title, channel, indexed_at"

    def __init__(self, db_path: str) -> None:
        """Initialize the index.

        Args:
            db_path: Path to SQLite database file. Use ":memory:" for testing.
        """
        self._db_path = db_path
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        with self._lock, self._conn:
            self._conn.execute(self._CREATE_TABLE)

    def insert_if_absent(self, video_id: str, form: Form) -> bool:
        entry = ThumbnailEntry(video_id=video_id, form=form)
        sql = """
            INSERT INTO thumbnails (video_id, form, attempts, indexed_at)
            VALUES (?, ?, 0, ?)
            ON CONFLICT(video_id) DO NOTHING
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                sql, (entry.video_id, entry.form.value, entry.indexed_at.isoformat())
            )
        return cursor.rowcount == 1

    def get(self, video_id: str) -> ThumbnailEntry | None:
        sql = f"SELECT {self._COLUMNS} FROM thumbnails WHERE video_id = ?"
        with self._lock:
            row = self._conn.execute(sql, (video_id,)).fetchone()
        return None if row is None else self._row_to_entry(row)

    def exists(self, video_id: str) -> bool:
        sql = "SELECT 1 FROM thumbnails WHERE video_id = ? LIMIT 1"
        with self._lock:
            return self._conn.execute(sql, (video_id,)).fetchone() is not None

    def list_all(self, form: Form | None = None) -> list[ThumbnailEntry]:
        where, params = self._form_clause(form)
        return self._select(f"WHERE 1 = 1{where}", params)

    def query_undownloaded(
        self, max_attempts: int, limit: int | None = None
    ) -> list[ThumbnailEntry]:
        clause = "WHERE quality IS NULL AND attempts < ?"
        params: list = [max_attempts]
        if limit is not None:
            clause += " ORDER BY rowid LIMIT ?"
            params.append(limit)
        return self._select(clause, params, ordered=limit is None)

    def record_attempt(self, video_id: str) -> None:
        sql = "UPDATE thumbnails SET attempts = attempts + 1 WHERE video_id = ?"
        with self._lock, self._conn:
            self._conn.execute(sql, (video_id,))

    def record_quality(self, video_id: str, quality: Quality) -> None:
        sql = "UPDATE thumbnails SET quality = ? WHERE video_id = ?"
        with self._lock, self._conn:
            self._conn.execute(sql, (Quality(quality).value, video_id))

    def query_scrape_candidates(self) -> list[ThumbnailEntry]:
        return self._select(
            "WHERE quality IS NOT NULL AND (title IS NULL OR channel IS NULL)", []
        )

    def record_metadata(self, video_id: str, title: str, channel: str) -> None:
        if title is None or channel is None:
            raise ValueError("Title and channel must be recorded together")
        sql = "UPDATE thumbnails SET title = ?, channel = ? WHERE video_id = ?"
        with self._lock, self._conn:
            self._conn.execute(sql, (title, channel, video_id))

    def query_by_filter(
        self, form: Form | None = None, channels: Iterable[str] | None = None
    ) -> list[ThumbnailEntry]:
        clause = "WHERE quality IS NOT NULL AND title IS NOT NULL AND channel IS NOT NULL"
        where, params = self._form_clause(form)
        clause += where
        if channels is not None:
            channels = list(channels)
            if not channels:
                return []
            placeholders = ", ".join("?" for _ in channels)
            clause += f" AND channel IN ({placeholders})"
            params.extend(channels)
        return self._select(clause, params)

    def channel_counts(self, form: Form | None = None) -> list[ChannelCount]:
        where, params = self._form_clause(form)
        sql = f"""
            SELECT channel, COUNT(*) AS n FROM thumbnails
            WHERE quality IS NOT NULL AND title IS NOT NULL AND channel IS NOT NULL{where}
            GROUP BY channel
            ORDER BY n DESC, channel ASC
        """
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [ChannelCount(channel=row["channel"], count=row["n"]) for row in rows]

    def counts(self, form: Form | None = None, max_attempts: int = 1) -> IndexCounts:
        where, params = self._form_clause(form)
        sql = f"""
            SELECT
                COUNT(*) AS indexed,
                COUNT(quality) AS downloaded,
                COALESCE(SUM(quality IS NOT NULL AND title IS NOT NULL
                             AND channel IS NOT NULL), 0) AS scraped,
                COALESCE(SUM(quality IS NULL AND attempts >= ?), 0) AS exhausted
            FROM thumbnails WHERE 1 = 1{where}
        """
        with self._lock:
            row = self._conn.execute(sql, [max_attempts, *params]).fetchone()
        return IndexCounts(
            indexed=row["indexed"],
            downloaded=row["downloaded"],
            scraped=row["scraped"],
            exhausted=row["exhausted"],
        )

    def merge_entries(self, entries: Iterable[ThumbnailEntry]) -> list[ThumbnailEntry]:
        sql = f"""
            INSERT INTO thumbnails ({self._COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(video_id) DO NOTHING
        """
        inserted = []
        with self._lock, self._conn:
            for entry in entries:
                cursor = self._conn.execute(sql, (
                    entry.video_id,
                    entry.form.value,
                    entry.quality.value if entry.quality else None,
                    entry.attempts,
                    entry.title,
                    entry.channel,
                    entry.indexed_at.isoformat(),
                ))
                if cursor.rowcount == 1:
                    inserted.append(entry)
        return inserted

    def delete(self, video_id: str) -> bool:
        sql = "DELETE FROM thumbnails WHERE video_id = ?"
        with self._lock, self._conn:
            cursor = self._conn.execute(sql, (video_id,))
        return cursor.rowcount > 0

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _select(self, clause: str, params: list, *, ordered: bool = True) -> list[ThumbnailEntry]:
        sql = f"SELECT {self._COLUMNS} FROM thumbnails {clause}"
        if ordered:
            sql += " ORDER BY rowid"
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_entry(row) for row in rows]

    @staticmethod
    def _form_clause(form: Form | None) -> tuple[str, list]:
        if form is None:
            return "", []
        return " AND form = ?", [Form(form).value]

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> ThumbnailEntry:
        """Convert a database row to a ThumbnailEntry model."""
        indexed_at = datetime.fromisoformat(row["indexed_at"])
        if indexed_at.tzinfo is None:
            indexed_at = indexed_at.replace(tzinfo=timezone.utc)
        return ThumbnailEntry(
            video_id=row["video_id"],
            form=Form(row["form"]),
            quality=Quality(row["quality"]) if row["quality"] else None,
            attempts=row["attempts"],
            title=row["title"],
            channel=row["channel"],
            indexed_at=indexed_at,
        )
