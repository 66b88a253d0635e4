"""
Database module for mutil.

Handles SQLite database initialization, schema creation, and the repositories
used to store scrobs and configuration.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .errors import StoreError
from .models import ConfigEntry, ScrobRecord


class Database:
    """Manages SQLite database connection and schema."""

    def __init__(self, db_path: Optional[str] = None, timeout: float = 5.0):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses ~/.mutil/mutil.db
            timeout: Seconds to wait for a lock held by another connection
        """
        self.logger = logging.getLogger(__name__)

        if db_path is None:
            # Default to ~/.mutil/mutil.db
            mutil_dir = Path.home() / ".mutil"
            mutil_dir.mkdir(exist_ok=True)
            db_path = str(mutil_dir / "mutil.db")

        self.db_path = db_path
        self.timeout = timeout
        self.ensure_schema()
        self.logger.debug("Database initialized at %s", self.db_path)

    def ensure_schema(self):
        """Create the scrobs and config tables if they do not exist yet."""
        try:
            conn = self.get_connection()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e

        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'scrobs'"
            )
            if cursor.fetchone() is None:
                self.logger.info("Creating scrob table")
                cursor.execute("""
                    CREATE TABLE scrobs (
                        id                  INTEGER PRIMARY KEY,
                        albumartist         TEXT    NOT NULL,
                        album               TEXT    NOT NULL,
                        title               TEXT    NOT NULL,
                        duration            INTEGER DEFAULT 0 NOT NULL,
                        musicbrainz_trackid TEXT,
                        at                  INTEGER NOT NULL
                    )
                """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_scrobs_at
                ON scrobs(at)
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS config (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot create schema in {self.db_path}: {e}") from e
        finally:
            conn.close()
        self.logger.debug("Database schema created/verified")

    def get_connection(self):
        """
        Get a new database connection.

        Caller is responsible for closing the connection when done.
        """
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn


class ScrobRepository:
    """Append-only access to the scrobs table."""

    def __init__(self, database: Database):
        self.database = database
        self.logger = logging.getLogger(__name__)

    def insert(self, record: ScrobRecord) -> int:
        """
        Persist a scrob.

        Args:
            record: Scrob to store; its id is ignored

        Returns:
            ID assigned by the store

        Raises:
            StoreError: on constraint violation or I/O failure
        """
        try:
            conn = self.database.get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO scrobs (
                        albumartist,
                        album,
                        title,
                        musicbrainz_trackid,
                        duration,
                        at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.album_artist,
                        record.album,
                        record.title,
                        record.musicbrainz_trackid,
                        record.duration_seconds,
                        record.at,
                    ),
                )
                conn.commit()
                scrob_id = cursor.lastrowid
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to insert scrob for {record.title!r}: {e}") from e

        self.logger.debug("Stored scrob %s: %s - %s", scrob_id, record.album_artist, record.title)
        return scrob_id

    def query_range(self, since: int) -> List[ScrobRecord]:
        """
        Get all scrobs at or after a point in time.

        Args:
            since: Unix timestamp (seconds), inclusive lower bound

        Returns:
            Scrobs ordered by time, oldest first
        """
        try:
            conn = self.database.get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    SELECT id, albumartist, album, title, duration, musicbrainz_trackid, at
                    FROM scrobs
                    WHERE at >= ?
                    ORDER BY at, id
                    """,
                    (since,),
                )
                rows = cursor.fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to query scrobs since {since}: {e}") from e

        return [self._row_to_record(row) for row in rows]

    @staticmethod
    def _row_to_record(row) -> ScrobRecord:
        return ScrobRecord(
            id=row["id"],
            album_artist=row["albumartist"],
            album=row["album"],
            title=row["title"],
            duration_seconds=row["duration"],
            musicbrainz_trackid=row["musicbrainz_trackid"],
            at=row["at"],
        )


class ConfigRepository:
    """Key/value access to the config table.

    Every sqlite failure surfaces as StoreError.
    """

    def __init__(self, database: Database):
        self.database = database
        self.logger = logging.getLogger(__name__)

    def get(self, key: str) -> Optional[ConfigEntry]:
        try:
            conn = self.database.get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute("SELECT key, value, updated_at FROM config WHERE key = ?", (key,))
                row = cursor.fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read config {key}: {e}") from e

        return self._row_to_entry(row) if row is not None else None

    def set(self, key: str, value: str) -> bool:
        try:
            conn = self.database.get_connection()
            try:
                conn.execute(
                    """
                    INSERT INTO config (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to set config {key}: {e}") from e

        self.logger.debug("Config %s set to %s", key, value)
        return True

    def get_all(self) -> List[ConfigEntry]:
        try:
            conn = self.database.get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute("SELECT key, value, updated_at FROM config ORDER BY key")
                rows = cursor.fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read config: {e}") from e

        return [self._row_to_entry(row) for row in rows]

    def initialize_defaults(self, defaults: Dict[str, Optional[str]]):
        """Insert default values for keys that have never been stored."""
        try:
            conn = self.database.get_connection()
            try:
                for key, value in defaults.items():
                    if value is None:
                        continue
                    conn.execute(
                        "INSERT OR IGNORE INTO config (key, value) VALUES (?, ?)",
                        (key, str(value)),
                    )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to store config defaults: {e}") from e

    @staticmethod
    def _row_to_entry(row) -> ConfigEntry:
        updated_at = row["updated_at"]
        if isinstance(updated_at, str):
            try:
                updated_at = datetime.fromisoformat(updated_at)
            except ValueError:
                updated_at = None
        return ConfigEntry(key=row["key"], value=row["value"], updated_at=updated_at)
