"""Blob store backends: a single named slot per key holding one serialized value."""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import psycopg2
import psycopg2.extras

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    """CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
]


class StorageError(Exception):
    """Raised when a blob store cannot be read or written."""


class BlobStore(ABC):
    """Load/save contract for one serialized value per key."""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the slot is unset."""

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Overwrite the slot with ``value``."""

    def close(self) -> None:
        pass


class MemoryBlobStore(BlobStore):
    """Dict-backed store, used in tests and for throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.slots: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self.slots.get(key)

    def write(self, key: str, value: str) -> None:
        self.slots[key] = value


class FileBlobStore(BlobStore):
    """Keeps each slot in ``<data_dir>/<key>.json``."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def write(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e


class Database(BlobStore):
    """PostgreSQL-backed store using a single ``kv_store`` table."""

    def __init__(self, db_url: str, connect=psycopg2.connect):
        self.db_url = db_url
        try:
            self.conn = connect(db_url)
        except psycopg2.Error as e:
            raise StorageError(f"Could not connect to database: {e}") from e
        self.conn.autocommit = False

    def initialize(self) -> None:
        try:
            cur = self.conn.cursor()
            for stmt in SCHEMA_STATEMENTS:
                cur.execute(stmt)
            self.conn.commit()
            cur.close()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise StorageError(f"Could not create schema: {e}") from e

    def close(self) -> None:
        self.conn.close()

    def _cursor(self):
        """Return a RealDictCursor for dict-like row access."""
        return self.conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)

    def read(self, key: str) -> Optional[str]:
        try:
            cur = self._cursor()
            cur.execute("SELECT value FROM kv_store WHERE key = %s", (key,))
            row = cur.fetchone()
            cur.close()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise StorageError(f"Could not read '{key}': {e}") from e
        if not row:
            return None
        return row["value"]

    def write(self, key: str, value: str) -> None:
        try:
            cur = self.conn.cursor()
            cur.execute(
                """INSERT INTO kv_store (key, value, updated_at)
                   VALUES (%s, %s, CURRENT_TIMESTAMP)
                   ON CONFLICT (key) DO UPDATE
                   SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at""",
                (key, value),
            )
            self.conn.commit()
            cur.close()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise StorageError(f"Could not write '{key}': {e}") from e
        logger.debug(f"Wrote {len(value)} bytes to kv_store[{key}]")


def open_blob_store(database_url: str, data_dir: Path) -> BlobStore:
    """Use Postgres when a URL is configured, otherwise local JSON files."""
    if database_url:
        db = Database(database_url)
        db.initialize()
        logger.info("Using PostgreSQL blob store")
        return db
    logger.info(f"Using file blob store in {data_dir}")
    return FileBlobStore(data_dir)
