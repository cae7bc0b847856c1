"""SQLite storage for imported datasets (raw CSV, unit preference, metadata) and their warnings."""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from .models import IssueRecord


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict:
    return {col[0]: row[i] for i, col in enumerate(cursor.description)}


class Storage:
    """SQLite-backed storage for liftlens datasets."""

    def __init__(self, db_path: str | Path = "liftlens.db"):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            # tool calls may arrive on worker threads
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = _dict_factory
            self._ensure_schema()
        return self._conn

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_schema(self) -> None:
        conn = self.connect()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS datasets (
                dataset_id TEXT PRIMARY KEY,
                raw_csv TEXT NOT NULL,
                unit TEXT NOT NULL DEFAULT 'kg',
                platform TEXT,
                row_count INTEGER NOT NULL DEFAULT 0,
                first_ts TEXT,
                last_ts TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE TABLE IF NOT EXISTS issues (
                dataset_id TEXT PRIMARY KEY,
                issue_json TEXT NOT NULL,
                FOREIGN KEY (dataset_id) REFERENCES datasets(dataset_id)
            );
            CREATE INDEX IF NOT EXISTS idx_datasets_created_at ON datasets(created_at);
        """)
        conn.commit()

    def store_dataset(
        self,
        dataset_id: str,
        raw_csv: str,
        unit: str,
        platform: Optional[str],
        row_count: int,
        first_ts: Optional[datetime] = None,
        last_ts: Optional[datetime] = None,
    ) -> None:
        """Insert or replace a dataset; re-importing under the same id overwrites it."""
        conn = self.connect()
        conn.execute(
            """
            INSERT INTO datasets (dataset_id, raw_csv, unit, platform, row_count, first_ts, last_ts)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(dataset_id) DO UPDATE SET
                raw_csv = excluded.raw_csv,
                unit = excluded.unit,
                platform = excluded.platform,
                row_count = excluded.row_count,
                first_ts = excluded.first_ts,
                last_ts = excluded.last_ts
            """,
            (
                dataset_id,
                raw_csv,
                unit,
                platform,
                row_count,
                first_ts.isoformat() if first_ts else None,
                last_ts.isoformat() if last_ts else None,
            ),
        )
        conn.commit()

    def store_issues(self, dataset_id: str, issues: list[IssueRecord]) -> None:
        conn = self.connect()
        conn.execute(
            "INSERT OR REPLACE INTO issues (dataset_id, issue_json) VALUES (?, ?)",
            (dataset_id, json.dumps([i.model_dump() for i in issues])),
        )
        conn.commit()

    def get_dataset(self, dataset_id: str) -> Optional[dict]:
        """Return the dataset row as a dict, or None."""
        conn = self.connect()
        row = conn.execute(
            """
            SELECT dataset_id, raw_csv, unit, platform, row_count, first_ts, last_ts, created_at
            FROM datasets WHERE dataset_id = ?
            """,
            (dataset_id,),
        ).fetchone()
        return dict(row) if row else None

    def get_issues(self, dataset_id: str) -> list[dict]:
        conn = self.connect()
        row = conn.execute("SELECT issue_json FROM issues WHERE dataset_id = ?", (dataset_id,)).fetchone()
        if not row:
            return []
        return json.loads(row["issue_json"])

    def list_datasets(self) -> list[dict]:
        """Metadata for every dataset (no raw CSV), newest first."""
        conn = self.connect()
        return conn.execute(
            """
            SELECT dataset_id, unit, platform, row_count, first_ts, last_ts, created_at
            FROM datasets ORDER BY created_at DESC, dataset_id
            """
        ).fetchall()


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"
