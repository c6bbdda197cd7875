"""SQLiteStore: a single-file review cache.

The narrative and the structured JSON are two columns of the same row, so a
single INSERT OR REPLACE inside one transaction writes both or neither.

Schema:
  review_cache: one row per (repo, head_sha); rewritten on force refresh.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from prverdict_store.base import BaseStore
from prverdict_store.models import ReviewRecord, record_from_parts, structured_payload

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS review_cache (
    repo             TEXT NOT NULL,
    head_sha         TEXT NOT NULL,
    narrative        TEXT NOT NULL DEFAULT '',
    structured_json  TEXT NOT NULL DEFAULT '{}',
    created_at       TEXT,
    PRIMARY KEY (repo, head_sha)
);
"""


class SQLiteStore(BaseStore):
    """Caches reviews in a local SQLite database file.

    The path defaults to `.prverdict/reviews.db`. Configure via .prverdict.yml:
    `cache: sqlite` and `cache_path: /path/to/reviews.db`.
    """

    def __init__(self, db_path: str = ".prverdict/reviews.db"):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def store(self, record: ReviewRecord) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO review_cache
                  (repo, head_sha, narrative, structured_json, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.repo,
                    record.head_sha,
                    record.narrative,
                    json.dumps(structured_payload(record)),
                    record.created_at,
                ),
            )

    def lookup(self, repo: str, head_sha: str) -> ReviewRecord | None:
        row = self._conn.execute(
            "SELECT narrative, structured_json FROM review_cache WHERE repo=? AND head_sha=?",
            (repo, head_sha),
        ).fetchone()
        if row is None:
            return None
        try:
            payload = json.loads(row["structured_json"] or "{}")
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable cache row for %s@%s: %s", repo, head_sha, e)
            return None
        if not isinstance(payload, dict):
            logger.warning("Ignoring cache row for %s@%s: structured JSON is not an object", repo, head_sha)
            return None
        return record_from_parts(row["narrative"] or "", payload)

    def close(self) -> None:
        self._conn.close()
