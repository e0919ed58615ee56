"""
SQLite implementation of RequestStore.
Persists the seen set and pending order so an interrupted crawl can resume
without re-visiting completed or dead-lettered pages.
"""

import json
import sqlite3
from pathlib import Path
from typing import Dict, Optional

from frontier.models import CrawlRequest, RequestState
from frontier.storage import RequestStore
from harvester.core import logger

_SCHEMA = """
CREATE TABLE IF NOT EXISTS crawl_requests (
    unique_key TEXT PRIMARY KEY,
    url TEXT NOT NULL,
    retry_count INTEGER NOT NULL DEFAULT 0,
    state TEXT NOT NULL,            -- RequestState value
    error_messages TEXT NOT NULL,   -- JSON array, one entry per failed attempt
    next_attempt_at REAL            -- epoch seconds, NULL when immediately runnable
);
CREATE TABLE IF NOT EXISTS pending_order (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    unique_key TEXT NOT NULL REFERENCES crawl_requests(unique_key)
);
"""

_IN_FLIGHT_STATES = (RequestState.RENDERING.value, RequestState.EXTRACTING.value, RequestState.FAILED.value)


class SQLiteRequestStore(RequestStore):

    def __init__(self, db_path):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA foreign_keys = ON;")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._recover_in_flight()

    def _recover_in_flight(self) -> None:
        """
        Requests left mid-processing by a crashed run go back to the pending tail
        with their retry history intact.
        """
        placeholders = ",".join("?" for _ in _IN_FLIGHT_STATES)
        rows = self._conn.execute(
            f"SELECT unique_key FROM crawl_requests WHERE state IN ({placeholders}) "
            "AND unique_key NOT IN (SELECT unique_key FROM pending_order)",
            _IN_FLIGHT_STATES,
        ).fetchall()
        if not rows:
            return
        with self._conn:
            for (unique_key,) in rows:
                self._conn.execute(
                    "UPDATE crawl_requests SET state = ? WHERE unique_key = ?",
                    (RequestState.PENDING.value, unique_key),
                )
                self._conn.execute("INSERT INTO pending_order (unique_key) VALUES (?)", (unique_key,))
        logger.info(f"Recovered {len(rows)} in-flight request(s) from {self._db_path}", extra={'context': 'frontier'})

    @staticmethod
    def _row_to_request(row) -> CrawlRequest:
        return CrawlRequest(
            unique_key=row[0],
            url=row[1],
            retry_count=row[2],
            state=RequestState(row[3]),
            error_messages=tuple(json.loads(row[4])),
            next_attempt_at=row[5],
        )

    @staticmethod
    def _params(request: CrawlRequest):
        return (
            request.url,
            request.retry_count,
            request.state.value,
            json.dumps(list(request.error_messages)),
            request.next_attempt_at,
            request.unique_key,
        )

    def _write(self, request: CrawlRequest) -> None:
        cursor = self._conn.execute(
            "UPDATE crawl_requests SET url = ?, retry_count = ?, state = ?, error_messages = ?, "
            "next_attempt_at = ? WHERE unique_key = ?",
            self._params(request),
        )
        if cursor.rowcount == 0:
            raise KeyError(request.unique_key)

    def create_if_absent(self, request: CrawlRequest) -> bool:
        with self._conn:
            cursor = self._conn.execute(
                "INSERT OR IGNORE INTO crawl_requests "
                "(url, retry_count, state, error_messages, next_attempt_at, unique_key) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                self._params(request),
            )
            if cursor.rowcount == 0:
                return False
            self._conn.execute("INSERT INTO pending_order (unique_key) VALUES (?)", (request.unique_key,))
        return True

    def append(self, request: CrawlRequest) -> None:
        with self._conn:
            self._write(request)
            self._conn.execute("INSERT INTO pending_order (unique_key) VALUES (?)", (request.unique_key,))

    def pop_next(self) -> Optional[CrawlRequest]:
        with self._conn:
            head = self._conn.execute(
                "SELECT seq, unique_key FROM pending_order ORDER BY seq ASC LIMIT 1"
            ).fetchone()
            if not head:
                return None
            self._conn.execute("DELETE FROM pending_order WHERE seq = ?", (head[0],))
        return self.get(head[1])

    def update(self, request: CrawlRequest) -> None:
        with self._conn:
            self._write(request)

    def get(self, unique_key: str) -> Optional[CrawlRequest]:
        row = self._conn.execute(
            "SELECT unique_key, url, retry_count, state, error_messages, next_attempt_at "
            "FROM crawl_requests WHERE unique_key = ?",
            (unique_key,),
        ).fetchone()
        return self._row_to_request(row) if row else None

    def pending_count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM pending_order").fetchone()[0]

    def counts_by_state(self) -> Dict[RequestState, int]:
        rows = self._conn.execute("SELECT state, COUNT(*) FROM crawl_requests GROUP BY state").fetchall()
        return {RequestState(state): count for state, count in rows}

    def close(self) -> None:
        self._conn.close()
