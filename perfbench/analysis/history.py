"""
Benchmark Session History

SQLite-backed store of per-session result metrics so that trends can be fit
across repeated benchmark sessions. One row is stored per result metric per
session; the trend engine reads them back as TrendDataPoint series keyed by
(service, metric).
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from perfbench.analysis.models import BenchmarkResult, TrendDataPoint, parse_timestamp
from perfbench.analysis.trends import RESULT_METRICS
from perfbench.monitoring.logging import get_logger


logger = get_logger(__name__)


class HistoryStore:
    """Persists result metrics per session in a SQLite database."""

    def __init__(self, database_path: Union[str, Path]):
        self.database_path = str(database_path)
        Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.database_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_database(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS session_metrics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    recorded_at TEXT NOT NULL,
                    test_name TEXT NOT NULL,
                    service TEXT NOT NULL,
                    endpoint TEXT NOT NULL,
                    metric TEXT NOT NULL,
                    value REAL NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_series ON session_metrics(service, metric)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_session ON session_metrics(session_id)")

    def record_session(self, session_id: str, results: Sequence[BenchmarkResult]) -> int:
        """Store every trend metric of every result; returns rows written."""
        rows = [
            (session_id, result.timestamp.isoformat(), result.test_name, result.service,
             result.endpoint, metric, float(extract(result)))
            for result in results
            for metric, extract in RESULT_METRICS.items()
        ]
        if not rows:
            return 0
        with self._connect() as conn:
            conn.executemany("""
                INSERT INTO session_metrics (
                    session_id, recorded_at, test_name, service, endpoint, metric, value
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, rows)
        logger.info("Session recorded in history", session_id=session_id, rows=len(rows))
        return len(rows)

    def load_series(self, since: Optional[datetime] = None,
                    exclude_session: Optional[str] = None,
                    limit_sessions: Optional[int] = None) -> Dict[Tuple[str, str], List[TrendDataPoint]]:
        """
        Read back per-(service, metric) series, one point per session.

        Values from several results of the same service and session (for
        example several endpoints) are averaged into one point.
        """
        query = """
            SELECT service, metric, session_id, MIN(recorded_at) AS recorded_at, AVG(value) AS value
            FROM session_metrics WHERE 1=1
        """
        params: List[object] = []
        if since is not None:
            query += " AND recorded_at >= ?"
            params.append(since.isoformat())
        if exclude_session is not None:
            query += " AND session_id != ?"
            params.append(exclude_session)
        if limit_sessions is not None:
            query += """ AND session_id IN (
                SELECT session_id FROM session_metrics GROUP BY session_id
                ORDER BY MIN(recorded_at) DESC LIMIT ?
            )"""
            params.append(int(limit_sessions))
        query += " GROUP BY service, metric, session_id ORDER BY recorded_at"

        series: Dict[Tuple[str, str], List[TrendDataPoint]] = {}
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            for row in conn.execute(query, params):
                series.setdefault((row['service'], row['metric']), []).append(
                    TrendDataPoint(parse_timestamp(row['recorded_at']), float(row['value']), row['session_id'])
                )
        return series

    def session_ids(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT session_id FROM session_metrics GROUP BY session_id ORDER BY MIN(recorded_at)"
            ).fetchall()
        return [row[0] for row in rows]
