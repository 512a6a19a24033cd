"""Storage layer for classification results.

Provides a SQLite backend for structured storage and JSON Lines logging
for streaming result output. A ResultStore is typically attached to a
BehaviorEngine as a result listener.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from lantern.models import ClassificationResult, Contribution

logger = logging.getLogger(__name__)


class ResultStore:
    """SQLite-based storage for classification results.

    Each evaluation pass is stored as one row, with structured JSON Lines
    logging as a secondary output.
    """

    def __init__(self, db_path: str | Path, log_path: str | Path | None = None) -> None:
        """Initialize the result store.

        Args:
            db_path: Path to the SQLite database file.
            log_path: Optional path for the JSON Lines result log.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_path = Path(log_path) if log_path else None
        if self.log_path:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def __call__(self, result: ClassificationResult) -> None:
        self.save_result(result)

    def _init_db(self) -> None:
        """Create database tables if they do not exist."""
        conn = self._connect()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                verdict TEXT NOT NULL DEFAULT 'unknown',
                confidence REAL NOT NULL DEFAULT 0,
                scores TEXT NOT NULL DEFAULT '{}',
                contributions TEXT NOT NULL DEFAULT '[]'
            );

            CREATE INDEX IF NOT EXISTS idx_results_session ON results(session_id);
            CREATE INDEX IF NOT EXISTS idx_results_timestamp ON results(timestamp);
            CREATE INDEX IF NOT EXISTS idx_results_verdict ON results(verdict);
        """)
        conn.close()

    def _connect(self) -> sqlite3.Connection:
        """Open a connection to the SQLite database.

        Returns:
            A sqlite3.Connection instance.
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def save_result(self, result: ClassificationResult) -> None:
        """Persist a ClassificationResult to the database and result log.

        Args:
            result: The result to store.
        """
        conn = self._connect()
        conn.execute(
            """INSERT INTO results
               (session_id, timestamp, verdict, confidence, scores, contributions)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                result.session_id,
                result.timestamp.isoformat(),
                result.verdict,
                result.confidence,
                json.dumps(result.scores),
                json.dumps([c.model_dump(mode="json") for c in result.contributions]),
            ),
        )
        conn.commit()
        conn.close()

        self._log_result(result)

    def get_latest_result(self, session_id: str) -> ClassificationResult | None:
        """Retrieve the most recent result for a session.

        Args:
            session_id: The session ID to look up.

        Returns:
            The latest ClassificationResult, or None if none is stored.
        """
        conn = self._connect()
        row = conn.execute(
            "SELECT * FROM results WHERE session_id = ? ORDER BY id DESC LIMIT 1",
            (session_id,),
        ).fetchone()
        conn.close()

        if row is None:
            return None
        return _row_to_result(row)

    def get_recent_results(self, limit: int = 50) -> list[ClassificationResult]:
        """Retrieve the most recent results.

        Args:
            limit: Maximum number of results to return.

        Returns:
            List of ClassificationResult instances, most recent first.
        """
        conn = self._connect()
        rows = conn.execute("SELECT * FROM results ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        conn.close()
        return [_row_to_result(row) for row in rows]

    def get_results_by_verdict(self, verdict: str, limit: int = 50) -> list[ClassificationResult]:
        """Retrieve results filtered by verdict.

        Args:
            verdict: The verdict (archetype name or 'unknown') to filter by.
            limit: Maximum number of results to return.

        Returns:
            List of matching ClassificationResult instances, most recent first.
        """
        conn = self._connect()
        rows = conn.execute(
            "SELECT * FROM results WHERE verdict = ? ORDER BY id DESC LIMIT ?",
            (verdict, limit),
        ).fetchall()
        conn.close()
        return [_row_to_result(row) for row in rows]

    def count_results(self) -> int:
        """Return the total number of stored results."""
        conn = self._connect()
        result = conn.execute("SELECT COUNT(*) FROM results").fetchone()
        conn.close()
        return result[0] if result else 0

    def _log_result(self, result: ClassificationResult) -> None:
        """Append a result to the JSON Lines log file.

        Args:
            result: The result to log.
        """
        if self.log_path is None:
            return
        try:
            with open(self.log_path, "a") as f:
                f.write(result.model_dump_json(exclude={"contributions"}) + "\n")
        except OSError as exc:
            logger.warning("Failed to write result log: %s", exc)


def _row_to_result(row: sqlite3.Row) -> ClassificationResult:
    """Convert a database row to a ClassificationResult."""
    return ClassificationResult(
        session_id=row["session_id"],
        verdict=row["verdict"],
        confidence=row["confidence"],
        scores=json.loads(row["scores"]),
        timestamp=datetime.fromisoformat(row["timestamp"]),
        contributions=[Contribution.model_validate(c) for c in json.loads(row["contributions"])],
    )
