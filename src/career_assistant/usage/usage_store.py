"""SQLite-backed usage log storage."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from career_assistant.usage.models import UsageLog

DEFAULT_DB_PATH = Path.home() / ".career-assistant" / "usage.db"


class UsageStore:
    """SQLite-backed store for generation usage logs with WAL mode."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS usage_logs (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    task_id TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    model TEXT NOT NULL,
                    elapsed_seconds REAL NOT NULL DEFAULT 0.0,
                    total_input_tokens INTEGER NOT NULL DEFAULT 0,
                    total_output_tokens INTEGER NOT NULL DEFAULT 0,
                    output_chars INTEGER NOT NULL DEFAULT 0,
                    estimated_cost_usd REAL NOT NULL DEFAULT 0.0,
                    gaps_persisted INTEGER NOT NULL DEFAULT 0,
                    success INTEGER NOT NULL DEFAULT 1,
                    error_message TEXT
                )
            """)

    def save_log(self, log: UsageLog) -> None:
        """Persist a usage log entry."""
        with self._connect() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO usage_logs
                   (id, owner_id, task_id, timestamp, model, elapsed_seconds,
                    total_input_tokens, total_output_tokens, output_chars,
                    estimated_cost_usd, gaps_persisted, success, error_message)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    log.id,
                    log.owner_id,
                    log.task_id,
                    log.timestamp.isoformat(),
                    log.model,
                    log.elapsed_seconds,
                    log.total_input_tokens,
                    log.total_output_tokens,
                    log.output_chars,
                    log.estimated_cost_usd,
                    1 if log.gaps_persisted else 0,
                    1 if log.success else 0,
                    log.error_message,
                ),
            )

    def get_logs(
        self,
        owner_id: str | None = None,
        limit: int = 50,
    ) -> list[UsageLog]:
        """Retrieve usage logs, optionally filtered by owner."""
        with self._connect() as conn:
            if owner_id is not None:
                rows = conn.execute(
                    "SELECT * FROM usage_logs WHERE owner_id = ? ORDER BY timestamp DESC LIMIT ?",
                    (owner_id, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM usage_logs ORDER BY timestamp DESC LIMIT ?",
                    (limit,),
                ).fetchall()
        return [self._row_to_log(row) for row in rows]

    def get_monthly_stats(self) -> dict:
        """Get aggregated stats for the current month."""
        now = datetime.now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        with self._connect() as conn:
            row = conn.execute(
                """SELECT
                       COUNT(*) as total_runs,
                       SUM(total_input_tokens) as total_input,
                       SUM(total_output_tokens) as total_output,
                       SUM(estimated_cost_usd) as total_cost,
                       SUM(CASE WHEN success = 1 THEN 1 ELSE 0 END) as success_count,
                       SUM(CASE WHEN success = 1 AND gaps_persisted = 0 THEN 1 ELSE 0 END)
                           as unsaved_gaps
                   FROM usage_logs
                   WHERE timestamp >= ?""",
                (month_start.isoformat(),),
            ).fetchone()
        return {
            "total_runs": row[0] or 0,
            "total_input_tokens": row[1] or 0,
            "total_output_tokens": row[2] or 0,
            "total_cost_usd": row[3] or 0.0,
            "success_rate": (row[4] / row[0] * 100) if row[0] else 0.0,
            "unsaved_gaps": row[5] or 0,
            "month": now.strftime("%Y-%m"),
        }

    @staticmethod
    def _row_to_log(row: tuple) -> UsageLog:
        return UsageLog(
            id=row[0],
            owner_id=row[1],
            task_id=row[2],
            timestamp=datetime.fromisoformat(row[3]),
            model=row[4],
            elapsed_seconds=row[5],
            total_input_tokens=row[6],
            total_output_tokens=row[7],
            output_chars=row[8],
            estimated_cost_usd=row[9],
            gaps_persisted=bool(row[10]),
            success=bool(row[11]),
            error_message=row[12],
        )
