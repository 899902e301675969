"""
@file stats.py
@brief SQLite store of monitoring cycle results.

Durable history of monitoring cycles in SQLite, one row per resolved
cycle, plus the aggregate queries used by `slotwatch stats`.

Hour and weekday buckets are computed in local time; weekday 0 is Sunday.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Dict, Iterator, List, Optional, Tuple

from .exceptions import StatsError
from .outcome import CheckOutcome

logger = logging.getLogger(__name__)

_LOCAL_TS = "datetime(timestamp / 1000, 'unixepoch', 'localtime')"


@dataclass(frozen=True)
class CheckRecord:
    """A stored cycle result."""

    id: int
    timestamp_ms: int
    is_success: bool
    slots_found: bool
    slot_days: Optional[str]
    duration_ms: int
    error_message: Optional[str]


@dataclass(frozen=True)
class StatsSummary:
    total: int
    successful: int
    slots_found: int
    success_rate: float
    average_duration_ms: Optional[float]

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": self.total,
            "successful": self.successful,
            "slots_found": self.slots_found,
            "success_rate": self.success_rate,
            "average_duration_ms": self.average_duration_ms,
        }


class StatsRepository:
    """
    SQLite-backed cycle history.

    Usage:
        repo = StatsRepository("slotwatch.db")
        repo.record(outcome)
        print(repo.summary())
    """

    def __init__(self, db_path: str = "slotwatch.db"):
        self.db_path = Path(db_path)
        self._lock = Lock()
        self._init_db()
        logger.debug(f"Stats store at {self.db_path}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StatsError(f"Cannot open stats database {self.db_path}: {e}") from e
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StatsError(f"Stats database error: {e}") from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Create the schema if missing."""
        if self.db_path.parent and str(self.db_path.parent) not in ("", "."):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS check_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp INTEGER NOT NULL,
                    is_success INTEGER NOT NULL,
                    slots_found INTEGER NOT NULL,
                    slot_days TEXT,
                    duration_ms INTEGER NOT NULL,
                    error_message TEXT
                )
            """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_timestamp ON check_records(timestamp)")

    def record(self, outcome: CheckOutcome) -> int:
        """
        Persist one outcome.

        Returns:
            Row id
        """
        slot_days = "; ".join(outcome.slot_labels) if outcome.slot_labels else None
        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO check_records (
                    timestamp, is_success, slots_found, slot_days, duration_ms, error_message
                ) VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    int(outcome.timestamp * 1000),
                    int(outcome.success),
                    int(outcome.slots_found),
                    slot_days,
                    int(outcome.duration_ms),
                    outcome.error,
                ),
            )
            return int(cursor.lastrowid)

    def recent(self, limit: int = 50) -> List[CheckRecord]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, timestamp, is_success, slots_found, slot_days, duration_ms, error_message
                FROM check_records ORDER BY timestamp DESC, id DESC LIMIT ?
            """,
                (limit,),
            ).fetchall()
        return [
            CheckRecord(
                id=row[0],
                timestamp_ms=row[1],
                is_success=bool(row[2]),
                slots_found=bool(row[3]),
                slot_days=row[4],
                duration_ms=row[5],
                error_message=row[6],
            )
            for row in rows
        ]

    def summary(self) -> StatsSummary:
        with self._lock, self._connect() as conn:
            total, successful, found = conn.execute(
                """
                SELECT COUNT(*),
                       COALESCE(SUM(is_success), 0),
                       COALESCE(SUM(slots_found), 0)
                FROM check_records
            """
            ).fetchone()
            (avg_duration,) = conn.execute(
                "SELECT AVG(duration_ms) FROM check_records WHERE is_success = 1"
            ).fetchone()
        rate = round(successful * 100.0 / total, 1) if total else 0.0
        return StatsSummary(
            total=total,
            successful=successful,
            slots_found=found,
            success_rate=rate,
            average_duration_ms=round(avg_duration, 1) if avg_duration is not None else None,
        )

    def slots_by_hour(self) -> Dict[int, int]:
        """Slots-found count per local hour (0-23)."""
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT CAST(strftime('%H', {_LOCAL_TS}) AS INTEGER) AS hour, COUNT(*)
                FROM check_records WHERE slots_found = 1
                GROUP BY hour ORDER BY hour
            """
            ).fetchall()
        return {hour: count for hour, count in rows}

    def slots_by_weekday(self) -> Dict[int, int]:
        """Slots-found count per local weekday (0 = Sunday)."""
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT CAST(strftime('%w', {_LOCAL_TS}) AS INTEGER) AS weekday, COUNT(*)
                FROM check_records WHERE slots_found = 1
                GROUP BY weekday ORDER BY weekday
            """
            ).fetchall()
        return {weekday: count for weekday, count in rows}

    def heat_map(self) -> Dict[Tuple[int, int], int]:
        """Slots-found count keyed by (weekday, hour)."""
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT CAST(strftime('%w', {_LOCAL_TS}) AS INTEGER) AS weekday,
                       CAST(strftime('%H', {_LOCAL_TS}) AS INTEGER) AS hour,
                       COUNT(*)
                FROM check_records WHERE slots_found = 1
                GROUP BY weekday, hour
            """
            ).fetchall()
        return {(weekday, hour): count for weekday, hour, count in rows}

    def clear(self) -> int:
        """Delete all records; returns the number removed."""
        with self._lock, self._connect() as conn:
            cursor = conn.execute("DELETE FROM check_records")
            removed = cursor.rowcount
        logger.info(f"Cleared {removed} check records at {time.strftime('%H:%M:%S')}")
        return removed
