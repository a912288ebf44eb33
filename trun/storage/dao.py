import json
from sqlite3 import Connection, Row
from typing import Optional
from trun.utils.validate import AggregateStats, RunRecord
from trun.storage.db import init_db
from trun.utils.log import get_logger
from trun.analysis.aggregate import compute_aggregate_stats

logger = get_logger(__name__)


def db_path_for(name: str) -> str:
    """
    SQLite file backing the run store called `name`.
    """
    return f"trun_{name}.sqlite"


class DAO:
    """
    Encapsulates all inserts/queries against the run store.
    """

    def __init__(self, db_path: str):
        """
        Create/connect and apply schema if needed.
        """
        self.conn: Connection = init_db(db_path)

    def close(self) -> None:
        self.conn.close()

    @staticmethod
    def _to_record(row: Row) -> RunRecord:
        return RunRecord(
            id=row["id"],
            path=json.loads(row["path"]),
            distance=row["distance"],
            claimed_tiles=json.loads(row["claimed_tiles"]),
            duration=row["duration"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            created_at=row["created_at"],
        )

    def add_run(self, record: RunRecord) -> RunRecord:
        """
        Insert a finished run.
        """
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO runs
                  (id, path, distance, claimed_tiles, duration, start_time, end_time, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    json.dumps([list(p) for p in record.path]),
                    record.distance,
                    json.dumps(list(record.claimed_tiles)),
                    record.duration,
                    record.start_time,
                    record.end_time,
                    record.created_at,
                ),
            )
        logger.info("Saved run %s", record.id)
        return record

    def list_runs(self) -> list[RunRecord]:
        """
        Return every stored run, oldest first.
        """
        cursor = self.conn.execute("SELECT * FROM runs ORDER BY seq")
        return [self._to_record(row) for row in cursor.fetchall()]

    def get_run(self, run_id: str) -> Optional[RunRecord]:
        """
        Return the run with the given id, or None.
        """
        cursor = self.conn.execute("SELECT * FROM runs WHERE id = ?", (run_id,))
        row = cursor.fetchone()
        return self._to_record(row) if row is not None else None

    def delete_run(self, run_id: str) -> Optional[RunRecord]:
        """
        Delete a run. Returns the deleted record, or None if it did not exist.
        """
        record = self.get_run(run_id)
        if record is None:
            return None
        with self.conn:
            self.conn.execute("DELETE FROM runs WHERE id = ?", (run_id,))
        logger.info("Deleted run %s", run_id)
        return record

    def get_stats(self) -> AggregateStats:
        """
        Aggregate stats across all stored runs.
        """
        return compute_aggregate_stats(self.list_runs())
