"""Record opioid ordering history for enriched ordered-drug records.

A record is kept only when the ordering account resolved to a state and zip
code and at least one of the ordered / shipped drugs is an opioid.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = (
    "batch_job_id",
    "isa_sender_id",
    "account_number",
    "account_state_code",
    "account_zip_code",
    "order_date",
    "purchase_order_number",
    "ack_status_code",
    "ordered_item",
    "ordered_ndc",
    "ordered_quantity",
    "ordered_ndc_schedule",
    "ordered_ndc_opioid_flag",
    "shipped_item",
    "shipped_ndc",
    "shipped_quantity",
    "shipped_ndc_schedule",
    "shipped_ndc_opioid_flag",
)


def qualifies_for_history(record):
    if getattr(record, "account_state_code", None) is None:
        return False
    return bool(record.ordered_ndc_opioid_flag) or bool(record.shipped_ndc_opioid_flag)


class OrderingHistoryRecorder:
    """Appends qualifying records to the ``ordering_history`` table."""

    def __init__(self, db_path):
        self.db_path = str(db_path)
        self._init_database()

    @contextmanager
    def _get_connection(self):
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        try:
            yield conn
        finally:
            conn.close()

    def _init_database(self):
        columns = ",\n".join(f"{name} TEXT" for name in HISTORY_COLUMNS)
        with self._get_connection() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS ordering_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    {columns},
                    recorded_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def record(self, records, batch_job_id=None):
        """Insert every qualifying record; return how many rows were written."""
        rows = [
            self._to_row(r, batch_job_id)
            for r in records
            if qualifies_for_history(r)
        ]
        if not rows:
            return 0

        placeholders = ", ".join("?" for _ in range(len(HISTORY_COLUMNS) + 1))
        sql = (
            f"INSERT INTO ordering_history ({', '.join(HISTORY_COLUMNS)}, recorded_at) "
            f"VALUES ({placeholders})"
        )
        with self._get_connection() as conn:
            conn.executemany(sql, rows)
            conn.commit()
        logger.info("Recorded %d ordering history row(s) for job %s", len(rows), batch_job_id)
        return len(rows)

    @staticmethod
    def _to_row(record, batch_job_id):
        recorded_at = datetime.now().isoformat(timespec="seconds")
        values = [batch_job_id]
        for name in HISTORY_COLUMNS[1:]:
            value = getattr(record, name)
            if isinstance(value, bool):
                value = "Y" if value else "N"
            values.append(value)
        values.append(recorded_at)
        return values

    def fetch_all(self):
        """Every recorded history row, oldest first, as column-name dicts."""
        with self._get_connection() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute("SELECT * FROM ordering_history ORDER BY id").fetchall()
        return [dict(row) for row in rows]
