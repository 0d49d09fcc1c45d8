"""
SQLite-based receipt storage.

Provides persistent storage of receipts with SQL filtering and aggregation.
"""

import sqlite3
import uuid
from datetime import datetime, UTC
from typing import Optional
from .receipt_store_base import ReceiptStoreBase

_COLUMNS = (
    "id, user_id, date, vendor, service_type, amount, "
    "image_filename, image_content_type, image_size_bytes, "
    "ocr_text, ocr_confidence, ocr_processed_at, "
    "created_at, updated_at, deleted_at"
)


class SQLiteReceiptStore(ReceiptStoreBase):
    """
    SQLite-backed receipt store with persistent storage.

    Features:
    - Persistent storage across application restarts
    - Year/month/service type filtering done in SQL
    - Soft deletes (deleted_at) so records stay available for audit
    """

    def __init__(self, db_path: str = "receipts.db"):
        """
        Initialize store with database path.

        Args:
            db_path: Path to SQLite database file (default: receipts.db)
        """
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Create receipts table if it doesn't exist"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS receipts (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                date TEXT NOT NULL,
                vendor TEXT NOT NULL,
                service_type TEXT NOT NULL DEFAULT 'Other',
                amount REAL NOT NULL,
                image_filename TEXT,
                image_content_type TEXT,
                image_size_bytes INTEGER,
                ocr_text TEXT,
                ocr_confidence INTEGER,
                ocr_processed_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                deleted_at TEXT,
                CHECK (amount > 0)
            )
        """)

        # Create indexes for common queries
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_receipts_user_date
            ON receipts(user_id, date)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_receipts_service_type
            ON receipts(service_type)
        """)

        conn.commit()
        conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def create_receipt(self, user_id: str, data: dict) -> dict:
        """
        Store a new receipt.

        Args:
            user_id: Owner of the receipt
            data: Validated receipt fields plus optional image/OCR metadata

        Returns:
            The stored receipt dictionary
        """
        receipt_id = str(uuid.uuid4())
        now = datetime.now(UTC).isoformat()

        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute(f"""
            INSERT INTO receipts ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL)
        """, (
            receipt_id,
            user_id,
            data["date"],
            data["vendor"],
            data["service_type"],
            data["amount"],
            data.get("image_filename"),
            data.get("image_content_type"),
            data.get("image_size_bytes"),
            data.get("ocr_text"),
            data.get("ocr_confidence"),
            data.get("ocr_processed_at"),
            now,
            now,
        ))

        conn.commit()
        conn.close()

        return self.get_receipt(user_id, receipt_id)

    def get_receipt(self, user_id: str, receipt_id: str) -> Optional[dict]:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute(f"""
            SELECT {_COLUMNS}
            FROM receipts
            WHERE id = ? AND user_id = ? AND deleted_at IS NULL
        """, (receipt_id, user_id))

        row = cursor.fetchone()
        conn.close()

        return dict(row) if row is not None else None

    def update_receipt(self, user_id: str, receipt_id: str, fields: dict) -> Optional[dict]:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            UPDATE receipts
            SET date = ?,
                vendor = ?,
                service_type = ?,
                amount = ?,
                updated_at = ?
            WHERE id = ? AND user_id = ? AND deleted_at IS NULL
        """, (
            fields["date"],
            fields["vendor"],
            fields["service_type"],
            fields["amount"],
            datetime.now(UTC).isoformat(),
            receipt_id,
            user_id,
        ))

        rows_affected = cursor.rowcount
        conn.commit()
        conn.close()

        if rows_affected == 0:
            return None
        return self.get_receipt(user_id, receipt_id)

    def delete_receipt(self, user_id: str, receipt_id: str) -> bool:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            UPDATE receipts
            SET deleted_at = ?
            WHERE id = ? AND user_id = ? AND deleted_at IS NULL
        """, (datetime.now(UTC).isoformat(), receipt_id, user_id))

        rows_affected = cursor.rowcount
        conn.commit()
        conn.close()

        return rows_affected > 0

    def list_receipts(self, user_id: str, year: Optional[int] = None, month: Optional[int] = None,
                      service_type: Optional[str] = None, limit: int = 50, offset: int = 0) -> tuple[list, int]:
        """
        List receipts ordered by transaction date, newest first.

        Returns:
            (page of receipt dictionaries, total count matching the filters)
        """
        where = "WHERE user_id = ? AND deleted_at IS NULL"
        params: list = [user_id]

        if year is not None:
            where += " AND substr(date, 1, 4) = ?"
            params.append(f"{year:04d}")

        if month is not None:
            where += " AND substr(date, 6, 2) = ?"
            params.append(f"{month:02d}")

        if service_type is not None:
            where += " AND service_type = ?"
            params.append(service_type)

        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute(f"""
            SELECT {_COLUMNS}
            FROM receipts
            {where}
            ORDER BY date DESC, created_at DESC
            LIMIT ? OFFSET ?
        """, (*params, limit, offset))
        rows = cursor.fetchall()

        cursor.execute(f"SELECT COUNT(*) FROM receipts {where}", params)
        total = cursor.fetchone()[0]

        conn.close()

        return [dict(row) for row in rows], total

    def total_for_year(self, user_id: str, year: int) -> float:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            SELECT COALESCE(SUM(amount), 0)
            FROM receipts
            WHERE user_id = ? AND substr(date, 1, 4) = ? AND deleted_at IS NULL
        """, (user_id, f"{year:04d}"))

        total = cursor.fetchone()[0]
        conn.close()

        return float(round(total, 2))
