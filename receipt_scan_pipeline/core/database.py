"""
Database operations for confirmed transactions.

SqliteTransactionStore is the bundled persistence collaborator for the scan
session controller; anything with the same add() signature can replace it.
"""

import datetime as dt
import sqlite3
import uuid
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Protocol

from ..logging import get_logger
from .failures import StorageFailure
from .models import DEFAULT_CURRENCY, ExpenseCategory, ReceiptSource, TransactionRecord

log = get_logger(__name__)

_COLUMNS = ("id, amount, currency, category, date, source, merchant, "
            "receipt_number, raw_text, note, created_at")


class TransactionStore(Protocol):
    """What the scan session controller needs from persistence."""

    def add(self, *, amount: Decimal, category: ExpenseCategory, date: dt.datetime,
            source: ReceiptSource, merchant: Optional[str] = None,
            receipt_number: Optional[str] = None, raw_text: Optional[str] = None,
            note: Optional[str] = None) -> TransactionRecord:
        ...


def init_transactions_db(db_path: Path):
    """Initialize SQLite database for transactions."""
    with sqlite3.connect(db_path.as_posix()) as conn:
        cur = conn.cursor()
        cur.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id TEXT PRIMARY KEY,
            amount TEXT NOT NULL,
            currency TEXT NOT NULL,
            category TEXT NOT NULL,
            date TEXT NOT NULL,
            source TEXT NOT NULL,
            merchant TEXT,
            receipt_number TEXT,
            raw_text TEXT,
            note TEXT,
            created_at TEXT NOT NULL
        )
        """)
        cur.execute("CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(date)")
        conn.commit()


def _row_to_record(row) -> TransactionRecord:
    return TransactionRecord(
        id=row[0],
        amount=Decimal(row[1]),
        currency=row[2],
        category=ExpenseCategory(row[3]),
        date=dt.datetime.fromisoformat(row[4]),
        source=ReceiptSource(row[5]),
        merchant=row[6],
        receipt_number=row[7],
        raw_text=row[8],
        note=row[9],
        created_at=dt.datetime.fromisoformat(row[10]),
    )


class SqliteTransactionStore:
    """Transactions stored in a local SQLite file."""

    def __init__(self, db_path: Path, clock=dt.datetime.now):
        self.db_path = Path(db_path)
        self.clock = clock
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            init_transactions_db(self.db_path)
        except (OSError, sqlite3.Error) as e:
            raise StorageFailure(f"Could not open database: {e}", db_path=str(self.db_path),
                                 original_error=e) from e

    def add(self, *, amount: Decimal, category: ExpenseCategory, date: dt.datetime,
            source: ReceiptSource, merchant: Optional[str] = None,
            receipt_number: Optional[str] = None, raw_text: Optional[str] = None,
            note: Optional[str] = None) -> TransactionRecord:
        """Save a new transaction and return it with its durable id."""
        if amount is None or amount <= 0:
            raise ValueError("amount must be positive")

        record = TransactionRecord(
            id=uuid.uuid4().hex,
            amount=Decimal(amount),
            currency=DEFAULT_CURRENCY,
            category=ExpenseCategory(category),
            date=date,
            source=ReceiptSource(source),
            merchant=merchant,
            receipt_number=receipt_number,
            raw_text=raw_text,
            note=note,
            created_at=self.clock(),
        )
        try:
            with sqlite3.connect(self.db_path.as_posix()) as conn:
                cur = conn.cursor()
                cur.execute(f"""
                    INSERT INTO transactions ({_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (record.id, str(record.amount), record.currency, record.category.value,
                      record.date.isoformat(), record.source.value, record.merchant,
                      record.receipt_number, record.raw_text, record.note,
                      record.created_at.isoformat()))
                conn.commit()
        except sqlite3.Error as e:
            raise StorageFailure(f"Could not save transaction: {e}", db_path=str(self.db_path),
                                 original_error=e) from e

        log.info(f"Saved transaction {record.id} ({record.amount} {record.currency})")
        return record

    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        with sqlite3.connect(self.db_path.as_posix()) as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_COLUMNS} FROM transactions WHERE id = ?", (transaction_id,))
            row = cur.fetchone()
        return _row_to_record(row) if row else None

    def list_all(self) -> List[TransactionRecord]:
        """All transactions, newest date first."""
        with sqlite3.connect(self.db_path.as_posix()) as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_COLUMNS} FROM transactions ORDER BY date DESC, created_at DESC")
            rows = cur.fetchall()
        return [_row_to_record(r) for r in rows]

    def delete(self, transaction_id: str) -> bool:
        with sqlite3.connect(self.db_path.as_posix()) as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
            conn.commit()
            return cur.rowcount > 0
