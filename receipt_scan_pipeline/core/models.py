"""
Data models for receipt scanning.
"""

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from .failures import ReceiptProcessingFailure

DEFAULT_CURRENCY = "KZT"
CURRENCY_SYMBOL = "₸"


class ExpenseCategory(str, Enum):
    """Expense categories a transaction can be filed under."""
    FOOD = "food"
    TRANSPORT = "transport"
    UTILITIES = "utilities"
    SHOPPING = "shopping"
    ENTERTAINMENT = "entertainment"
    HEALTH = "health"
    EDUCATION = "education"
    TAXES = "taxes"
    TRANSFER = "transfer"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class ReceiptSource(str, Enum):
    """Where the receipt came from; drives which extraction rules apply."""
    CAMERA = "camera"
    PDF_KASPI = "pdf_kaspi"
    PDF_HALYK = "pdf_halyk"

    @property
    def display_name(self) -> str:
        return {
            ReceiptSource.CAMERA: "Camera",
            ReceiptSource.PDF_KASPI: "Kaspi PDF",
            ReceiptSource.PDF_HALYK: "Halyk PDF",
        }[self]


@dataclass(frozen=True)
class ParsedReceipt:
    """Result of parsing the recognized text of one receipt."""
    raw_text: str
    detected_source: ReceiptSource = ReceiptSource.CAMERA
    confidence: float = 0.0
    amount: Optional[Decimal] = None
    merchant: Optional[str] = None
    date: Optional[dt.datetime] = None
    receipt_number: Optional[str] = None
    suggested_category: Optional[ExpenseCategory] = None

    @property
    def is_valid(self) -> bool:
        """Enough data was extracted to create a transaction."""
        return self.amount is not None and self.amount > 0

    @property
    def is_kaspi(self) -> bool:
        return (self.detected_source == ReceiptSource.PDF_KASPI
                or "kaspi" in self.raw_text.lower())

    @property
    def is_halyk(self) -> bool:
        return (self.detected_source == ReceiptSource.PDF_HALYK
                or "halyk" in self.raw_text.lower())

    def to_dict(self):
        """Convert to a JSON-friendly dictionary."""
        return {
            "amount": str(self.amount) if self.amount is not None else None,
            "merchant": self.merchant,
            "date": self.date.isoformat() if self.date else None,
            "receipt_number": self.receipt_number,
            "detected_source": self.detected_source.value,
            "confidence": self.confidence,
            "suggested_category": self.suggested_category.value if self.suggested_category else None,
            "is_valid": self.is_valid,
            "raw_text": self.raw_text,
        }

    def __str__(self):
        return (f"ParsedReceipt(amount: {self.amount} {CURRENCY_SYMBOL}, merchant: {self.merchant}, "
                f"date: {self.date}, source: {self.detected_source.display_name}, "
                f"confidence: {self.confidence * 100:.0f}%)")


@dataclass(frozen=True)
class TransactionRecord:
    """A transaction as confirmed by the persistence collaborator."""
    id: str
    amount: Decimal
    category: ExpenseCategory
    date: dt.datetime
    source: ReceiptSource
    created_at: dt.datetime
    currency: str = DEFAULT_CURRENCY
    merchant: Optional[str] = None
    receipt_number: Optional[str] = None
    raw_text: Optional[str] = None
    note: Optional[str] = None


# Scan session states. Exactly one is active at a time.

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Processing:
    status_message: str


@dataclass(frozen=True)
class Result:
    receipt: ParsedReceipt


@dataclass(frozen=True)
class Error:
    """A failed scan.

    ``receipt`` is set when parsing produced a partial result (no amount) so
    the user can still see and correct it.
    """
    failure: ReceiptProcessingFailure
    receipt: Optional[ParsedReceipt] = field(default=None)


ScanSessionState = Union[Idle, Processing, Result, Error]
