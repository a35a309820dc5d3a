"""
Receipt Scan Pipeline

Turns receipt photos and bank statement PDFs into validated transaction
records: PDF rendering, hybrid Tesseract OCR, rule-based parsing and a scan
session state machine.
"""

__version__ = "1.0.0"
__author__ = "Receipt Scan Pipeline Contributors"

from receipt_scan_pipeline.core.models import ExpenseCategory, ParsedReceipt, ReceiptSource
from receipt_scan_pipeline.core.parsers import parse_receipt

__all__ = ["ExpenseCategory", "ParsedReceipt", "ReceiptSource", "parse_receipt"]
