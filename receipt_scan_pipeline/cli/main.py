#!/usr/bin/env python3
"""
Main CLI entrypoint for the receipt scan pipeline.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from receipt_scan_pipeline.core.config import PipelineConfig
from receipt_scan_pipeline.core.database import SqliteTransactionStore
from receipt_scan_pipeline.core.failures import ReceiptProcessingFailure
from receipt_scan_pipeline.core.models import Error, ExpenseCategory, Result
from receipt_scan_pipeline.core.parsers import source_hint_from_filename
from receipt_scan_pipeline.core.processor import ScanSessionController
from receipt_scan_pipeline.core.utils import is_image, is_pdf, money_fmt
from receipt_scan_pipeline.logging import configure_logging


def _print_receipt(receipt, as_json: bool):
    if as_json:
        print(json.dumps(receipt.to_dict(), ensure_ascii=False, indent=2))
        return
    category = receipt.suggested_category.display_name if receipt.suggested_category else "(none)"
    print(f"  Amount:         {money_fmt(receipt.amount) or '(none)'}")
    print(f"  Merchant:       {receipt.merchant or '(none)'}")
    print(f"  Date:           {receipt.date.isoformat(sep=' ') if receipt.date else '(none)'}")
    print(f"  Receipt number: {receipt.receipt_number or '(none)'}")
    print(f"  Source:         {receipt.detected_source.display_name}")
    print(f"  Category:       {category}")
    print(f"  Confidence:     {receipt.confidence * 100:.0f}%")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Scan a receipt photo or bank statement PDF into a transaction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan a photo and show what was recognized
  receipt-scan ./photos/receipt.jpg

  # Import a Kaspi PDF and save it with the suggested category
  receipt-scan ./downloads/kaspi_receipt.pdf --save

  # Parse text that was already recognized, fixing the amount by hand
  receipt-scan ./ocr.txt --text --amount 1500 --save --category food
        """
    )
    parser.add_argument("file", help="Receipt image, PDF, or text file (with --text)")
    parser.add_argument("--filename",
                        help="Original file name, used to detect the bank (default: the file's name)")
    parser.add_argument("--text", action="store_true",
                        help="Treat FILE as already recognized text and only parse it")
    parser.add_argument("--amount", help="Set the amount manually (e.g. when it was not recognized)")
    parser.add_argument("--save", action="store_true", help="Save the receipt as a transaction")
    parser.add_argument("--category", choices=[c.value for c in ExpenseCategory],
                        help="Category for --save (default: suggested category)")
    parser.add_argument("--note", help="Optional note stored with the transaction")
    parser.add_argument("--db", help="SQLite database for --save (default: ./receipts.sqlite, or RECEIPT_SCAN_DB)")
    parser.add_argument("--rules", help="Category rules JSON (default: ./category_rules.json, or RECEIPT_SCAN_RULES)")
    parser.add_argument("--tessdata", help="tessdata directory for the Cyrillic engine (or RECEIPT_SCAN_TESSDATA)")
    parser.add_argument("--json", action="store_true", help="Print the parsed receipt as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    return parser


def main(argv=None):
    """Main CLI entrypoint."""
    args = _build_parser().parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else None)

    config = PipelineConfig.from_env().with_overrides(
        db_path=Path(args.db) if args.db else None,
        rules_path=Path(args.rules) if args.rules else None,
        tessdata_dir=Path(args.tessdata) if args.tessdata else None,
    )

    path = Path(args.file)
    if not path.exists():
        print(f"[ERROR] File not found: {path}")
        return 2
    if not args.text and not (is_image(path) or is_pdf(path)):
        print(f"[ERROR] Unsupported file type: {path.suffix or '(none)'} (use --text for text files)")
        return 2

    store = None
    if args.save:
        try:
            store = SqliteTransactionStore(config.db_path)
        except ReceiptProcessingFailure as e:
            print(f"[ERROR] {e}")
            return 1

    controller = ScanSessionController.from_config(config, store=store)
    try:
        if args.text:
            print(f"[INFO] Parsing text from {path.name}")
            controller.scan_text(path.read_text(encoding="utf-8"),
                                 source_hint=source_hint_from_filename(args.filename or path.name))
        elif is_pdf(path):
            print(f"[INFO] Scanning PDF {path.name}")
            controller.scan_pdf(path, filename=args.filename)
        else:
            print(f"[INFO] Scanning image {path.name}")
            controller.scan_image(path)

        if args.amount:
            try:
                controller.apply_manual_amount(args.amount)
            except ValueError as e:
                print(f"[ERROR] {e}")
                return 2

        state = controller.state
        receipt = state.receipt if isinstance(state, (Result, Error)) else None
        if receipt is not None:
            _print_receipt(receipt, args.json)

        if isinstance(state, Error):
            print(f"[WARN] {state.failure.kind}: {state.failure.message}")
            return 1

        if args.save:
            category = (ExpenseCategory(args.category) if args.category
                        else receipt.suggested_category or ExpenseCategory.OTHER)
            record = controller.save_transaction(category, note=args.note)
            if record is None:
                failure = controller.state.failure if isinstance(controller.state, Error) else None
                print(f"[ERROR] Could not save transaction{f': {failure.message}' if failure else ''}")
                return 1
            print(f"[OK] Saved transaction {record.id} to {config.db_path}")
    finally:
        controller.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
