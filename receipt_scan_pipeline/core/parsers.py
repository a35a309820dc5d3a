"""
Parsers for extracting structured fields from recognized receipt text.

parse_receipt() is pure: the same text and hint always give the same
ParsedReceipt, and nothing here looks at the clock.
"""

import datetime as dt
from decimal import Decimal
from typing import Dict, List, Optional

from ..logging import get_logger
from .categorization import suggest_category
from .models import ExpenseCategory, ParsedReceipt, ReceiptSource
from .patterns import (AMOUNT_RULES, DATE_DOTTED_RE, DATE_ISO_RE, DATE_TIME_RE,
                       FILENAME_SOURCE_HINTS, GENERIC_AMOUNT_PATTERNS,
                       LATIN_PREFIX_TO_NATIVE, MERCHANT_LABEL_RE, MERCHANT_LATIN_RE,
                       MERCHANT_NATIVE_RE, MULTIPLICATION_BEFORE_RE, RECEIPT_NUMBER_PATTERNS,
                       REGISTERED_PATTERNS_STEP, SOURCE_MARKERS, AmountRule)
from .utils import is_year_like, to_decimal

log = get_logger(__name__)

CONFIDENCE_WEIGHTS = {
    "amount": 0.40,
    "merchant": 0.25,
    "date": 0.25,
    "receipt_number": 0.10,
}

_NAME_TRIM = " \t-'"


def detect_source(text: str, hint: Optional[ReceiptSource] = None) -> ReceiptSource:
    """Detect the receipt source from text markers; a specific hint is trusted."""
    if hint is not None and hint != ReceiptSource.CAMERA:
        return hint
    for source, marker in SOURCE_MARKERS:
        if marker.search(text):
            return source
    return ReceiptSource.CAMERA


def source_hint_from_filename(filename: Optional[str]) -> Optional[ReceiptSource]:
    """Guess the source of an imported PDF from its file name."""
    if not filename:
        return None
    name = filename.lower()
    for token, source in FILENAME_SOURCE_HINTS:
        if token in name:
            return source
    return None


def _usable_amount(raw: str, min_value: Optional[Decimal] = None,
                   max_value: Optional[Decimal] = None) -> Optional[Decimal]:
    value = to_decimal(raw)
    if value is None or value <= 0 or is_year_like(value):
        return None
    if min_value is not None and value < min_value:
        return None
    if max_value is not None and value > max_value:
        return None
    return value


def amount_candidates(rule: AmountRule, text: str) -> List[Decimal]:
    """All valid amounts a cascade rule finds, in text order."""
    found = []
    for pattern in rule.patterns:
        for m in pattern.finditer(text):
            start = m.start("amount")
            if rule.skip_after_multiplication and MULTIPLICATION_BEFORE_RE.search(text[max(0, start - 3):start]):
                continue
            value = _usable_amount(m.group("amount"), rule.min_value, rule.max_value)
            if value is not None:
                found.append((start, value))
    found.sort(key=lambda c: c[0])
    return [value for _, value in found]


def apply_amount_rule(rule: AmountRule, text: str) -> Optional[Decimal]:
    """Run a single cascade rule and pick its answer."""
    candidates = amount_candidates(rule, text)
    if not candidates:
        return None
    if rule.pick == "largest":
        return max(candidates)
    if rule.pick == "last":
        return candidates[-1]
    return candidates[0]


def _apply_registered_patterns(text: str) -> Optional[Decimal]:
    for pattern in GENERIC_AMOUNT_PATTERNS:
        for m in pattern.finditer(text):
            value = _usable_amount(m.group(1))
            if value is not None:
                return value
    return None


def extract_amount(text: str) -> Optional[Decimal]:
    """Extract the transaction total; the first cascade rule with an answer wins."""
    for rule in AMOUNT_RULES:
        if rule == REGISTERED_PATTERNS_STEP:
            amount = _apply_registered_patterns(text)
            name = REGISTERED_PATTERNS_STEP
        else:
            amount = apply_amount_rule(rule, text)
            name = rule.name
        if amount is not None:
            log.debug(f"Amount {amount} found by rule '{name}'")
            return amount
    return None


def extract_merchant(text: str) -> Optional[str]:
    """Extract the merchant name (legal-entity prefix, look-alike prefix, then label)."""
    m = MERCHANT_NATIVE_RE.search(text)
    if m:
        return m.group(0).strip(_NAME_TRIM)

    m = MERCHANT_LATIN_RE.search(text)
    if m:
        prefix = m.group("prefix")
        rest = m.group(0)[len(prefix):].strip(_NAME_TRIM)
        return f"{LATIN_PREFIX_TO_NATIVE[prefix]} {rest}"

    m = MERCHANT_LABEL_RE.search(text)
    if m:
        name = m.group("name").strip(_NAME_TRIM)
        return name or None

    return None


def _build_datetime(year: int, month: int, day: int,
                    hour: int = 0, minute: int = 0, second: int = 0) -> Optional[dt.datetime]:
    try:
        return dt.datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None


def extract_date(text: str) -> Optional[dt.datetime]:
    """Extract the transaction date, with time of day when printed."""
    for m in DATE_TIME_RE.finditer(text):
        d, mo, y, h, mi, s = m.groups()
        value = _build_datetime(int(y), int(mo), int(d), int(h), int(mi), int(s or 0))
        if value:
            return value

    for m in DATE_DOTTED_RE.finditer(text):
        d, mo, y = m.groups()
        value = _build_datetime(int(y), int(mo), int(d))
        if value:
            return value

    for m in DATE_ISO_RE.finditer(text):
        y, mo, d = m.groups()
        value = _build_datetime(int(y), int(mo), int(d))
        if value:
            return value

    return None


def extract_receipt_number(text: str) -> Optional[str]:
    """Extract the receipt/check number."""
    for pattern in RECEIPT_NUMBER_PATTERNS:
        m = pattern.search(text)
        if m and m.group(1):
            return m.group(1)
    return None


def calculate_confidence(amount: Optional[Decimal] = None, merchant: Optional[str] = None,
                         date: Optional[dt.datetime] = None,
                         receipt_number: Optional[str] = None) -> float:
    """Weighted completeness score in [0.0, 1.0]."""
    present: Dict[str, bool] = {
        "amount": amount is not None and amount > 0,
        "merchant": bool(merchant),
        "date": date is not None,
        "receipt_number": bool(receipt_number),
    }
    score = sum(weight for name, weight in CONFIDENCE_WEIGHTS.items() if present[name])
    return min(1.0, max(0.0, round(score, 2)))


def parse_receipt(raw_text: str, source_hint: Optional[ReceiptSource] = None,
                  category_rules: Optional[List[Dict]] = None) -> ParsedReceipt:
    """
    Parse recognized receipt text into a ParsedReceipt.

    Args:
        raw_text: Text from the OCR step
        source_hint: Source the caller already knows (e.g. from a file name)
        category_rules: Optional user matchers consulted before the built-in keywords

    Returns:
        ParsedReceipt; blank text gives an empty receipt with confidence 0.0
    """
    if not raw_text or not raw_text.strip():
        return ParsedReceipt(
            raw_text=raw_text or "",
            detected_source=source_hint or ReceiptSource.CAMERA,
            confidence=0.0,
        )

    source = detect_source(raw_text, source_hint)
    amount = extract_amount(raw_text)
    merchant = extract_merchant(raw_text)
    date = extract_date(raw_text)
    receipt_number = extract_receipt_number(raw_text)
    category: ExpenseCategory = suggest_category(raw_text, category_rules)

    return ParsedReceipt(
        raw_text=raw_text,
        detected_source=source,
        confidence=calculate_confidence(amount, merchant, date, receipt_number),
        amount=amount,
        merchant=merchant,
        date=date,
        receipt_number=receipt_number,
        suggested_category=category,
    )
