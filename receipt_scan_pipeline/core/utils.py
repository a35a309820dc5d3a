"""
Utility functions and constants for receipt processing.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pathlib import Path
from typing import Optional, Union

# File type constants
IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp", ".webp"}
PDF_EXTS = {".pdf"}

# Calendar years are printed on every receipt and are the most common false amount.
YEAR_RANGE = (2020, 2030)

_WHITESPACE_RE = re.compile(r"\s+")
_COMMA_THOUSANDS_RE = re.compile(r"\d{1,3}(?:,\d{3})+")
_DOT_THOUSANDS_RE = re.compile(r"\d{1,3}(?:\.\d{3}){2,}")
_CENTS = Decimal("0.01")


def is_image(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in IMAGE_EXTS


def is_pdf(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in PDF_EXTS


def normalize_amount_string(s: str) -> str:
    """
    Normalize a recognized number to plain ``1234.56`` form.

    - whitespace (including no-break spaces) is removed: "15 000,00" -> "15000,00"
    - when both separators are present the last one is the decimal mark
    - a comma followed by exactly three digits and nothing else is a
      thousands separator: "1,350" -> "1350"
    - any other comma is a decimal mark: "450,00" -> "450.00"

    Normalizing an already normalized string returns it unchanged.
    """
    s = _WHITESPACE_RE.sub("", s or "")
    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        if _COMMA_THOUSANDS_RE.fullmatch(s):
            s = s.replace(",", "")
        else:
            s = s.replace(",", ".")
    elif _DOT_THOUSANDS_RE.fullmatch(s):
        s = s.replace(".", "")
    return s


def to_decimal(s: str) -> Optional[Decimal]:
    """Convert a recognized number to a Decimal with two places, or None."""
    normalized = normalize_amount_string(s)
    if not normalized:
        return None
    try:
        value = Decimal(normalized)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def is_year_like(value: Decimal) -> bool:
    return YEAR_RANGE[0] <= value <= YEAR_RANGE[1]


def money_fmt(v: Optional[Decimal]) -> str:
    """Format amount as tenge."""
    return f"{v:,.2f} ₸".replace(",", " ") if v is not None else ""
