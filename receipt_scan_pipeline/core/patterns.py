"""
Regex tables used to parse Kazakhstan receipts (Kaspi, Halyk, cash registers).

Everything here is plain ordered data: the parser walks these tables top-down
and the first rule that yields a usable value wins.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Pattern, Tuple

from .models import ExpenseCategory, ReceiptSource

_I = re.IGNORECASE

# A recognized number: "15 000,00", "1,350.00", "1350.00", "265".
# Digit groups may be separated by a space, a no-break space or a comma.
NUMBER = r"\d{1,3}(?:[ \u00a0,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?"
AMOUNT = rf"(?P<amount>{NUMBER})(?![\d.,]?\d)"

# Item-count words: "Итого 3 товара" counts goods, it is not a total.
_ITEM_COUNT_AFTER = r"(?![ \t]*(?:товар|позиц|шт\b|items?\b|pcs\b))"

# Glyphs OCR produces in place of ":" or "=" after a label.
_LABEL_NOISE = r"[\s=:;*#~\-—_.|]*"
_NOT_AFTER_LETTER = r"(?<![^\W\d_])"

# Multiplication glyphs marking unit-price lines, e.g. "3 x 450.00".
MULTIPLICATION_BEFORE_RE = re.compile(r"[x×хХX*]\s*$")


@dataclass(frozen=True)
class AmountRule:
    """
    One step of the amount extraction cascade.

    ``pick`` selects among the valid candidates of the rule: ``first``,
    ``last`` or ``largest``.
    """
    name: str
    patterns: Tuple[Pattern, ...]
    pick: str = "first"
    skip_after_multiplication: bool = False
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None


# Generic amount patterns, tried as one cascade step after the anchored ones.
# Use register_amount_pattern() to add more; every pattern captures the number
# in group 1.
GENERIC_AMOUNT_PATTERNS: List[Pattern] = [
    re.compile(r"ИТОГО[\s:]*([0-9\s]+[.,]?\d*)", _I),
    re.compile(r"БАРЛЫҒЫ[\s:]*([0-9\s]+[.,]?\d*)", _I),
    re.compile(r"TOTAL[\s:]*([0-9\s]+[.,]?\d*)", _I),
    re.compile(r"Сумма[\s:]*([0-9\s]+[.,]?\d*)", _I),
    re.compile(r"([0-9\s]+)\s*[₸T]"),
]


def register_amount_pattern(pattern) -> Pattern:
    """Append a generic amount pattern (string or compiled) and return it compiled."""
    compiled = re.compile(pattern, _I) if isinstance(pattern, str) else pattern
    if compiled.groups < 1:
        raise ValueError("amount pattern must capture the number in group 1")
    GENERIC_AMOUNT_PATTERNS.append(compiled)
    return compiled


TOTAL_LABEL_RULE = AmountRule(
    name="total-label",
    patterns=(re.compile(
        _NOT_AFTER_LETTER
        + r"(?:итого|итог|барлығы|барлыгы|всего|к\s+оплате|total)"
        + _LABEL_NOISE + AMOUNT + _ITEM_COUNT_AFTER, _I),),
)

EQUALS_SIGN_RULE = AmountRule(
    name="equals-sign",
    patterns=(re.compile(r"[=≡≈＝⩵]\s*" + AMOUNT),),
    pick="largest",
)

CARD_PAYMENT_RULE = AmountRule(
    name="card-payment",
    patterns=(re.compile(
        r"(?:оплач\w*\s+(?:банковской\s+)?карт\w*|безналичн\w*|paid\s+by\s+card|card\s+payment)"
        r"[^\d\n]{0,25}?" + AMOUNT, _I),),
)

CURRENCY_UNIT_RULE = AmountRule(
    name="currency-unit",
    patterns=(
        re.compile(r"(?<![\d.,])" + AMOUNT + r"\s*(?:₸|тг\.?|тенге|KZT|T|Т)(?![^\W\d_])", _I),
        re.compile(r"(?:₸|KZT)\s*" + AMOUNT, _I),
    ),
)

SUCCESS_PHRASE_RULE = AmountRule(
    name="success-phrase",
    patterns=(re.compile(
        r"(?:успешно\s+(?:совершен|оплачен|выполнен)\w*|status:\s*success|payment\s+successful|төлем\s+сәтті)"
        r"[^\d]{0,60}?" + AMOUNT, _I),),
)

SUM_LABEL_RULE = AmountRule(
    name="sum-label",
    patterns=(re.compile(
        _NOT_AFTER_LETTER
        + r"(?:сумм|оплачено|оплата|sum|amount|paid)\w*[^\d\n]{0,20}?" + AMOUNT, _I),),
)

TWO_DECIMALS_RULE = AmountRule(
    name="two-decimals",
    patterns=(re.compile(
        r"(?<![\d.,])(?P<amount>\d{1,3}(?:[ \u00a0]\d{3})+[.,]\d{2}|\d+[.,]\d{2})(?![\d.,]?\d)"),),
    pick="last",
    skip_after_multiplication=True,
)

STANDALONE_NUMBER_RULE = AmountRule(
    name="standalone",
    patterns=(re.compile(
        r"(?<![\d.,:/])(?P<amount>\d{1,3}(?:[ \u00a0]\d{3})+|\d{2,})(?![\d:/]|[.,]\d)"),),
    min_value=Decimal("50"),
    max_value=Decimal("10000000"),
)

# The registered generic patterns run between the sum labels and the
# fallbacks; the parser splices them in at this marker.
REGISTERED_PATTERNS_STEP = "registered"

AMOUNT_RULES: Tuple = (
    TOTAL_LABEL_RULE,
    EQUALS_SIGN_RULE,
    CARD_PAYMENT_RULE,
    CURRENCY_UNIT_RULE,
    SUCCESS_PHRASE_RULE,
    SUM_LABEL_RULE,
    REGISTERED_PATTERNS_STEP,
    TWO_DECIMALS_RULE,
    STANDALONE_NUMBER_RULE,
)


# Source markers, checked in order.
SOURCE_MARKERS: Tuple[Tuple[ReceiptSource, Pattern], ...] = (
    (ReceiptSource.PDF_KASPI, re.compile(r"Покупки|Kaspi\.kz|Kaspi\s*Gold|kaspi", _I)),
    (ReceiptSource.PDF_HALYK, re.compile(r"Halyk\s*Bank|homebank|halyk", _I)),
)

# Filename substrings that bias the source of an imported PDF.
FILENAME_SOURCE_HINTS: Tuple[Tuple[str, ReceiptSource], ...] = (
    ("kaspi", ReceiptSource.PDF_KASPI),
    ("halyk", ReceiptSource.PDF_HALYK),
    ("homebank", ReceiptSource.PDF_HALYK),
)


_UPPER = "А-ЯЁӘҒҚҢӨҰҮҺІA-Z"
_NAME = rf"[«\"“]?[{_UPPER}](?:[^\W\d_]|[&«»\"“”'\- \t])*"

# Legal-entity prefixes in Cyrillic: "ИП ДАДИКБАЕВА", "ТОО «Магнум Кэш»".
MERCHANT_NATIVE_RE = re.compile(rf"(?<![^\W\d_])(?:ИП|ТОО|АО|ЗАО|ОАО|ЧП)[ \t]+{_NAME}")

# The same prefixes after OCR read them as Latin look-alikes.
MERCHANT_LATIN_RE = re.compile(rf"(?<![^\W\d_])(?P<prefix>Mn|MN|IP|Inn|TOO|T00|AO|A0|3AO)[ \t]+{_NAME}")
LATIN_PREFIX_TO_NATIVE = {
    "Mn": "ИП",
    "MN": "ИП",
    "IP": "ИП",
    "Inn": "ИП",
    "TOO": "ТОО",
    "T00": "ТОО",
    "AO": "АО",
    "A0": "АО",
    "3AO": "ЗАО",
}

MERCHANT_LABEL_RE = re.compile(
    rf"(?<![^\W\d_])(?:продавец|магазин|компания|seller|store|merchant|company)[ \t]*:?[ \t]*\n?[ \t]*"
    rf"(?P<name>{_NAME})", _I)


# Dates, checked in order.
DATE_TIME_RE = re.compile(r"(?<!\d)(\d{2})\.(\d{2})\.(\d{4})[ \t,]+(\d{1,2}):(\d{2})(?::(\d{2}))?(?!\d)")
DATE_DOTTED_RE = re.compile(r"(?<!\d)(\d{2})\.(\d{2})\.(\d{4})(?!\d)")
DATE_ISO_RE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")


# Receipt numbers: bank-specific labels first, then generic ones.
RECEIPT_NUMBER_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"№\s*чека[\s:]*([A-Z0-9]+)", _I),
    re.compile(r"(?:номер\s+(?:квитанции|операции)|transaction\s+(?:id|number))[\s:№#]*([A-Z0-9][A-Z0-9\-]{3,})", _I),
    re.compile(r"(?:№|#|(?i:receipt)|(?i:чек))\s*:?\s*([A-Z0-9]{6,})"),
)


# Category keywords in priority order. Bank brand names appear on nearly every
# receipt, so none of them may be a transfer keyword.
CATEGORY_KEYWORDS: Tuple[Tuple[ExpenseCategory, Tuple[str, ...]], ...] = (
    (ExpenseCategory.FOOD, (
        "magnum", "магнум", "small", "anvar", "galmart", "супермаркет", "продукт",
        "хлеб", "молоко", "кафе", "ресторан", "restaurant", "coffee", "кофе",
        "пицца", "pizza", "doner", "донер", "burger", "бургер", "grocery", "food",
    )),
    (ExpenseCategory.TRANSPORT, (
        "такси", "taxi", "yandex go", "яндекс go", "uber", "indriver", "onay",
        "автобус", "бензин", "азс", "fuel", "парковка", "parking", "metro", "метро",
    )),
    (ExpenseCategory.HEALTH, (
        "аптека", "pharmacy", "europharma", "клиника", "clinic", "стоматолог",
        "медицин", "лекарств",
    )),
    (ExpenseCategory.ENTERTAINMENT, (
        "кино", "cinema", "kinopark", "chaplin", "театр", "концерт", "netflix",
        "spotify", "steam", "боулинг",
    )),
    (ExpenseCategory.SHOPPING, (
        "одежда", "обувь", "technodom", "sulpak", "mechta", "wildberries", "ozon",
        "lamoda", "zara", "mall",
    )),
    (ExpenseCategory.UTILITIES, (
        "коммунал", "электроэнерг", "алсеко", "водоканал", "газоснабж", "qazaqgaz",
        "интернет", "kazakhtelecom", "beeline", "tele2", "kcell", "мобильная связь",
    )),
    (ExpenseCategory.EDUCATION, (
        "школа", "университет", "обучение", "учебн", "курсы", "книг", "udemy", "coursera",
    )),
    (ExpenseCategory.TRANSFER, (
        "перевод", "transfer", "p2p", "на карту",
    )),
)
