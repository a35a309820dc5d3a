import datetime as dt
from decimal import Decimal

import pytest

from receipt_scan_pipeline.core import patterns
from receipt_scan_pipeline.core.models import ExpenseCategory, ReceiptSource
from receipt_scan_pipeline.core.parsers import (apply_amount_rule, calculate_confidence,
                                                detect_source, extract_amount, extract_date,
                                                extract_merchant, extract_receipt_number,
                                                parse_receipt, source_hint_from_filename)
from receipt_scan_pipeline.core.utils import is_year_like

KASPI_TEXT = (
    "Покупки\n"
    "ИП ДАДИКБАЕВА\n"
    "265 ₸\n"
    "12.01.2026 11:36\n"
    "№ чека QR13833905692"
)


def test_parse_cash_register_receipt():
    receipt = parse_receipt("ИТОГО: 15 000,00 ₸\n12.01.2026 11:36\nИП ТЕСТМАГАЗИН")

    assert receipt.amount == Decimal("15000.00")
    assert receipt.date == dt.datetime(2026, 1, 12, 11, 36)
    assert receipt.merchant == "ИП ТЕСТМАГАЗИН"
    assert receipt.receipt_number is None
    assert receipt.confidence == pytest.approx(0.9)
    assert receipt.detected_source == ReceiptSource.CAMERA
    assert receipt.suggested_category == ExpenseCategory.OTHER
    assert receipt.is_valid


def test_parse_kaspi_receipt():
    receipt = parse_receipt(KASPI_TEXT)

    assert receipt.detected_source == ReceiptSource.PDF_KASPI
    assert receipt.amount == Decimal("265.00")
    assert receipt.merchant == "ИП ДАДИКБАЕВА"
    assert receipt.date == dt.datetime(2026, 1, 12, 11, 36)
    assert receipt.receipt_number == "QR13833905692"
    assert receipt.confidence == pytest.approx(1.0)
    assert receipt.is_kaspi


def test_parse_blank_text_gives_empty_receipt():
    receipt = parse_receipt("   \n ")

    assert receipt.amount is None
    assert receipt.merchant is None
    assert receipt.date is None
    assert receipt.receipt_number is None
    assert receipt.confidence == 0.0
    assert receipt.suggested_category is None
    assert not receipt.is_valid


def test_parse_is_pure():
    assert parse_receipt(KASPI_TEXT) == parse_receipt(KASPI_TEXT)


def test_parse_passes_category_rules():
    rules = [{"name": "Bazaar", "keywords": ["дадикбаева"], "category": ExpenseCategory.FOOD}]
    assert parse_receipt(KASPI_TEXT, category_rules=rules).suggested_category == ExpenseCategory.FOOD


def test_total_label_wins_over_line_items():
    text = "Хлеб 250.00\nМолоко 480.00\nИтого: 730.00\nНаличные 1000.00"
    assert extract_amount(text) == Decimal("730.00")


def test_total_label_accepts_ocr_noise():
    assert apply_amount_rule(patterns.TOTAL_LABEL_RULE, "БАРЛЫҒЫ ~ 4 250") == Decimal("4250.00")
    assert apply_amount_rule(patterns.TOTAL_LABEL_RULE, "к оплате = 1 200,50") == Decimal("1200.50")


def test_equals_sign_picks_largest():
    text = "Хлеб 2 x 125.00 =250.00\nИтоговая строка =730.00\nМолоко =480.00"
    assert apply_amount_rule(patterns.EQUALS_SIGN_RULE, text) == Decimal("730.00")


def test_line_item_total_after_equals_sign():
    assert extract_amount("Хлеб 3 x 450.00 =1350.00") == Decimal("1350.00")


def test_card_payment_rule():
    assert extract_amount("Оплачено картой: 4 500,00") == Decimal("4500.00")


def test_currency_unit_rule():
    assert apply_amount_rule(patterns.CURRENCY_UNIT_RULE, "Перевод 12 000 тг") == Decimal("12000.00")
    assert apply_amount_rule(patterns.CURRENCY_UNIT_RULE, "KZT 990") == Decimal("990.00")
    assert apply_amount_rule(patterns.CURRENCY_UNIT_RULE, "Бонусы 45 баллов") is None


def test_success_phrase_rule():
    text = "Halyk Bank\nПлатеж успешно совершен\n5 000\nПолучатель: Айгерим"
    receipt = parse_receipt(text)
    assert receipt.amount == Decimal("5000.00")
    assert receipt.detected_source == ReceiptSource.PDF_HALYK


def test_sum_label_rule():
    assert extract_amount("Сумма платежа 12 300") == Decimal("12300.00")


def test_item_count_after_total_label_is_not_an_amount():
    assert apply_amount_rule(patterns.TOTAL_LABEL_RULE, "Всего 2 позиции") is None
    assert apply_amount_rule(patterns.TOTAL_LABEL_RULE, "Итого 5 шт.") is None
    assert extract_amount("Итого 3 товара на сумму 1 500") == Decimal("1500.00")


def test_two_decimals_rule_skips_unit_prices():
    text = "Хлеб 3 x 450.00\nМолоко 2 x 300.00\n1950.00"
    assert apply_amount_rule(patterns.TWO_DECIMALS_RULE, text) == Decimal("1950.00")


def test_standalone_number_is_last_resort():
    assert extract_amount("Касса 7\nПокупка 350") == Decimal("350.00")
    assert apply_amount_rule(patterns.STANDALONE_NUMBER_RULE, "Касса 7\nСмена 12") is None
    assert apply_amount_rule(patterns.STANDALONE_NUMBER_RULE, "Касса 7\nНаличными 1 500") == Decimal("1500.00")


def test_years_are_never_amounts():
    assert extract_amount("Чек за 2025 год\nИтого: 2026") is None


@pytest.mark.parametrize("text", [
    "ИТОГО: 2024",
    "=2025.00",
    "2026 ₸",
    "Дата 12.01.2026\nСумма 2023",
    "Касса 2021",
])
def test_no_rule_returns_a_year(text):
    amount = extract_amount(text)
    assert amount is None or not is_year_like(amount)


def test_registered_pattern_runs_before_fallbacks():
    text = "ЖАЛПЫ 45"
    assert extract_amount(text) is None

    compiled = patterns.register_amount_pattern(r"ЖАЛПЫ\s*(\d+)")
    try:
        assert extract_amount(text) == Decimal("45.00")
    finally:
        patterns.GENERIC_AMOUNT_PATTERNS.remove(compiled)


def test_register_amount_pattern_requires_a_group():
    with pytest.raises(ValueError):
        patterns.register_amount_pattern(r"ЖАЛПЫ\s*\d+")


def test_merchant_with_native_prefix():
    assert extract_merchant("Чек\nТОО «Магнум Кэш»\nИтого 1500") == "ТОО «Магнум Кэш»"


@pytest.mark.parametrize("text, expected", [
    ("TOO MAGNUM CASH\nИтого 1500", "ТОО MAGNUM CASH"),
    ("Mn Иванова\nИтого 1500", "ИП Иванова"),
    ("3AO Казахтелеком", "ЗАО Казахтелеком"),
])
def test_merchant_with_latin_lookalike_prefix(text, expected):
    assert extract_merchant(text) == expected


def test_merchant_from_label():
    assert extract_merchant("Магазин: Дастархан\nИтого 1500") == "Дастархан"
    assert extract_merchant("Seller:\nCoffee Point") == "Coffee Point"


def test_merchant_missing():
    assert extract_merchant("Итого 1500\n12.01.2026") is None


def test_date_with_time():
    assert extract_date("Дата: 05.02.2026, 9:07:30") == dt.datetime(2026, 2, 5, 9, 7, 30)


def test_date_without_time():
    assert extract_date("Дата 05.02.2026") == dt.datetime(2026, 2, 5)


def test_invalid_date_falls_through():
    text = "Дата: 32.01.2026 10:00\nСоздано 2026-01-05"
    assert extract_date(text) == dt.datetime(2026, 1, 5)


def test_no_date():
    assert extract_date("Итого 1500") is None


@pytest.mark.parametrize("text, expected", [
    ("№ чека QR13833905692", "QR13833905692"),
    ("Номер квитанции: 123456789", "123456789"),
    ("Transaction ID: TX-99812", "TX-99812"),
    ("Чек № 00012345", "00012345"),
    ("Receipt #A1B2C3D4", "A1B2C3D4"),
])
def test_receipt_number(text, expected):
    assert extract_receipt_number(text) == expected


def test_receipt_number_missing():
    assert extract_receipt_number("Итого 1500") is None


def test_detect_source_from_markers():
    assert detect_source("Kaspi Gold\nПеревод") == ReceiptSource.PDF_KASPI
    assert detect_source("Halyk Bank\nПлатеж") == ReceiptSource.PDF_HALYK
    assert detect_source("ИТОГО 1500") == ReceiptSource.CAMERA


def test_detect_source_trusts_specific_hint():
    assert detect_source("kaspi", ReceiptSource.PDF_HALYK) == ReceiptSource.PDF_HALYK
    assert detect_source("Kaspi.kz", ReceiptSource.CAMERA) == ReceiptSource.PDF_KASPI


def test_hint_applies_to_parse():
    receipt = parse_receipt("Итого 1500", source_hint=ReceiptSource.PDF_HALYK)
    assert receipt.detected_source == ReceiptSource.PDF_HALYK
    assert receipt.is_halyk


@pytest.mark.parametrize("filename, expected", [
    ("Kaspi_receipt_123.pdf", ReceiptSource.PDF_KASPI),
    ("HALYK-statement.pdf", ReceiptSource.PDF_HALYK),
    ("homebank-export.pdf", ReceiptSource.PDF_HALYK),
    ("scan.pdf", None),
    (None, None),
])
def test_source_hint_from_filename(filename, expected):
    assert source_hint_from_filename(filename) == expected


@pytest.mark.parametrize("fields, expected", [
    ({}, 0.0),
    ({"receipt_number": "123456"}, 0.1),
    ({"amount": Decimal("1")}, 0.4),
    ({"amount": Decimal("1"), "receipt_number": "123456"}, 0.5),
    ({"merchant": "ИП А", "date": dt.datetime(2026, 1, 1)}, 0.5),
    ({"amount": Decimal("1"), "merchant": "ИП А", "date": dt.datetime(2026, 1, 1)}, 0.9),
    ({"amount": Decimal("1"), "merchant": "ИП А", "date": dt.datetime(2026, 1, 1),
      "receipt_number": "123456"}, 1.0),
])
def test_calculate_confidence(fields, expected):
    assert calculate_confidence(**fields) == pytest.approx(expected)


def test_confidence_ignores_non_positive_amount():
    assert calculate_confidence(amount=Decimal("0")) == 0.0
