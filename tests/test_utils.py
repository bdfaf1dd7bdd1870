# tests/test_utils.py
from datetime import date, datetime

from rental_app.core.utils import (
    as_date,
    format_item_code,
    format_transaction_code,
    item_code_prefix,
    rental_days,
    to_datetime,
)


def test_transaction_code_format():
    assert format_transaction_code(date(2024, 12, 10), 1) == "TRX20241210001"
    assert format_transaction_code(date(2025, 1, 2), 42) == "TRX20250102042"


def test_item_code_prefix():
    assert item_code_prefix("Kamera") == "KAM"
    assert item_code_prefix("tenda dome") == "TEN"
    assert item_code_prefix("3D Printer") == "DPR"
    assert item_code_prefix("") == "BRG"
    assert item_code_prefix(None) == "BRG"
    assert format_item_code("KAM", 7) == "KAM-007"


def test_rental_days():
    assert rental_days(date(2024, 12, 10), date(2024, 12, 13)) == 3
    assert rental_days(date(2024, 12, 10), date(2024, 12, 10)) == 1
    assert rental_days(datetime(2024, 12, 10, 18, 0), datetime(2024, 12, 11, 8, 0)) == 1


def test_date_helpers():
    assert as_date(datetime(2024, 12, 10, 15, 30)) == date(2024, 12, 10)
    assert as_date(date(2024, 12, 10)) == date(2024, 12, 10)
    assert to_datetime(date(2024, 12, 10)) == datetime(2024, 12, 10, 0, 0)
