# tests/test_promo.py
from datetime import date, datetime

import pytest

from rental_app.core.errors import ValidationFailed
from rental_app.core.promo import PromoTerms, compute_discount, evaluate_promo, is_promo_valid_on
from rental_app.models.enum import DiscountType


def make_promo(**overrides):
    data = dict(
        code="HEMAT50",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=50,
        min_transaction=0,
        max_discount=300_000,
        start_date=datetime(2024, 12, 1),
        end_date=datetime(2024, 12, 31),
        is_active=True,
    )
    data.update(overrides)
    return PromoTerms(**data)


def test_percentage_capped_by_max_discount():
    assert compute_discount(DiscountType.PERCENTAGE, 50, 2_000_000, 300_000) == 300_000


def test_percentage_without_cap():
    assert compute_discount(DiscountType.PERCENTAGE, 10, 300_000) == 30_000


def test_percentage_rounds_down():
    assert compute_discount(DiscountType.PERCENTAGE, 10, 333) == 33


def test_fixed_discount_is_not_capped_at_subtotal():
    assert compute_discount(DiscountType.FIXED, 500_000, 300_000) == 500_000


@pytest.mark.parametrize("today,valid", [
    (date(2024, 11, 30), False),
    (date(2024, 12, 1), True),
    (date(2024, 12, 31), True),
    (date(2025, 1, 1), False),
])
def test_window_is_inclusive(today, valid):
    assert is_promo_valid_on(make_promo(), today) is valid


def test_inactive_promo_rejected():
    with pytest.raises(ValidationFailed):
        evaluate_promo(make_promo(is_active=False), 1_000_000, date(2024, 12, 5))


def test_expired_promo_rejected():
    with pytest.raises(ValidationFailed):
        evaluate_promo(make_promo(), 1_000_000, date(2025, 2, 1))


def test_evaluate_applies_cap():
    assert evaluate_promo(make_promo(), 2_000_000, date(2024, 12, 5)) == 300_000


def test_max_discount_ignored_for_fixed_promo():
    promo = make_promo(discount_type=DiscountType.FIXED, discount_value=100_000, max_discount=50_000)
    assert evaluate_promo(promo, 1_000_000, date(2024, 12, 5)) == 100_000


def test_min_spend_only_enforced_when_enabled():
    promo = make_promo(min_transaction=500_000)
    assert evaluate_promo(promo, 200_000, date(2024, 12, 5)) == 100_000
    with pytest.raises(ValidationFailed):
        evaluate_promo(promo, 200_000, date(2024, 12, 5), enforce_min_spend=True)
    assert evaluate_promo(promo, 600_000, date(2024, 12, 5), enforce_min_spend=True) == 300_000
