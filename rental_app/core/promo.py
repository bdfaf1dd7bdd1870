# rental_app/core/promo.py
import math
from datetime import date
from typing import Optional

from pydantic import BaseModel

from rental_app.core.errors import ValidationFailed
from rental_app.core.utils import DateLike, as_date
from rental_app.models.enum import DiscountType


class PromoTerms(BaseModel):
    """Syarat promo yang dibutuhkan untuk menghitung diskon."""
    code: str
    discount_type: DiscountType
    discount_value: float
    min_transaction: int = 0
    max_discount: Optional[int] = None
    start_date: DateLike
    end_date: DateLike
    is_active: bool = True

    class Config:
        from_attributes = True


def is_promo_valid_on(promo: PromoTerms, today: date) -> bool:
    """Aktif dan today berada di [start_date, end_date] (inklusif)."""
    return promo.is_active and as_date(promo.start_date) <= as_date(today) <= as_date(promo.end_date)


def compute_discount(
    discount_type: DiscountType, value: float, subtotal: int, max_discount: Optional[int] = None
) -> int:
    if discount_type == DiscountType.PERCENTAGE:
        discount = math.floor(subtotal * value / 100)
        if max_discount is not None:
            discount = min(discount, max_discount)
        return discount
    # Nominal: nilai tetap, tidak dibatasi subtotal
    return int(value)


def evaluate_promo(
    promo: PromoTerms, subtotal: int, today: date, enforce_min_spend: bool = False
) -> int:
    """Return the discount for ``subtotal`` or raise ValidationFailed if the promo does not apply."""
    if not is_promo_valid_on(promo, today):
        raise ValidationFailed(f"Promo code '{promo.code}' is invalid or expired.")
    if enforce_min_spend and subtotal < promo.min_transaction:
        raise ValidationFailed(
            f"Promo code '{promo.code}' requires a minimum transaction of {promo.min_transaction}."
        )
    max_discount = promo.max_discount if promo.discount_type == DiscountType.PERCENTAGE else None
    return compute_discount(promo.discount_type, promo.discount_value, subtotal, max_discount)
