# tests/conftest.py
import os
from datetime import date

import pytest

# Config wajib harus ada sebelum rental_app.core.config di-import
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_USE_TRANSACTIONS", "false")

from rental_app.core.inventory import ItemState  # noqa: E402
from rental_app.core.lifecycle import RentalLine, RentalState  # noqa: E402
from rental_app.models.enum import ItemStatus, TransactionStatus  # noqa: E402


@pytest.fixture
def make_item():
    def _make(item_id="item-x", stock=5, status=ItemStatus.AVAILABLE, late_fee_per_day=50_000, name="Tenda Dome 4P"):
        return ItemState(item_id=item_id, name=name, stock=stock, status=status, late_fee_per_day=late_fee_per_day)
    return _make


@pytest.fixture
def make_rental():
    def _make(status=TransactionStatus.AWAITING_CONFIRMATION, lines=None, end_date=date(2024, 12, 10),
              subtotal=300_000, discount=0, late_fee=0):
        if lines is None:
            lines = [RentalLine(item_id="item-x", item_name="Tenda Dome 4P", qty=1, price_per_day=100_000)]
        return RentalState(
            transaction_id="trx-1",
            status=status,
            end_date=end_date,
            subtotal=subtotal,
            discount=discount,
            late_fee=late_fee,
            lines=lines,
        )
    return _make
