# rental_app/core/lifecycle.py
"""Rental transaction state machine.

``plan_transition`` validates a status change and computes everything that
has to be written with it (new item stock/status, late fee, total). It does
no I/O: the service layer loads the snapshots, calls the planner and applies
the resulting plan inside a single database transaction.
"""
import logging
from datetime import date
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from rental_app.core.errors import InvalidTransition, NotFound, ValidationFailed
from rental_app.core.inventory import (
    ItemState,
    StockChange,
    apply_condition,
    decrease_stock,
    increase_stock,
)
from rental_app.core.late_fee import LateFeeLine, compute_late_fee, overdue_days
from rental_app.core.utils import DateLike, as_date, rental_days
from rental_app.models.enum import ReturnCondition, TransactionStatus

logger = logging.getLogger(__name__)

S = TransactionStatus

ALLOWED_TRANSITIONS: Dict[TransactionStatus, frozenset] = {
    S.AWAITING_PAYMENT: frozenset({S.AWAITING_CONFIRMATION, S.CANCELLED}),
    S.AWAITING_CONFIRMATION: frozenset({S.BEING_RENTED, S.CANCELLED}),
    S.BEING_RENTED: frozenset({S.AWAITING_RETURN, S.COMPLETED, S.CANCELLED}),
    S.AWAITING_RETURN: frozenset({S.COMPLETED, S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({S.COMPLETED, S.CANCELLED})

# Status di mana stok barang sedang keluar (sudah serah terima)
STOCK_OUT_STATUSES = frozenset({S.BEING_RENTED, S.AWAITING_RETURN})


# --- Snapshots ---

class RentalLine(BaseModel):
    item_id: str
    item_name: str = ""
    qty: int = Field(..., gt=0)
    price_per_day: int = Field(..., gt=0)


class RentalState(BaseModel):
    """Snapshot transaksi yang dibutuhkan state machine."""
    transaction_id: str
    status: TransactionStatus
    end_date: DateLike
    subtotal: int = 0
    discount: int = 0
    late_fee: int = 0
    lines: List[RentalLine] = Field(default_factory=list)


class TransitionPlan(BaseModel):
    transaction_id: str
    previous_status: TransactionStatus
    status: TransactionStatus
    late_fee: int
    total: int
    overdue_days: int = 0
    # Hanya barang yang tersentuh; state akhir setelah semua baris diterapkan
    items: Dict[str, ItemState] = Field(default_factory=dict)
    stock_changes: List[StockChange] = Field(default_factory=list)
    conditions: Dict[str, ReturnCondition] = Field(default_factory=dict)

    @property
    def shortfalls(self) -> List[StockChange]:
        return [c for c in self.stock_changes if c.shortfall]


class QuoteLine(BaseModel):
    item_id: str
    item_name: str = ""
    qty: int = Field(..., gt=0)
    price_per_day: Optional[int] = None


class PricedLine(BaseModel):
    item_id: str
    item_name: str
    qty: int
    price_per_day: int
    subtotal: int


class Quote(BaseModel):
    total_days: int
    lines: List[PricedLine]
    subtotal: int
    discount: int = 0
    late_fee: int = 0
    total: int


# --- Pricing ---

def compute_total(subtotal: int, discount: int, late_fee: int = 0) -> int:
    """Satu-satunya tempat total dihitung: subtotal - diskon + denda."""
    return subtotal - discount + late_fee


def price_lines(start_date: DateLike, end_date: DateLike, lines: List[QuoteLine], discount: int = 0) -> Quote:
    if not lines:
        raise ValidationFailed("A transaction needs at least one item.")
    if as_date(end_date) < as_date(start_date):
        raise ValidationFailed("End date must not be before start date.")
    days = rental_days(start_date, end_date)
    priced = []
    for line in lines:
        if line.price_per_day is None or line.price_per_day <= 0:
            raise ValidationFailed(f"Item '{line.item_name or line.item_id}' has no valid rental price.")
        priced.append(PricedLine(
            item_id=line.item_id,
            item_name=line.item_name,
            qty=line.qty,
            price_per_day=line.price_per_day,
            subtotal=line.price_per_day * line.qty * days,
        ))
    subtotal = sum(p.subtotal for p in priced)
    return Quote(
        total_days=days,
        lines=priced,
        subtotal=subtotal,
        discount=discount,
        total=compute_total(subtotal, discount),
    )


# --- State machine ---

def is_overdue(status: TransactionStatus, end_date: DateLike, today: date) -> bool:
    """Sedang disewa dan tanggal selesai sudah lewat (kandidat sweep)."""
    return status == S.BEING_RENTED and as_date(end_date) < as_date(today)


def check_transition(current: TransactionStatus, target: TransactionStatus, end_date: DateLike, today: date) -> None:
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(f"Transaction is already '{current.value}' and can no longer change.")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot change status from '{current.value}' to '{target.value}'.")
    # Inspeksi langsung dari sedang_disewa hanya jika jatuh tempo <= hari ini
    if current == S.BEING_RENTED and target == S.COMPLETED and as_date(end_date) > as_date(today):
        raise InvalidTransition(
            "Rental period has not ended yet; a return must be requested before inspection."
        )


def _working_item(working: Dict[str, ItemState], items: Mapping[str, ItemState], item_id: str) -> ItemState:
    if item_id not in working:
        item = items.get(item_id)
        if item is None:
            raise NotFound(f"Item {item_id} referenced by the transaction was not found.")
        working[item_id] = item
    return working[item_id]


def plan_transition(
    rental: RentalState,
    target: TransactionStatus,
    items: Optional[Mapping[str, ItemState]] = None,
    today: Optional[date] = None,
    *,
    conditions: Optional[Mapping[str, ReturnCondition]] = None,
    late_fee_override: Optional[int] = None,
    restore_stock_on_cancel: bool = False,
) -> TransitionPlan:
    """Validate ``rental.status -> target`` and compute its side effects.

    * handover (-> sedang_disewa): stock decreased for every line
    * inspection (-> selesai): stock increased for every line, late fee from the
      items' current ``late_fee_per_day``, then per-item return conditions applied
    * cancel: no stock change unless ``restore_stock_on_cancel`` and stock is out

    Lines referencing the same item are applied one after another.
    """
    items = items or {}
    today = today or date.today()
    conditions = dict(conditions or {})
    check_transition(rental.status, target, rental.end_date, today)

    working: Dict[str, ItemState] = {}
    changes: List[StockChange] = []
    late_fee = rental.late_fee
    days_late = 0

    if target == S.BEING_RENTED:
        for line in rental.lines:
            item = _working_item(working, items, line.item_id)
            working[line.item_id], change = decrease_stock(item, line.qty)
            changes.append(change)

    elif target == S.COMPLETED:
        line_ids = {line.item_id for line in rental.lines}
        unknown = set(conditions) - line_ids
        if unknown:
            raise ValidationFailed(f"Inspected items are not part of this transaction: {', '.join(sorted(unknown))}")
        fee_lines = []
        for line in rental.lines:
            item = _working_item(working, items, line.item_id)
            working[line.item_id], change = increase_stock(item, line.qty)
            changes.append(change)
            fee_lines.append(LateFeeLine(item_id=line.item_id, qty=line.qty, late_fee_per_day=item.late_fee_per_day))
        for item_id in line_ids:
            working[item_id] = apply_condition(working[item_id], conditions.get(item_id))
            conditions.setdefault(item_id, ReturnCondition.GOOD)
        days_late = overdue_days(rental.end_date, today)
        late_fee = compute_late_fee(rental.end_date, today, fee_lines)

    elif target == S.CANCELLED and restore_stock_on_cancel and rental.status in STOCK_OUT_STATUSES:
        for line in rental.lines:
            item = _working_item(working, items, line.item_id)
            working[line.item_id], change = increase_stock(item, line.qty)
            changes.append(change)

    if late_fee_override is not None:
        late_fee = late_fee_override

    plan = TransitionPlan(
        transaction_id=rental.transaction_id,
        previous_status=rental.status,
        status=target,
        late_fee=late_fee,
        total=compute_total(rental.subtotal, rental.discount, late_fee),
        overdue_days=days_late,
        items=working,
        stock_changes=changes,
        conditions=conditions if target == S.COMPLETED else {},
    )
    for change in plan.shortfalls:
        logger.warning(
            f"Transaction {rental.transaction_id}: item {change.item_id} short by {change.shortfall} unit(s) at handover."
        )
    return plan
