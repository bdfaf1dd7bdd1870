# rental_app/core/inventory.py
"""Stock arithmetic for rentable items.

Items are tracked as an aggregate stock count plus a lifecycle status.
Stock and status are separate fields; after every stock change the status
is passed through :func:`reconcile_status`, which never overwrites a
maintenance or damaged status.
"""
import logging
from typing import Optional, Tuple

from pydantic import BaseModel, Field

from rental_app.core.errors import ValidationFailed
from rental_app.models.enum import ItemStatus, ReturnCondition, StockAction

logger = logging.getLogger(__name__)

# Status yang hanya bisa diubah manual (bukan oleh perubahan stok)
HELD_STATUSES = frozenset({ItemStatus.MAINTENANCE, ItemStatus.DAMAGED})

CONDITION_STATUS = {
    ReturnCondition.LIGHT_DAMAGE: ItemStatus.MAINTENANCE,
    ReturnCondition.HEAVY_DAMAGE: ItemStatus.DAMAGED,
}


class ItemState(BaseModel):
    """Snapshot stok + status satu barang."""
    item_id: str
    name: str = ""
    stock: int = Field(..., ge=0)
    status: ItemStatus = ItemStatus.AVAILABLE
    late_fee_per_day: int = Field(default=0, ge=0)


class StockChange(BaseModel):
    item_id: str
    action: StockAction
    qty: int
    previous_stock: int
    new_stock: int
    previous_status: ItemStatus
    new_status: ItemStatus
    # Jumlah yang diminta melebihi stok (decrease di-clamp ke 0)
    shortfall: int = 0


def reconcile_status(stock: int, status: ItemStatus) -> ItemStatus:
    if status in HELD_STATUSES:
        return status
    if stock == 0:
        return ItemStatus.RENTED
    if status == ItemStatus.RENTED:
        return ItemStatus.AVAILABLE
    return status


def _check_qty(qty: int) -> None:
    if qty <= 0:
        raise ValidationFailed(f"Quantity must be greater than zero (got {qty}).")


def decrease_stock(item: ItemState, qty: int) -> Tuple[ItemState, StockChange]:
    """stock' = max(0, stock - qty). A shortfall is reported, not raised."""
    _check_qty(qty)
    new_stock = max(0, item.stock - qty)
    shortfall = max(0, qty - item.stock)
    new_status = reconcile_status(new_stock, item.status)
    if shortfall:
        logger.warning(
            f"Stock shortfall on item {item.item_id}: requested {qty}, on hand {item.stock}. Clamped to 0."
        )
    change = StockChange(
        item_id=item.item_id, action=StockAction.DECREASE, qty=qty,
        previous_stock=item.stock, new_stock=new_stock,
        previous_status=item.status, new_status=new_status, shortfall=shortfall,
    )
    return item.model_copy(update={"stock": new_stock, "status": new_status}), change


def increase_stock(item: ItemState, qty: int) -> Tuple[ItemState, StockChange]:
    _check_qty(qty)
    new_stock = item.stock + qty
    new_status = reconcile_status(new_stock, item.status)
    change = StockChange(
        item_id=item.item_id, action=StockAction.INCREASE, qty=qty,
        previous_stock=item.stock, new_stock=new_stock,
        previous_status=item.status, new_status=new_status,
    )
    return item.model_copy(update={"stock": new_stock, "status": new_status}), change


def adjust_stock(item: ItemState, action: StockAction, qty: int) -> Tuple[ItemState, StockChange]:
    if action == StockAction.DECREASE:
        return decrease_stock(item, qty)
    if action == StockAction.INCREASE:
        return increase_stock(item, qty)
    raise ValidationFailed(f"Unknown stock action '{action}'. Use decrease/increase.")


def apply_condition(item: ItemState, condition: Optional[ReturnCondition]) -> ItemState:
    """Kondisi hasil inspeksi: rusak ringan -> maintenance, rusak berat -> rusak.

    Stok tetap dihitung kembali walaupun unit rusak; hanya status yang berubah.
    """
    new_status = CONDITION_STATUS.get(condition)
    if new_status is None:
        return item
    return item.model_copy(update={"status": new_status})


def set_manual_status(item: ItemState, status: ItemStatus) -> ItemState:
    """Perubahan status manual oleh admin/gudang (mis. selesai maintenance)."""
    if status in HELD_STATUSES:
        return item.model_copy(update={"status": status})
    # Keluar dari maintenance/rusak: status ikut stok
    return item.model_copy(update={"status": reconcile_status(item.stock, ItemStatus.AVAILABLE)})
