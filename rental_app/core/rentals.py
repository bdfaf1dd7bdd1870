# rental_app/core/rentals.py
"""Database side of the rental flow.

Loads documents, hands snapshots to the pure planners in ``lifecycle`` /
``inventory`` / ``promo`` and writes the outcome. Every multi-document write
runs through ``run_in_transaction`` so a status change and its stock changes are
committed or rolled back together.
"""
import logging
from collections import Counter
from datetime import date, datetime
from typing import Dict, Mapping, Optional, Tuple

from beanie import PydanticObjectId
from bson import ObjectId

from rental_app.core.config import ENFORCE_PROMO_MIN_SPEND, RESTORE_STOCK_ON_CANCEL
from rental_app.core.errors import NotFound, StockConflict, ValidationFailed, InvalidTransition
from rental_app.core.inventory import HELD_STATUSES, ItemState, StockChange, adjust_stock, set_manual_status
from rental_app.core.late_fee import LateFeeLine, compute_late_fee, overdue_days
from rental_app.core.lifecycle import (
    QuoteLine,
    RentalLine,
    RentalState,
    TransitionPlan,
    compute_total,
    is_overdue,
    plan_transition,
    price_lines,
)
from rental_app.core.promo import PromoTerms, evaluate_promo
from rental_app.core.utils import generate_transaction_code, to_datetime, today_local
from rental_app.db.database import run_in_transaction
from rental_app.models.enum import ItemStatus, ReturnCondition, StockAction, TransactionStatus
from rental_app.models.item import Item
from rental_app.models.promotion import Promotion
from rental_app.models.transaction import Inspection, InspectedItem, Transaction, TransactionLine
from rental_app.models.user import User

logger = logging.getLogger(__name__)


def to_object_id(value: str, label: str = "ID") -> ObjectId:
    if not ObjectId.is_valid(value):
        raise ValidationFailed(f"Invalid {label} format: '{value}'.")
    return ObjectId(value)


def item_state(item: Item) -> ItemState:
    return ItemState(
        item_id=str(item.id),
        name=item.name,
        stock=item.stock,
        status=item.status,
        late_fee_per_day=item.late_fee_per_day,
    )


def rental_state(trx: Transaction) -> RentalState:
    return RentalState(
        transaction_id=str(trx.id),
        status=trx.status,
        end_date=trx.end_date,
        subtotal=trx.subtotal,
        discount=trx.discount,
        late_fee=trx.late_fee,
        lines=[
            RentalLine(item_id=str(line.item_id), item_name=line.item_name, qty=line.qty, price_per_day=line.price_per_day)
            for line in trx.lines
        ],
    )


# --- Promo ---

async def find_promo(code: str, session=None) -> Promotion:
    promo = await Promotion.find_one(Promotion.code == code.strip().upper(), session=session)
    if not promo:
        raise NotFound(f"Promo code '{code}' not found.")
    return promo


async def validate_promo_code(code: str, subtotal: int, today: Optional[date] = None) -> Tuple[Promotion, int]:
    """get/validate-promo: promo aktif + diskon untuk subtotal."""
    promo = await find_promo(code)
    discount = evaluate_promo(
        PromoTerms.model_validate(promo), subtotal, today or today_local(), ENFORCE_PROMO_MIN_SPEND
    )
    logger.debug(f"Promo '{promo.code}' valid for subtotal {subtotal}: discount {discount}")
    return promo, discount


# --- create-transaction ---

async def create_transaction(user: User, data: Transaction.Create, today: Optional[date] = None) -> Transaction:
    today = today or today_local()
    items: Dict[str, Item] = {}
    requested: Counter = Counter()
    for line in data.lines:
        if line.item_id not in items:
            item = await Item.find_one({"_id": to_object_id(line.item_id, "item ID"), "is_active": True})
            if not item:
                raise NotFound(f"Item '{line.item_id}' not found.")
            items[line.item_id] = item
        requested[line.item_id] += line.qty

    for item_id, qty in requested.items():
        item = items[item_id]
        if item.status in HELD_STATUSES:
            raise StockConflict(f"Item '{item.name}' is not available for rent (status: {item.status.value}).")
        if item.stock < qty:
            raise StockConflict(f"Not enough stock for '{item.name}': requested {qty}, available {item.stock}.")

    quote = price_lines(
        data.start_date,
        data.end_date,
        [
            QuoteLine(item_id=l.item_id, item_name=items[l.item_id].name, qty=l.qty,
                      price_per_day=items[l.item_id].price_per_day)
            for l in data.lines
        ],
    )

    discount, promo_code = 0, None
    if data.promo_code:
        promo, discount = await validate_promo_code(data.promo_code, quote.subtotal, today)
        promo_code = promo.code

    async def _insert(session) -> Transaction:
        code = await generate_transaction_code(today, session=session)
        trx = Transaction(
            code=code,
            user_id=user.id,
            user_name=user.name,
            promo_code=promo_code,
            booked_at=datetime.now(),
            start_date=to_datetime(data.start_date),
            end_date=to_datetime(data.end_date),
            total_days=quote.total_days,
            lines=[
                TransactionLine(
                    item_id=PydanticObjectId(p.item_id), item_name=p.item_name,
                    qty=p.qty, price_per_day=p.price_per_day, subtotal=p.subtotal,
                )
                for p in quote.lines
            ],
            subtotal=quote.subtotal,
            discount=discount,
            late_fee=0,
            total=compute_total(quote.subtotal, discount),
            status=TransactionStatus.AWAITING_PAYMENT,
            notes=data.notes,
        )
        # Header + detail dalam satu dokumen: satu insert
        await trx.insert(session=session)
        return trx

    trx = await run_in_transaction(_insert)

    logger.info(f"Transaction {trx.code} created for user '{user.email}' (total {trx.total}, promo {promo_code}).")
    return trx


# --- update-transaction-status ---

async def _write_items(plan: TransitionPlan, originals: Mapping[str, ItemState], session=None) -> None:
    now = datetime.now()
    collection = Item.get_motor_collection()
    for item_id, state in plan.items.items():
        before = originals[item_id]
        result = await collection.update_one(
            {"_id": ObjectId(item_id), "stock": before.stock},
            {"$set": {"stock": state.stock, "status": state.status.value, "updated_at": now}},
            session=session,
        )
        if result.matched_count == 0:
            raise StockConflict(f"Stock of item '{before.name or item_id}' changed concurrently; please retry.")


async def write_status(trx: Transaction, plan: TransitionPlan, session=None, extra: Optional[dict] = None) -> None:
    update = {
        "status": plan.status.value,
        "late_fee": plan.late_fee,
        "total": plan.total,
        "updated_at": datetime.now(),
    }
    if extra:
        update.update(extra)
    result = await Transaction.get_motor_collection().update_one(
        {"_id": trx.id, "status": trx.status.value},
        {"$set": update},
        session=session,
    )
    if result.matched_count == 0:
        raise InvalidTransition(f"Transaction {trx.code} was modified concurrently; reload and retry.")


async def update_transaction_status(
    transaction_id: str,
    new_status: TransactionStatus,
    late_fee: Optional[int] = None,
    *,
    conditions: Optional[Mapping[str, ReturnCondition]] = None,
    inspector: Optional[User] = None,
    notes: Optional[str] = None,
    today: Optional[date] = None,
) -> Transaction:
    """Status change plus its stock side effects as one atomic unit."""
    oid = to_object_id(transaction_id, "transaction ID")
    today = today or today_local()

    async def _apply(session) -> Tuple[Transaction, TransitionPlan]:
        trx = await Transaction.get(oid, session=session)
        if not trx:
            raise NotFound(f"Transaction '{transaction_id}' not found.")

        originals: Dict[str, ItemState] = {}
        if new_status in (TransactionStatus.BEING_RENTED, TransactionStatus.COMPLETED, TransactionStatus.CANCELLED):
            item_ids = list({line.item_id for line in trx.lines})
            docs = await Item.find({"_id": {"$in": item_ids}}, session=session).to_list()
            originals = {str(d.id): item_state(d) for d in docs}

        plan = plan_transition(
            rental_state(trx),
            new_status,
            originals,
            today,
            conditions=conditions,
            late_fee_override=late_fee,
            restore_stock_on_cancel=RESTORE_STOCK_ON_CANCEL,
        )

        extra = None
        if plan.status == TransactionStatus.COMPLETED:
            inspection = Inspection(
                inspected_at=datetime.now(),
                inspector_id=inspector.id if inspector else None,
                overdue_days=plan.overdue_days,
                late_fee=plan.late_fee,
                items=[
                    InspectedItem(item_id=PydanticObjectId(item_id), condition=condition)
                    for item_id, condition in plan.conditions.items()
                ],
                notes=notes,
            )
            extra = {"inspection": inspection.model_dump()}

        await write_status(trx, plan, session=session, extra=extra)
        await _write_items(plan, originals, session=session)
        return trx, plan

    trx, plan = await run_in_transaction(_apply)

    logger.info(
        f"Transaction {trx.code}: {plan.previous_status.value} -> {plan.status.value} "
        f"(late fee {plan.late_fee}, total {plan.total}, {len(plan.stock_changes)} stock change(s))"
    )
    return await Transaction.get(oid)


# --- adjust-stock ---

async def get_active_item(item_id: str, session=None) -> Item:
    item = await Item.find_one({"_id": to_object_id(item_id, "item ID"), "is_active": True}, session=session)
    if not item:
        raise NotFound(f"Active item with ID '{item_id}' not found.")
    return item


async def adjust_item_stock(item_id: str, action: StockAction, qty: int) -> Tuple[Item, StockChange]:
    async def _apply(session) -> Tuple[Item, StockChange]:
        item = await get_active_item(item_id, session=session)
        state, change = adjust_stock(item_state(item), action, qty)
        result = await Item.get_motor_collection().update_one(
            {"_id": item.id, "stock": item.stock},
            {"$set": {"stock": state.stock, "status": state.status.value, "updated_at": datetime.now()}},
            session=session,
        )
        if result.matched_count == 0:
            raise StockConflict(f"Stock of item '{item.name}' changed concurrently; please retry.")
        return item, change

    item, change = await run_in_transaction(_apply)
    logger.info(f"Stock of item {item.code} {action.value}d by {qty}: {change.previous_stock} -> {change.new_stock}")
    return await Item.get(item.id), change


async def set_item_status(item_id: str, status: ItemStatus) -> Item:
    item = await get_active_item(item_id)
    state = set_manual_status(item_state(item), status)
    item.status = state.status
    item.updated_at = datetime.now()
    await item.save()
    logger.info(f"Item {item.code} status set to '{item.status.value}' (requested '{status.value}').")
    return item


# --- late fee preview & overdue sweep ---

async def preview_late_fee(trx: Transaction, today: Optional[date] = None) -> Tuple[int, int]:
    """(overdue_days, late_fee) jika diinspeksi hari ini, memakai denda per hari barang saat ini."""
    today = today or today_local()
    item_ids = list({line.item_id for line in trx.lines})
    docs = await Item.find({"_id": {"$in": item_ids}}).to_list()
    fees = {str(d.id): d.late_fee_per_day for d in docs}
    lines = [LateFeeLine(item_id=str(l.item_id), qty=l.qty, late_fee_per_day=fees.get(str(l.item_id), 0)) for l in trx.lines]
    return overdue_days(trx.end_date, today), compute_late_fee(trx.end_date, today, lines)


async def sweep_overdue(today: Optional[date] = None) -> int:
    """sedang_disewa yang lewat tanggal selesai -> menunggu_pengembalian."""
    today = today or today_local()
    candidates = await Transaction.find(
        {"status": TransactionStatus.BEING_RENTED.value, "end_date": {"$lt": to_datetime(today)}}
    ).to_list()
    moved = 0
    for trx in candidates:
        if not is_overdue(trx.status, trx.end_date, today):
            continue
        try:
            await update_transaction_status(str(trx.id), TransactionStatus.AWAITING_RETURN, today=today)
            moved += 1
        except InvalidTransition as e:
            # Sudah diubah request lain di antara query dan update
            logger.info(f"Overdue sweep skipped {trx.code}: {e.message}")
    logger.info(f"Overdue sweep for {today}: {len(candidates)} candidate(s), {moved} moved to awaiting return.")
    return moved
