# rental_app/api/v1/endpoints/reports.py
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
import logging
from datetime import datetime

from pymongo import ASCENDING

from rental_app.core.security import require_admin, require_gudang_or_admin
from rental_app.core.rate_limiter import limiter
from rental_app.core.utils import to_datetime, today_local
from rental_app.models.enum import ItemStatus, TransactionStatus, UserRole, VerificationStatus
from rental_app.models.item import Item
from rental_app.models.transaction import Transaction
from rental_app.models.user import User
from rental_app.models.report import PublicStats, SummaryReport, TopRentedItem, TopRentedItemsReport
from rental_app.api.v1.endpoints.transactions import validate_transaction_response

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
)

# Tanpa login (halaman depan)
public_router = APIRouter(
    prefix="/stats",
    tags=["Reports"],
)


async def _count_by(collection, field: str, match: Optional[dict] = None) -> Dict[str, int]:
    pipeline = []
    if match:
        pipeline.append({"$match": match})
    pipeline.append({"$group": {"_id": f"${field}", "count": {"$sum": 1}}})
    rows = await collection.aggregate(pipeline).to_list(length=None)
    return {str(row["_id"]): row["count"] for row in rows}


def _date_range_filter(start_date: Optional[datetime], end_date: Optional[datetime]) -> dict:
    if start_date and end_date and start_date >= end_date:
        raise HTTPException(status_code=400, detail="End date must be after start date.")
    date_filter = {}
    if start_date:
        date_filter["$gte"] = start_date
    if end_date:
        date_filter["$lt"] = end_date
    return {"booked_at": date_filter} if date_filter else {}


# --- Statistik publik ---
@public_router.get("/public", response_model=PublicStats, summary="Public Statistics")
@limiter.limit("60/minute")
async def get_public_stats(request: Request):
    return PublicStats(
        available_items=await Item.find({
            "is_active": True, "status": ItemStatus.AVAILABLE.value, "stock": {"$gt": 0}
        }).count(),
        active_members=await User.find({
            "role": UserRole.MEMBER.value,
            "verification_status": VerificationStatus.APPROVED.value,
            "disabled": False,
        }).count(),
        completed_transactions=await Transaction.find({"status": TransactionStatus.COMPLETED.value}).count(),
    )


# --- Ringkasan dashboard admin ---
@router.get(
    "/summary",
    response_model=SummaryReport,
    summary="Admin Dashboard Summary",
    dependencies=[Depends(require_admin)]
)
async def get_summary(
    start_date: Optional[datetime] = Query(None, description="Start (ISO format), filters on booking time"),
    end_date: Optional[datetime] = Query(None, description="End (ISO format, exclusive)"),
):
    trx_match = _date_range_filter(start_date, end_date)
    trx_collection = Transaction.get_motor_collection()

    revenue_rows = await trx_collection.aggregate([
        {"$match": {**trx_match, "status": TransactionStatus.COMPLETED.value}},
        {"$group": {"_id": None, "revenue": {"$sum": "$total"}, "late_fees": {"$sum": "$late_fee"}}},
    ]).to_list(length=None)
    totals = revenue_rows[0] if revenue_rows else {}

    report = SummaryReport(
        start_date=start_date,
        end_date=end_date,
        revenue=totals.get("revenue", 0),
        late_fees=totals.get("late_fees", 0),
        transactions_by_status=await _count_by(trx_collection, "status", trx_match or None),
        items_by_status=await _count_by(Item.get_motor_collection(), "status", {"is_active": True}),
        members_by_verification=await _count_by(
            User.get_motor_collection(), "verification_status", {"role": UserRole.MEMBER.value}
        ),
    )
    logger.info(f"Summary report generated. Date range: {start_date}-{end_date}")
    return report


# --- Transaksi terlambat ---
@router.get(
    "/overdue",
    response_model=List[Transaction.Response],
    summary="Overdue Rentals",
    dependencies=[Depends(require_gudang_or_admin)]
)
async def get_overdue_rentals(skip: int = 0, limit: int = 50):
    """Barang belum kembali dan tanggal selesai sudah lewat (paling lama telat dulu)."""
    query = {
        "status": {"$in": [TransactionStatus.BEING_RENTED.value, TransactionStatus.AWAITING_RETURN.value]},
        "end_date": {"$lt": to_datetime(today_local())},
    }
    docs = await Transaction.find(query, skip=skip, limit=limit, sort=[("end_date", ASCENDING)]).to_list()
    return [validate_transaction_response(d) for d in docs]


# --- Barang paling sering disewa ---
@router.get(
    "/top-items",
    response_model=TopRentedItemsReport,
    summary="Top N Most Rented Items",
    dependencies=[Depends(require_admin)]
)
async def get_top_rented_items(
    limit: int = Query(10, ge=1, le=100, description="Number of top items to return"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
):
    """Dihitung dari transaksi yang sudah serah terima (sedang disewa s/d selesai)."""
    match = {
        **_date_range_filter(start_date, end_date),
        "status": {"$in": [
            TransactionStatus.BEING_RENTED.value,
            TransactionStatus.AWAITING_RETURN.value,
            TransactionStatus.COMPLETED.value,
        ]},
    }
    pipeline = [
        {"$match": match},
        {"$unwind": "$lines"},
        {"$group": {
            "_id": "$lines.item_id",
            "item_name": {"$last": "$lines.item_name"},
            "rental_count": {"$sum": 1},
            "units_rented": {"$sum": "$lines.qty"},
        }},
        {"$sort": {"units_rented": -1, "rental_count": -1}},
        {"$limit": limit},
        {"$lookup": {"from": Item.Settings.name, "localField": "_id", "foreignField": "_id", "as": "item_details"}},
        {"$unwind": {"path": "$item_details", "preserveNullAndEmptyArrays": True}},
        {"$project": {
            "_id": 0,
            "item_id": {"$toString": "$_id"},
            "item_name": 1,
            "item_code": "$item_details.code",
            "rental_count": 1,
            "units_rented": 1,
        }},
    ]
    rows = await Transaction.get_motor_collection().aggregate(pipeline).to_list(length=None)
    logger.info(f"Top rented items report generated ({len(rows)} items). Date range: {start_date}-{end_date}")
    return TopRentedItemsReport(
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        top_items=[TopRentedItem.model_validate(row) for row in rows],
    )
