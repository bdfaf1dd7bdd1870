# rental_app/api/v1/endpoints/transactions.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from bson import ObjectId
from loguru import logger

from rental_app.core.security import (
    get_current_active_user,
    require_admin,
    require_gudang_or_admin,
    require_verified_member,
)
from rental_app.core.rate_limiter import limiter
from rental_app.core.lifecycle import STOCK_OUT_STATUSES
from rental_app.core.rentals import create_transaction, preview_late_fee, update_transaction_status
from rental_app.core.utils import today_local
from rental_app.models.enum import TransactionStatus, UserRole
from rental_app.models.transaction import Transaction
from rental_app.models.user import User

router = APIRouter(
    tags=["Transactions"]
)

STAFF_ROLES = (UserRole.ADMIN, UserRole.GUDANG)
# Member hanya boleh membatalkan sebelum serah terima
MEMBER_CANCELLABLE = (TransactionStatus.AWAITING_PAYMENT, TransactionStatus.AWAITING_CONFIRMATION)


def is_staff(user: User) -> bool:
    return user.role in STAFF_ROLES


def validate_transaction_response(trx_doc: Transaction) -> Transaction.Response:
    trx_data = trx_doc.model_dump(mode="json")
    trx_data["id"] = str(trx_doc.id)
    return Transaction.Response.model_validate(trx_data)


async def get_transaction_or_404(transaction_id: str, current_user: User) -> Transaction:
    """Transaksi by ID; member hanya bisa melihat transaksinya sendiri."""
    if not ObjectId.is_valid(transaction_id):
        raise HTTPException(status_code=400, detail="Invalid transaction ID format.")
    trx = await Transaction.get(ObjectId(transaction_id))
    if not trx or (not is_staff(current_user) and trx.user_id != current_user.id):
        raise HTTPException(status_code=404, detail=f"Transaction with ID '{transaction_id}' not found")
    return trx


# --- POST / --- (create-transaction)
@router.post("/", response_model=Transaction.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/hour")
async def create_rental(
    request: Request,
    trx_in: Transaction.Create = Body(...),
    current_user: User = Depends(require_verified_member)
):
    """Checkout: harga di-snapshot, promo divalidasi, status awal `menunggu_pembayaran`."""
    trx = await create_transaction(current_user, trx_in)
    return validate_transaction_response(trx)


# --- GET / ---
@router.get("/", response_model=List[Transaction.Response])
@limiter.limit("120/minute")
async def read_transactions(
    request: Request,
    skip: int = 0,
    limit: int = 100,
    trx_status: Optional[TransactionStatus] = Query(None, alias="status"),
    user_id: Optional[str] = Query(None, description="Filter by member (staff only)"),
    code: Optional[str] = Query(None, description="Filter by transaction code (partial)"),
    current_user: User = Depends(get_current_active_user)
):
    query_filters = {}
    if is_staff(current_user):
        if user_id:
            if not ObjectId.is_valid(user_id):
                raise HTTPException(status_code=400, detail="Invalid user_id format.")
            query_filters["user_id"] = ObjectId(user_id)
    else:
        query_filters["user_id"] = current_user.id
    if trx_status:
        query_filters["status"] = trx_status.value
    if code:
        query_filters["code"] = {"$regex": code, "$options": "i"}

    docs = await Transaction.find(query_filters, skip=skip, limit=limit).sort("-created_at").to_list()
    return [validate_transaction_response(t) for t in docs]


# --- GET /{transaction_id} ---
@router.get("/{transaction_id}", response_model=Transaction.Response)
async def read_transaction(
    transaction_id: str = Path(...),
    current_user: User = Depends(get_current_active_user)
):
    trx = await get_transaction_or_404(transaction_id, current_user)
    return validate_transaction_response(trx)


# --- GET /{transaction_id}/late-fee --- (preview denda jika diinspeksi hari ini)
@router.get("/{transaction_id}/late-fee", response_model=Transaction.LateFeePreview)
async def read_late_fee_preview(
    transaction_id: str = Path(...),
    current_user: User = Depends(get_current_active_user)
):
    trx = await get_transaction_or_404(transaction_id, current_user)
    today = today_local()
    days, fee = await preview_late_fee(trx, today)
    return Transaction.LateFeePreview(
        transaction_id=str(trx.id), end_date=trx.end_date.date(), today=today, overdue_days=days, late_fee=fee
    )


# --- PUT /{transaction_id}/status --- (update-transaction-status)
@router.put("/{transaction_id}/status", response_model=Transaction.Response)
@limiter.limit("120/hour")
async def change_status(
    request: Request,
    transaction_id: str = Path(...),
    status_in: Transaction.StatusUpdate = Body(...),
    current_user: User = Depends(require_gudang_or_admin)
):
    """Ubah status transaksi (dengan efek samping stok & denda sesuai state machine)."""
    logger.info(f"User '{current_user.email}' changing status of {transaction_id} to '{status_in.status.value}'")
    trx = await update_transaction_status(
        transaction_id, status_in.status, status_in.late_fee, inspector=current_user
    )
    return validate_transaction_response(trx)


# --- POST /{transaction_id}/confirm-payment ---
@router.post("/{transaction_id}/confirm-payment", response_model=Transaction.Response)
async def confirm_payment(
    transaction_id: str = Path(...),
    current_user: User = Depends(get_current_active_user)
):
    """Member mengonfirmasi sudah membayar (atau admin)."""
    trx = await get_transaction_or_404(transaction_id, current_user)
    if current_user.role == UserRole.GUDANG:
        raise HTTPException(status_code=403, detail="Payment confirmation is done by the member or an admin.")
    trx = await update_transaction_status(str(trx.id), TransactionStatus.AWAITING_CONFIRMATION)
    return validate_transaction_response(trx)


# --- POST /{transaction_id}/handover --- (serah terima barang)
@router.post("/{transaction_id}/handover", response_model=Transaction.Response)
async def handover(
    transaction_id: str = Path(...),
    current_user: User = Depends(require_gudang_or_admin)
):
    logger.info(f"User '{current_user.email}' handing over transaction {transaction_id}")
    trx = await update_transaction_status(transaction_id, TransactionStatus.BEING_RENTED)
    return validate_transaction_response(trx)


# --- POST /{transaction_id}/return-request ---
@router.post("/{transaction_id}/return-request", response_model=Transaction.Response)
async def request_return(
    transaction_id: str = Path(...),
    current_user: User = Depends(get_current_active_user)
):
    trx = await get_transaction_or_404(transaction_id, current_user)
    trx = await update_transaction_status(str(trx.id), TransactionStatus.AWAITING_RETURN)
    return validate_transaction_response(trx)


# --- POST /{transaction_id}/inspection --- (pengecekan barang kembali)
@router.post("/{transaction_id}/inspection", response_model=Transaction.Response)
async def inspect_return(
    transaction_id: str = Path(...),
    inspection_in: Transaction.InspectionIn = Body(...),
    current_user: User = Depends(require_gudang_or_admin)
):
    """Stok dikembalikan, denda dihitung, kondisi rusak mengubah status barang."""
    logger.info(f"User '{current_user.email}' inspecting transaction {transaction_id}")
    trx = await update_transaction_status(
        transaction_id,
        TransactionStatus.COMPLETED,
        inspection_in.late_fee,
        conditions={i.item_id: i.condition for i in inspection_in.items},
        inspector=current_user,
        notes=inspection_in.notes,
    )
    return validate_transaction_response(trx)


# --- POST /{transaction_id}/cancel ---
@router.post("/{transaction_id}/cancel", response_model=Transaction.Response)
async def cancel_transaction(
    transaction_id: str = Path(...),
    current_user: User = Depends(get_current_active_user)
):
    trx = await get_transaction_or_404(transaction_id, current_user)
    if not is_staff(current_user) and trx.status not in MEMBER_CANCELLABLE:
        raise HTTPException(status_code=403, detail="Transactions can only be cancelled by staff after handover.")
    logger.info(f"User '{current_user.email}' cancelling transaction {trx.code} (status '{trx.status.value}')")
    trx = await update_transaction_status(str(trx.id), TransactionStatus.CANCELLED)
    return validate_transaction_response(trx)


# --- DELETE /{transaction_id} ---
@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("10/hour")
async def delete_transaction(
    request: Request,
    transaction_id: str = Path(...),
    current_admin: User = Depends(require_admin)
):
    """Hapus permanen. Transaksi yang barangnya masih di penyewa tidak bisa dihapus."""
    trx = await get_transaction_or_404(transaction_id, current_admin)
    if trx.status in STOCK_OUT_STATUSES:
        raise HTTPException(
            status_code=409,
            detail=f"Transaction {trx.code} still has items out on rent ('{trx.status.value}'); complete or cancel it first."
        )
    await trx.delete()
    logger.warning(f"Transaction {trx.code} deleted by admin '{current_admin.email}'.")
