# rental_app/api/v1/endpoints/payments.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from bson import ObjectId
from loguru import logger

from rental_app.core.security import get_current_active_user, require_admin
from rental_app.core.rate_limiter import limiter
from rental_app.core.payments import record_payment, review_payment
from rental_app.models.enum import PaymentKind, PaymentStatus, UserRole
from rental_app.models.payment import Payment
from rental_app.models.transaction import Transaction
from rental_app.models.user import User
from rental_app.api.v1.endpoints.transactions import get_transaction_or_404

router = APIRouter(
    tags=["Payments"]
)


def validate_payment_response(payment_doc: Payment) -> Payment.Response:
    payment_data = payment_doc.model_dump(mode="json")
    payment_data["id"] = str(payment_doc.id)
    return Payment.Response.model_validate(payment_data)


async def get_payment_or_404(payment_id: str) -> Payment:
    if not ObjectId.is_valid(payment_id):
        raise HTTPException(status_code=400, detail="Invalid payment ID format.")
    payment = await Payment.get(ObjectId(payment_id))
    if not payment:
        raise HTTPException(status_code=404, detail=f"Payment with ID '{payment_id}' not found")
    return payment


# --- POST / --- (upload bukti bayar)
@router.post("/", response_model=Payment.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/hour")
async def create_payment(
    request: Request,
    payment_in: Payment.Create = Body(...),
    current_user: User = Depends(get_current_active_user)
):
    trx = await get_transaction_or_404(payment_in.transaction_id, current_user)
    if current_user.role == UserRole.GUDANG:
        raise HTTPException(status_code=403, detail="Payments are recorded by the member or an admin.")
    payment = await record_payment(trx, payment_in)
    return validate_payment_response(payment)


# --- GET / ---
@router.get("/", response_model=List[Payment.Response])
@limiter.limit("120/minute")
async def read_payments(
    request: Request,
    skip: int = 0,
    limit: int = 100,
    transaction_id: Optional[str] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    kind: Optional[PaymentKind] = Query(None),
    current_user: User = Depends(get_current_active_user)
):
    """Staff melihat semua pembayaran; member hanya pembayaran transaksinya sendiri."""
    query_filters = {}
    if transaction_id:
        trx = await get_transaction_or_404(transaction_id, current_user)
        query_filters["transaction_id"] = trx.id
    elif current_user.role == UserRole.MEMBER:
        own_ids = await Transaction.get_motor_collection().distinct("_id", {"user_id": current_user.id})
        query_filters["transaction_id"] = {"$in": own_ids}
    if payment_status:
        query_filters["status"] = payment_status.value
    if kind:
        query_filters["kind"] = kind.value

    docs = await Payment.find(query_filters, skip=skip, limit=limit).sort("-created_at").to_list()
    return [validate_payment_response(p) for p in docs]


# --- PATCH /{payment_id}/review --- (verifikasi admin)
@router.patch("/{payment_id}/review", response_model=Payment.Response)
@limiter.limit("120/hour")
async def review(
    request: Request,
    payment_id: str = Path(...),
    review_in: Payment.Review = Body(...),
    current_admin: User = Depends(require_admin)
):
    """Verifikasi pembayaran memajukan transaksi `menunggu_pembayaran` ke `menunggu_konfirmasi`."""
    payment = await review_payment(payment_id, review_in, current_admin)
    return validate_payment_response(payment)


# --- DELETE /{payment_id} ---
@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("10/hour")
async def delete_payment(
    request: Request,
    payment_id: str = Path(...),
    current_admin: User = Depends(require_admin)
):
    payment = await get_payment_or_404(payment_id)
    await payment.delete()
    logger.warning(f"Payment {payment_id} ({payment.transaction_code}) deleted by admin '{current_admin.email}'.")
