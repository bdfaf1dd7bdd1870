# rental_app/core/payments.py
import logging
from datetime import datetime
from typing import Optional, Tuple

from rental_app.core.errors import InvalidTransition, NotFound, ValidationFailed
from rental_app.core.lifecycle import plan_transition
from rental_app.core.rentals import write_status, rental_state, to_object_id
from rental_app.core.utils import today_local
from rental_app.db.database import run_in_transaction
from rental_app.models.enum import PaymentKind, PaymentStatus, TransactionStatus
from rental_app.models.payment import Payment
from rental_app.models.transaction import Transaction
from rental_app.models.user import User

logger = logging.getLogger(__name__)


def check_payment_allowed(trx: Transaction, kind: PaymentKind) -> None:
    """Pembayaran ditolak untuk transaksi batal; transaksi selesai hanya menerima denda."""
    if trx.status == TransactionStatus.CANCELLED:
        raise InvalidTransition(f"Transaction {trx.code} is cancelled; payments are no longer accepted.")
    if trx.status == TransactionStatus.COMPLETED and kind != PaymentKind.LATE_FEE:
        raise InvalidTransition(f"Transaction {trx.code} is completed; only late-fee payments are accepted.")


async def record_payment(trx: Transaction, data: Payment.Create) -> Payment:
    check_payment_allowed(trx, data.kind)
    payment = Payment(
        transaction_id=trx.id,
        transaction_code=trx.code,
        kind=data.kind,
        amount=data.amount,
        proof_url=data.proof_url,
        notes=data.notes,
    )
    await payment.insert()
    logger.info(f"Payment {payment.id} ({data.kind.value}, {data.amount}) recorded for transaction {trx.code}.")
    return payment


async def review_payment(payment_id: str, review: Payment.Review, reviewer: User) -> Payment:
    """Verifikasi/tolak pembayaran. Verifikasi memajukan transaksi menunggu_pembayaran
    ke menunggu_konfirmasi dalam transaksi database yang sama."""
    if review.status == PaymentStatus.PENDING:
        raise ValidationFailed("Review status must be 'verified' or 'rejected'.")
    oid = to_object_id(payment_id, "payment ID")

    async def _apply(session) -> Tuple[Payment, Optional[Transaction]]:
        payment = await Payment.get(oid, session=session)
        if not payment:
            raise NotFound(f"Payment '{payment_id}' not found.")
        if payment.status != PaymentStatus.PENDING:
            raise InvalidTransition(f"Payment has already been {payment.status.value}.")

        now = datetime.now()
        payment.status = review.status
        payment.notes = review.notes if review.notes is not None else payment.notes
        payment.verified_at = now
        payment.verified_by = reviewer.id
        payment.updated_at = now
        await payment.save(session=session)

        if review.status == PaymentStatus.VERIFIED:
            trx = await Transaction.get(payment.transaction_id, session=session)
            if trx and trx.status == TransactionStatus.AWAITING_PAYMENT:
                plan = plan_transition(rental_state(trx), TransactionStatus.AWAITING_CONFIRMATION, today=today_local())
                await write_status(trx, plan, session=session)
                return payment, trx
        return payment, None

    payment, advanced = await run_in_transaction(_apply)

    if advanced:
        logger.info(f"Payment {payment_id} verified; transaction {advanced.code} moved to awaiting confirmation.")
    else:
        logger.info(f"Payment {payment_id} {review.status.value} by '{reviewer.email}'.")
    return payment
