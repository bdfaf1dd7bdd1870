# rental_app/models/payment.py
from typing import Optional
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import PaymentKind, PaymentStatus


class Payment(Document):
    """Pembayaran untuk satu transaksi (DP, pelunasan, atau denda)."""
    transaction_id: PydanticObjectId
    transaction_code: Optional[str] = None
    kind: PaymentKind
    amount: int = Field(..., gt=0)
    proof_url: Optional[str] = None # bukti bayar
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    notes: Optional[str] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[PydanticObjectId] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Settings:
        name = "payments"
        indexes = [
            IndexModel([("transaction_id", ASCENDING)], name="payment_transaction_index"),
            IndexModel([("status", ASCENDING)], name="payment_status_index"),
            IndexModel([("created_at", DESCENDING)], name="payment_created_at_index"),
        ]

    class Create(BaseModel):
        transaction_id: str
        kind: PaymentKind
        amount: int = Field(..., gt=0)
        proof_url: Optional[str] = None
        notes: Optional[str] = None

    class Review(BaseModel):
        status: PaymentStatus
        notes: Optional[str] = None

    class Response(BaseModel):
        id: str
        transaction_id: str
        transaction_code: Optional[str] = None
        kind: PaymentKind
        amount: int
        proof_url: Optional[str] = None
        status: PaymentStatus
        notes: Optional[str] = None
        verified_at: Optional[datetime] = None
        verified_by: Optional[str] = None
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True
