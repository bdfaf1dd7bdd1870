# rental_app/models/transaction.py
from typing import Optional, List
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, model_validator, field_validator
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime, date

from .enum import TransactionStatus, ReturnCondition


class TransactionLine(BaseModel):
    """Detail transaksi. Harga di-snapshot saat booking, tidak ikut berubah dengan harga barang."""
    item_id: PydanticObjectId
    item_name: str
    qty: int = Field(..., gt=0)
    price_per_day: int = Field(..., gt=0)
    subtotal: int = Field(..., ge=0)


class InspectedItem(BaseModel):
    item_id: PydanticObjectId
    condition: ReturnCondition


class Inspection(BaseModel):
    inspected_at: datetime
    inspector_id: Optional[PydanticObjectId] = None
    overdue_days: int = 0
    late_fee: int = 0
    items: List[InspectedItem] = Field(default_factory=list)
    notes: Optional[str] = None


class Transaction(Document):
    code: str
    user_id: PydanticObjectId
    user_name: Optional[str] = None
    promo_code: Optional[str] = None
    booked_at: datetime
    # Disimpan sebagai datetime (tengah malam) karena BSON tidak punya tipe date
    start_date: datetime
    end_date: datetime
    total_days: int = Field(..., gt=0)
    lines: List[TransactionLine] = Field(default_factory=list)
    subtotal: int = Field(default=0, ge=0)
    discount: int = Field(default=0, ge=0)
    late_fee: int = Field(default=0, ge=0)
    total: int = 0
    status: TransactionStatus = Field(default=TransactionStatus.AWAITING_PAYMENT)
    inspection: Optional[Inspection] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Settings:
        name = "transactions"
        indexes = [
            IndexModel([("code", ASCENDING)], name="transaction_code_unique_index", unique=True),
            IndexModel([("user_id", ASCENDING)], name="transaction_user_index"),
            IndexModel([("status", ASCENDING), ("end_date", ASCENDING)], name="transaction_status_end_date_index"),
            IndexModel([("created_at", DESCENDING)], name="transaction_created_at_index"),
        ]

    # --- Pydantic Schemas ---
    class LineIn(BaseModel):
        item_id: str = Field(...)
        qty: int = Field(..., gt=0, description="Number of units to rent (must be > 0)")

    class Create(BaseModel):
        start_date: date
        end_date: date
        lines: List["Transaction.LineIn"] = Field(..., min_length=1)
        promo_code: Optional[str] = None
        notes: Optional[str] = None

        @model_validator(mode="after")
        def check_dates(self):
            if self.end_date < self.start_date:
                raise ValueError("end_date must not be before start_date")
            return self

    class StatusUpdate(BaseModel):
        status: TransactionStatus
        late_fee: Optional[int] = Field(None, ge=0, description="Override denda (opsional)")

    class InspectedItemIn(BaseModel):
        item_id: str
        condition: ReturnCondition = ReturnCondition.GOOD

    class InspectionIn(BaseModel):
        items: List["Transaction.InspectedItemIn"] = Field(default_factory=list)
        late_fee: Optional[int] = Field(None, ge=0)
        notes: Optional[str] = None

        @field_validator("items")
        @classmethod
        def unique_items(cls, v):
            ids = [i.item_id for i in v]
            if len(ids) != len(set(ids)):
                raise ValueError("Each item may only be inspected once")
            return v

    # --- Response Schema ---
    class LineResponse(BaseModel):
        item_id: str
        item_name: str
        qty: int
        price_per_day: int
        subtotal: int

    class InspectedItemResponse(BaseModel):
        item_id: str
        condition: ReturnCondition

    class InspectionResponse(BaseModel):
        inspected_at: datetime
        inspector_id: Optional[str] = None
        overdue_days: int
        late_fee: int
        items: List["Transaction.InspectedItemResponse"] = Field(default_factory=list)
        notes: Optional[str] = None

    class Response(BaseModel):
        id: str
        code: str
        user_id: str
        user_name: Optional[str] = None
        promo_code: Optional[str] = None
        booked_at: datetime
        start_date: date
        end_date: date
        total_days: int
        lines: List["Transaction.LineResponse"]
        subtotal: int
        discount: int
        late_fee: int
        total: int
        status: TransactionStatus
        inspection: Optional["Transaction.InspectionResponse"] = None
        notes: Optional[str] = None
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True

        @field_validator("start_date", "end_date", mode="before")
        @classmethod
        def datetime_to_date(cls, v):
            if isinstance(v, datetime):
                return v.date()
            if isinstance(v, str) and "T" in v:
                return v.split("T")[0]
            return v

    class LateFeePreview(BaseModel):
        transaction_id: str
        end_date: date
        today: date
        overdue_days: int
        late_fee: int


# Rebuild model (forward refs ke skema nested)
Transaction.Create.model_rebuild()
Transaction.InspectionIn.model_rebuild()
Transaction.InspectionResponse.model_rebuild()
Transaction.Response.model_rebuild()
