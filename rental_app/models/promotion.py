# rental_app/models/promotion.py
from typing import Optional
from beanie import Document
from pydantic import BaseModel, Field, field_validator, model_validator
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime, date

from .enum import DiscountType


def _upper_code(v: Optional[str]) -> Optional[str]:
    return v.strip().upper() if v else v


class Promotion(Document):
    code: str # selalu huruf besar
    name: str
    description: Optional[str] = None
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: float = Field(..., gt=0)
    min_transaction: int = Field(default=0, ge=0)
    max_discount: Optional[int] = Field(None, gt=0) # hanya untuk persentase
    start_date: datetime
    end_date: datetime # inklusif
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Settings:
        name = "promotions"
        indexes = [
            IndexModel([("code", ASCENDING)], name="promo_code_unique_index", unique=True),
            IndexModel([("is_active", ASCENDING)], name="promo_is_active_index"),
            IndexModel([("created_at", DESCENDING)], name="promo_created_at_index"),
        ]

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        code: str = Field(..., min_length=1, max_length=30)
        name: str = Field(..., min_length=1, max_length=120)
        description: Optional[str] = None
        discount_type: DiscountType = DiscountType.PERCENTAGE
        discount_value: float = Field(..., gt=0)
        min_transaction: int = Field(default=0, ge=0)
        max_discount: Optional[int] = Field(None, gt=0)
        start_date: date
        end_date: date
        is_active: bool = True

        @field_validator("code")
        @classmethod
        def normalize_code(cls, v):
            return _upper_code(v)

        @model_validator(mode="after")
        def check_window(self):
            if self.end_date < self.start_date:
                raise ValueError("end_date must not be before start_date")
            if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
                raise ValueError("Percentage discount cannot exceed 100")
            return self

    class Update(BaseModel):
        code: Optional[str] = Field(None, min_length=1, max_length=30)
        name: Optional[str] = Field(None, min_length=1, max_length=120)
        description: Optional[str] = None
        discount_type: Optional[DiscountType] = None
        discount_value: Optional[float] = Field(None, gt=0)
        min_transaction: Optional[int] = Field(None, ge=0)
        max_discount: Optional[int] = Field(None, gt=0)
        start_date: Optional[date] = None
        end_date: Optional[date] = None
        is_active: Optional[bool] = None

        @field_validator("code")
        @classmethod
        def normalize_code(cls, v):
            return _upper_code(v)

    class Response(BaseModel):
        id: str
        code: str
        name: str
        description: Optional[str] = None
        discount_type: DiscountType
        discount_value: float
        min_transaction: int
        max_discount: Optional[int] = None
        start_date: date
        end_date: date
        is_active: bool
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

    class Validation(BaseModel):
        """Hasil validasi kode promo untuk subtotal tertentu."""
        promo: "Promotion.Response"
        subtotal: int
        discount: int
        total_after_discount: int


Promotion.Validation.model_rebuild()
