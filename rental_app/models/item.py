# rental_app/models/item.py
from typing import Optional, List
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING
from datetime import datetime

from .enum import ItemStatus, StockAction


class Item(Document):
    """Model Dokumen Beanie untuk Barang sewaan (stok agregat, bukan per unit)."""
    code: str = Field(..., max_length=40)
    name: str = Field(..., max_length=200)
    category_id: PydanticObjectId
    brand: Optional[str] = Field(None, max_length=100) # merk
    description: Optional[str] = None
    price_per_day: int = Field(..., gt=0)       # harga sewa per hari (Rupiah)
    late_fee_per_day: int = Field(default=0, ge=0) # denda per hari
    stock: int = Field(default=0, ge=0)
    photos: List[str] = Field(default_factory=list)
    status: ItemStatus = Field(default=ItemStatus.AVAILABLE)

    # Soft delete
    is_active: bool = Field(default=True, description="Status aktif item (True=aktif, False=dihapus/tidak aktif)")

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Settings:
        name = "items"
        indexes = [
            IndexModel([("code", ASCENDING)], name="item_code_unique_index", unique=True),
            IndexModel([("name", ASCENDING)], name="item_name_index"),
            IndexModel([("category_id", ASCENDING)], name="item_category_index"),
            IndexModel([("status", ASCENDING)], name="item_status_index"),
            IndexModel([("is_active", ASCENDING)], name="item_is_active_index"),
        ]

    # --- Pydantic Schemas for API ---
    class Create(BaseModel):
        code: Optional[str] = Field(None, min_length=1, max_length=40, description="Dibuat otomatis jika kosong")
        name: str = Field(..., min_length=1, max_length=200)
        category_id: str = Field(..., description="String ObjectId of the category")
        brand: Optional[str] = Field(None, max_length=100)
        description: Optional[str] = None
        price_per_day: int = Field(..., gt=0)
        late_fee_per_day: int = Field(default=0, ge=0)
        initial_stock: int = Field(default=0, ge=0)
        photos: List[str] = Field(default_factory=list)

    class Update(BaseModel):
        # Stok TIDAK diubah lewat sini, gunakan endpoint stock
        name: Optional[str] = Field(None, min_length=1, max_length=200)
        category_id: Optional[str] = Field(None, description="String ObjectId of the new category")
        brand: Optional[str] = Field(None, max_length=100)
        description: Optional[str] = None
        price_per_day: Optional[int] = Field(None, gt=0)
        late_fee_per_day: Optional[int] = Field(None, ge=0)
        photos: Optional[List[str]] = None
        is_active: Optional[bool] = None

    class StockAdjust(BaseModel):
        action: StockAction
        qty: int = Field(..., gt=0)

    class StatusUpdate(BaseModel):
        status: ItemStatus

    class Response(BaseModel):
        id: str
        code: str
        name: str
        category_id: str
        brand: Optional[str] = None
        description: Optional[str] = None
        price_per_day: int
        late_fee_per_day: int
        stock: int
        photos: List[str] = Field(default_factory=list)
        status: ItemStatus
        is_active: bool
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True

    class StockAdjustResult(BaseModel):
        item: "Item.Response"
        action: StockAction
        qty: int
        previous_stock: int
        new_stock: int
        shortfall: int = Field(default=0, description="Unit yang diminta melebihi stok (stok di-clamp ke 0)")


Item.StockAdjustResult.model_rebuild()
