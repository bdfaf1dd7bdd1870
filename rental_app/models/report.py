# rental_app/models/report.py
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime


class PublicStats(BaseModel):
    """Statistik untuk halaman depan (tanpa login)."""
    available_items: int = 0
    active_members: int = 0
    completed_transactions: int = 0


class SummaryReport(BaseModel):
    """Ringkasan untuk dashboard admin."""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    revenue: int = Field(default=0, description="Total transaksi selesai (termasuk denda)")
    late_fees: int = Field(default=0, description="Total denda dari transaksi selesai")
    transactions_by_status: Dict[str, int] = Field(default_factory=dict)
    items_by_status: Dict[str, int] = Field(default_factory=dict)
    members_by_verification: Dict[str, int] = Field(default_factory=dict)


class TopRentedItem(BaseModel):
    item_id: str
    item_name: str
    item_code: Optional[str] = None
    rental_count: int = Field(..., description="Jumlah transaksi yang memuat barang ini")
    units_rented: int = Field(..., description="Total unit disewa")


class TopRentedItemsReport(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int
    top_items: List[TopRentedItem]
