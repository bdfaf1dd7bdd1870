# rental_app/core/late_fee.py
from typing import Iterable

from pydantic import BaseModel, Field

from rental_app.core.utils import DateLike, as_date


class LateFeeLine(BaseModel):
    item_id: str
    qty: int = Field(..., gt=0)
    late_fee_per_day: int = Field(default=0, ge=0)


def overdue_days(due_date: DateLike, today: DateLike) -> int:
    """Hari keterlambatan, dihitung per tanggal (jam diabaikan)."""
    return max(0, (as_date(today) - as_date(due_date)).days)


def compute_late_fee(due_date: DateLike, today: DateLike, lines: Iterable[LateFeeLine]) -> int:
    """Sum of late_fee_per_day x qty x overdue days. No cap, no compounding."""
    days = overdue_days(due_date, today)
    if days == 0:
        return 0
    return sum(line.late_fee_per_day * line.qty * days for line in lines)
