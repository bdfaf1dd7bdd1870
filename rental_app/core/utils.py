# rental_app/core/utils.py
import logging
import re
from datetime import date, datetime, time
from typing import Optional, Union
from zoneinfo import ZoneInfo

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from rental_app.core.config import APP_TIMEZONE
from rental_app.models.counter import SequenceCounter

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


async def get_next_sequence_value(sequence_name: str, session=None) -> int:
    """
    Gets the next value for a named sequence, incrementing it atomically.
    Uses _id field of SequenceCounter as the sequence name.
    """
    logger.debug(f"Attempting to get next sequence value for: {sequence_name}")
    collection = SequenceCounter.get_motor_collection()
    try:
        updated_doc = await collection.find_one_and_update(
            {"_id": sequence_name},
            {"$inc": {"value": 1}},
            upsert=True,            # Buat jika tidak ada
            return_document=ReturnDocument.AFTER,
            session=session,
        )
    except PyMongoError as e:
        if e.has_error_label("TransientTransactionError"):
            # Biarkan run_in_transaction mengulang transaksi
            raise
        logger.error(f"Error in get_next_sequence_value for '{sequence_name}': {e}", exc_info=True)
        raise RuntimeError(f"Database error accessing sequence counter '{sequence_name}'") from e

    if not updated_doc or "value" not in updated_doc:
        logger.error(f"CRITICAL: Failed to get or create sequence counter '{sequence_name}' after upsert.")
        raise RuntimeError(f"Failed to get or create sequence counter: {sequence_name}")
    logger.debug(f"Next sequence value for '{sequence_name}': {updated_doc['value']}")
    return updated_doc["value"]


# --- Kode transaksi & kode barang ---

def format_transaction_code(day: date, sequence: int) -> str:
    """TRX + tanggal (YYYYMMDD) + nomor urut harian 3 digit, mis. TRX20241210001."""
    return f"TRX{day:%Y%m%d}{sequence:03d}"


async def generate_transaction_code(day: date, session=None) -> str:
    seq = await get_next_sequence_value(f"trx_{day:%Y%m%d}", session=session)
    return format_transaction_code(day, seq)


def item_code_prefix(category_name: Optional[str]) -> str:
    letters = re.sub(r"[^A-Za-z]", "", category_name or "")
    return (letters[:3] or "BRG").upper()


def format_item_code(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:03d}"


# --- Tanggal ---

def today_local(tz_name: str = APP_TIMEZONE) -> date:
    """Tanggal hari ini di zona waktu aplikasi."""
    return datetime.now(ZoneInfo(tz_name)).date()


def as_date(value: DateLike) -> date:
    """Buang komponen jam: perbandingan selalu per tanggal."""
    if isinstance(value, datetime):
        return value.date()
    return value


def to_datetime(value: DateLike) -> datetime:
    """date -> datetime tengah malam (naive), format penyimpanan di MongoDB."""
    return datetime.combine(as_date(value), time.min)


def rental_days(start: DateLike, end: DateLike) -> int:
    """Jumlah hari sewa antara dua tanggal, minimal 1 hari."""
    return abs((as_date(end) - as_date(start)).days) or 1
