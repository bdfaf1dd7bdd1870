# rental_app/db/database.py
from typing import Awaitable, Callable, Optional, TypeVar
import logging

import motor.motor_asyncio
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo.errors import PyMongoError

from rental_app.core.config import MONGODB_URL, DATABASE_NAME, MONGO_USE_TRANSACTIONS, MONGO_TXN_MAX_ATTEMPTS
from rental_app.models.user import User
from rental_app.models.category import Category
from rental_app.models.item import Item
from rental_app.models.transaction import Transaction
from rental_app.models.payment import Payment
from rental_app.models.promotion import Promotion
from rental_app.models.counter import SequenceCounter

logger = logging.getLogger(__name__)

T = TypeVar("T")

DOCUMENT_MODELS = [User, Category, Item, Transaction, Payment, Promotion, SequenceCounter]

_client: Optional[motor.motor_asyncio.AsyncIOMotorClient] = None


async def init_db():
    """Inisialisasi koneksi database dan Beanie."""
    global _client
    logger.info("Connecting to MongoDB...")
    _client = motor.motor_asyncio.AsyncIOMotorClient(MONGODB_URL)
    database = _client[DATABASE_NAME]
    logger.info(f"Using database: {DATABASE_NAME}")

    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    logger.info("Beanie initialization complete for all models.")


def close_db():
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB connection closed.")


async def run_in_transaction(
    callback: Callable[[Optional[AsyncIOMotorClientSession]], Awaitable[T]],
    max_attempts: Optional[int] = None,
) -> T:
    """
    Jalankan ``callback(session)`` dalam satu transaksi MongoDB: semua write yang
    memakai session ini di-commit bersama atau di-rollback bersama (butuh replica set).

    Jika server membatalkan transaksi dengan label TransientTransactionError
    (mis. WriteConflict pada counter kode transaksi), callback diulang dari awal
    dengan session baru, maksimal ``MONGO_TXN_MAX_ATTEMPTS`` kali.
    Dengan MONGO_USE_TRANSACTIONS=false callback menerima None (standalone server, tanpa atomisitas).
    """
    if not MONGO_USE_TRANSACTIONS:
        return await callback(None)
    if _client is None:
        raise RuntimeError("Database is not initialized; call init_db() first.")

    max_attempts = max_attempts or MONGO_TXN_MAX_ATTEMPTS
    attempt = 1
    while True:
        async with await _client.start_session() as session:
            try:
                async with session.start_transaction():
                    return await callback(session)
            except PyMongoError as e:
                if attempt >= max_attempts or not e.has_error_label("TransientTransactionError"):
                    raise
                logger.warning(f"Transient transaction error (attempt {attempt}/{max_attempts}), retrying: {e}")
                attempt += 1
