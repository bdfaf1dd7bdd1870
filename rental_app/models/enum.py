# rental_app/models/enum.py
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    GUDANG = "gudang"   # petugas gudang / warehouse
    MEMBER = "member"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransactionStatus(str, Enum):
    AWAITING_PAYMENT = "menunggu_pembayaran"        # <-- Status awal setelah checkout
    AWAITING_CONFIRMATION = "menunggu_konfirmasi"   # <-- Sudah bayar, menunggu serah terima
    BEING_RENTED = "sedang_disewa"
    AWAITING_RETURN = "menunggu_pengembalian"
    COMPLETED = "selesai"
    CANCELLED = "dibatalkan"


class ItemStatus(str, Enum):
    AVAILABLE = "tersedia"
    RENTED = "disewa"
    MAINTENANCE = "maintenance"
    DAMAGED = "rusak"


class ReturnCondition(str, Enum):
    GOOD = "baik"
    LIGHT_DAMAGE = "rusak_ringan"
    HEAVY_DAMAGE = "rusak_berat"


class StockAction(str, Enum):
    DECREASE = "decrease"
    INCREASE = "increase"


class DiscountType(str, Enum):
    PERCENTAGE = "persentase"
    FIXED = "nominal"


class PaymentKind(str, Enum):
    DOWN_PAYMENT = "dp"
    SETTLEMENT = "pelunasan"
    LATE_FEE = "denda"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
