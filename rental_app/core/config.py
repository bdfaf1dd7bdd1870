# rental_app/core/config.py
import os
import sys # Import sys untuk stderr
from dotenv import load_dotenv
from loguru import logger # Import logger Loguru
import logging
from pathlib import Path # Import Path

# Root proyek = dua level di atas rental_app/core
project_root = Path(__file__).resolve().parent.parent.parent
dotenv_path = project_root / '.env'

# --- Muat file .env JIKA ADA ---
if dotenv_path.is_file():
    logger.info(f"Loading environment variables from: {dotenv_path}")
    load_dotenv(dotenv_path=dotenv_path, override=False)
else:
    logger.debug(f".env file not found at {dotenv_path}. Relying on system environment variables.")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}. Using default: {default}.")
        return default


# --- Intercept Handler (untuk Loguru menangkap log standar) ---
class InterceptHandler(logging.Handler):
    """Handler untuk mencegat log standar Python dan mengarahkannya ke Loguru."""
    def emit(self, record: logging.LogRecord) -> None:
        try: level = logger.level(record.levelname).name
        except ValueError: level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging():
    """Konfigurasi Loguru untuk aplikasi."""
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    log_file_path = Path(os.getenv("LOG_FILE_PATH", "logs/app_{time:YYYY-MM-DD}.log"))
    log_rotation = os.getenv("LOG_ROTATION", "1 day")
    log_retention = os.getenv("LOG_RETENTION", "7 days")
    log_serialize = _env_bool("LOG_SERIALIZE", False)

    logger.remove() # Hapus handler default

    # Handler Console
    logger.add(sys.stderr, level=log_level_name, format=log_format, colorize=True)

    # Handler File
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file_path,
            level=log_level_name,
            format=log_format,
            rotation=log_rotation,
            retention=log_retention,
            serialize=log_serialize,
            enqueue=True,
            backtrace=True,
            diagnose=False,
            encoding="utf-8"
        )
        logger.info(f"File logging enabled at: {log_file_path}")
    except OSError as e:
        logger.error(f"Failed to setup file logging at {log_file_path}: {e}")

    # --- Intercept Log Standar ---
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith(("uvicorn", "fastapi", "starlette", "apscheduler")):
            existing_logger = logging.getLogger(name)
            existing_logger.handlers = [InterceptHandler()]
            existing_logger.propagate = False # Hindari duplikasi log

    logger.info(f"Loguru logging setup complete. Level: {log_level_name}")


# --- JWT Configuration ---
SECRET_KEY: str = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    logger.critical("FATAL: SECRET_KEY environment variable is not set.")
    raise ValueError("SECRET_KEY environment variable is not set.")

ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60)

# --- Database Configuration ---
MONGODB_URL: str = os.getenv("MONGODB_URL")
if not MONGODB_URL:
    logger.critical("FATAL: MONGODB_URL environment variable is not set.")
    raise ValueError("MONGODB_URL environment variable is not set.")

DATABASE_NAME: str = os.getenv("DATABASE_NAME", "rental_db")
# Transaksi MongoDB butuh replica set; matikan untuk server standalone (dev)
MONGO_USE_TRANSACTIONS: bool = _env_bool("MONGO_USE_TRANSACTIONS", True)
# Percobaan ulang untuk transaksi yang gagal karena write conflict (TransientTransactionError)
MONGO_TXN_MAX_ATTEMPTS: int = max(1, _env_int("MONGO_TXN_MAX_ATTEMPTS", 3))

# --- Aturan bisnis ---
APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "Asia/Jakarta")
OVERDUE_SWEEP_MINUTES: int = _env_int("OVERDUE_SWEEP_MINUTES", 15)
AUTO_APPROVE_MEMBERS: bool = _env_bool("AUTO_APPROVE_MEMBERS", False)
RESTORE_STOCK_ON_CANCEL: bool = _env_bool("RESTORE_STOCK_ON_CANCEL", False)
ENFORCE_PROMO_MIN_SPEND: bool = _env_bool("ENFORCE_PROMO_MIN_SPEND", False)

logger.debug(f"JWT Algorithm: {ALGORITHM}, token expiry: {ACCESS_TOKEN_EXPIRE_MINUTES} min")
logger.debug(f"Database Name: {DATABASE_NAME} (transactions: {MONGO_USE_TRANSACTIONS}, max attempts: {MONGO_TXN_MAX_ATTEMPTS})")
logger.debug(
    f"Timezone: {APP_TIMEZONE}, auto-approve members: {AUTO_APPROVE_MEMBERS}, "
    f"restore stock on cancel: {RESTORE_STOCK_ON_CANCEL}, promo min spend: {ENFORCE_PROMO_MIN_SPEND}"
)
