# rental_app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status as fastapi_status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from rental_app.core.config import setup_logging, APP_TIMEZONE, OVERDUE_SWEEP_MINUTES
from rental_app.core.errors import RentalError
from rental_app.core.rate_limiter import limiter, rate_limit_exception_handler
from rental_app.middleware.logging import RequestLoggingMiddleware
from rental_app.middleware.authentication import AuthMiddleware
from rental_app.db.database import init_db, close_db
from rental_app.api.v1.api import api_router_v1
from rental_app.scheduler.jobs import mark_overdue_rentals

# --- Scheduler Instance ---
scheduler = AsyncIOScheduler(timezone=APP_TIMEZONE)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Application startup...")
    await init_db()
    logger.info("Database initialized.")

    # Sweep sekali saat startup, lalu berkala
    await mark_overdue_rentals()
    scheduler.add_job(
        mark_overdue_rentals,
        trigger=IntervalTrigger(minutes=OVERDUE_SWEEP_MINUTES),
        id="mark_overdue_rentals_job",
        name="Mark Overdue Rentals",
        replace_existing=True,
        misfire_grace_time=60 * OVERDUE_SWEEP_MINUTES,
    )
    scheduler.start()
    logger.info(f"Scheduler started with timezone: {scheduler.timezone}")
    yield
    logger.info("Application shutdown...")
    if scheduler.running:
        scheduler.shutdown()
    close_db()


app = FastAPI(
    title="Equipment Rental API",
    description="Penyewaan alat outdoor & kamera: katalog, transaksi sewa, pembayaran, promo, laporan.",
    version="1.0.0",
    lifespan=lifespan,
)

# --- Error handling ---
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)


@app.exception_handler(RentalError)
async def rental_error_handler(request: Request, exc: RentalError):
    logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    logger.error(f"Validation Error: {exc.errors()}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder({"detail": "Validation Error", "errors": exc.errors()}),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: Status={exc.status_code}, Detail={exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled Exception: {exc}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal server error occurred."},
    )


# --- Middleware (yang terakhir ditambahkan berjalan paling luar) ---
app.add_middleware(AuthMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiter state (untuk decorator @limiter.limit)
app.state.limiter = limiter

app.include_router(api_router_v1)


@app.get("/")
async def read_root():
    return {"message": "Welcome to the Equipment Rental API!"}


@app.get("/health")
async def health():
    return {"status": "ok"}
