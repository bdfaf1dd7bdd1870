# rental_app/api/v1/api.py
from fastapi import APIRouter

from rental_app.api.v1.endpoints import (
    auth,
    users,
    categories,
    items,
    transactions,
    payments,
    promotions,
    reports,
)

api_router_v1 = APIRouter(prefix="/api/v1")

api_router_v1.include_router(auth.router, prefix="/auth")
api_router_v1.include_router(users.router, prefix="/users")
api_router_v1.include_router(categories.router, prefix="/categories")
api_router_v1.include_router(items.router, prefix="/items")
api_router_v1.include_router(transactions.router, prefix="/transactions")
api_router_v1.include_router(payments.router, prefix="/payments")
api_router_v1.include_router(promotions.router, prefix="/promotions")
api_router_v1.include_router(reports.router)
api_router_v1.include_router(reports.public_router)
