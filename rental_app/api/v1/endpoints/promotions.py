# rental_app/api/v1/endpoints/promotions.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from bson import ObjectId
from loguru import logger
from datetime import datetime

from rental_app.core.security import get_current_active_user, require_admin
from rental_app.core.rate_limiter import limiter
from rental_app.core.rentals import validate_promo_code
from rental_app.core.utils import to_datetime, as_date
from rental_app.models.enum import DiscountType
from rental_app.models.promotion import Promotion
from rental_app.models.user import User

router = APIRouter(
    tags=["Promotions"]
)


def validate_promo_response(promo_doc: Promotion) -> Promotion.Response:
    promo_data = promo_doc.model_dump(mode="json")
    promo_data["id"] = str(promo_doc.id)
    return Promotion.Response.model_validate(promo_data)


async def get_promo_or_404(promo_id: str) -> Promotion:
    if not ObjectId.is_valid(promo_id):
        raise HTTPException(status_code=400, detail="Invalid promotion ID format.")
    promo = await Promotion.get(ObjectId(promo_id))
    if not promo:
        raise HTTPException(status_code=404, detail=f"Promotion with ID '{promo_id}' not found")
    return promo


# --- GET /validate --- (get/validate-promo)
@router.get("/validate", response_model=Promotion.Validation)
@limiter.limit("60/minute")
async def validate_promo(
    request: Request,
    code: str = Query(..., min_length=1),
    subtotal: int = Query(0, ge=0, description="Subtotal transaksi untuk menghitung diskon"),
    current_user: User = Depends(get_current_active_user)
):
    promo, discount = await validate_promo_code(code, subtotal)
    return Promotion.Validation(
        promo=validate_promo_response(promo),
        subtotal=subtotal,
        discount=discount,
        total_after_discount=subtotal - discount,
    )


@router.post("/", response_model=Promotion.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/hour")
async def create_promo(
    request: Request,
    promo_in: Promotion.Create = Body(...),
    current_admin: User = Depends(require_admin)
):
    if await Promotion.find_one(Promotion.code == promo_in.code):
        raise HTTPException(status_code=400, detail=f"Promo code '{promo_in.code}' already exists.")
    promo_data = promo_in.model_dump()
    promo_data["start_date"] = to_datetime(promo_in.start_date)
    promo_data["end_date"] = to_datetime(promo_in.end_date)
    if promo_in.discount_type == DiscountType.FIXED:
        promo_data["max_discount"] = None
    promo = Promotion(**promo_data)
    await promo.insert()
    logger.info(f"Promo '{promo.code}' created by '{current_admin.email}'.")
    return validate_promo_response(promo)


@router.get("/", response_model=List[Promotion.Response])
@limiter.limit("60/minute")
async def read_promos(
    request: Request,
    skip: int = 0,
    limit: int = 100,
    active_only: bool = Query(False),
    current_user: User = Depends(get_current_active_user)
):
    query_filters = {"is_active": True} if active_only else {}
    docs = await Promotion.find(query_filters, skip=skip, limit=limit).sort("-created_at").to_list()
    return [validate_promo_response(p) for p in docs]


@router.get("/{promo_id}", response_model=Promotion.Response, dependencies=[Depends(require_admin)])
async def read_promo(promo_id: str = Path(...)):
    return validate_promo_response(await get_promo_or_404(promo_id))


@router.put("/{promo_id}", response_model=Promotion.Response)
@limiter.limit("30/hour")
async def update_promo(
    request: Request,
    promo_id: str = Path(...),
    promo_in: Promotion.Update = Body(...),
    current_admin: User = Depends(require_admin)
):
    promo = await get_promo_or_404(promo_id)
    update_data = promo_in.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No update data provided.")
    for field in ("code", "name", "discount_type", "discount_value", "min_transaction", "start_date", "end_date", "is_active"):
        if field in update_data and update_data[field] is None:
            del update_data[field]

    if "code" in update_data and update_data["code"] != promo.code:
        if await Promotion.find_one(Promotion.code == update_data["code"], Promotion.id != promo.id):
            raise HTTPException(status_code=400, detail=f"Promo code '{update_data['code']}' already exists.")

    start = update_data.get("start_date", promo.start_date)
    end = update_data.get("end_date", promo.end_date)
    if as_date(end) < as_date(start):
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    discount_type = update_data.get("discount_type", promo.discount_type)
    discount_value = update_data.get("discount_value", promo.discount_value)
    if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
        raise HTTPException(status_code=400, detail="Percentage discount cannot exceed 100")

    for field in ("start_date", "end_date"):
        if field in update_data:
            update_data[field] = to_datetime(update_data[field])
    if "discount_type" in update_data:
        update_data["discount_type"] = update_data["discount_type"].value
    update_data["updated_at"] = datetime.now()
    await promo.update({"$set": update_data})
    logger.info(f"Promo '{promo.code}' updated by '{current_admin.email}'. Fields: {list(update_data.keys())}")
    return validate_promo_response(await Promotion.get(promo.id))


@router.patch("/{promo_id}/toggle", response_model=Promotion.Response)
async def toggle_promo(
    promo_id: str = Path(...),
    current_admin: User = Depends(require_admin)
):
    promo = await get_promo_or_404(promo_id)
    is_active = not promo.is_active
    await promo.update({"$set": {"is_active": is_active, "updated_at": datetime.now()}})
    logger.info(f"Promo '{promo.code}' {'activated' if is_active else 'deactivated'} by '{current_admin.email}'.")
    return validate_promo_response(await Promotion.get(promo.id))


@router.delete("/{promo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_promo(
    promo_id: str = Path(...),
    current_admin: User = Depends(require_admin)
):
    promo = await get_promo_or_404(promo_id)
    await promo.delete()
    logger.warning(f"Promo '{promo.code}' deleted by '{current_admin.email}'.")
