# rental_app/api/v1/endpoints/items.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from bson import ObjectId
from loguru import logger
from datetime import datetime

from rental_app.core.security import require_admin, require_gudang_or_admin, get_current_active_user
from rental_app.core.rate_limiter import limiter
from rental_app.core.rentals import adjust_item_stock, set_item_status
from rental_app.core.utils import get_next_sequence_value, item_code_prefix, format_item_code
from rental_app.models.enum import ItemStatus
from rental_app.models.item import Item
from rental_app.models.user import User
from rental_app.api.v1.endpoints.categories import get_category_or_404

router = APIRouter(
    tags=["Items"]
)


async def get_item_or_404(item_id: str) -> Item:
    """Retrieves an ACTIVE item by its string ObjectId."""
    if not ObjectId.is_valid(item_id):
        logger.warning(f"Invalid ObjectId format for item: {item_id}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid item ID format.")
    item = await Item.find_one({"_id": ObjectId(item_id), "is_active": True})
    if not item:
        logger.info(f"Active item lookup failed for ID '{item_id}'.")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Active item with ID '{item_id}' not found."
        )
    return item


def validate_item_response(item_doc: Item) -> Item.Response:
    item_data = item_doc.model_dump(mode="json")
    item_data["id"] = str(item_doc.id)
    return Item.Response.model_validate(item_data)


async def generate_item_code(category_name: str) -> str:
    """Kode barang: 3 huruf awal kategori + nomor urut per prefix, mis. KAM-007."""
    prefix = item_code_prefix(category_name)
    for _ in range(5):
        seq = await get_next_sequence_value(f"item_code_{prefix}")
        code = format_item_code(prefix, seq)
        if not await Item.find_one(Item.code == code):
            return code
        logger.warning(f"Generated item code {code} already in use, retrying.")
    raise HTTPException(status_code=500, detail="Failed to generate a unique item code.")


# --- POST /items/ ---
@router.post("/", response_model=Item.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("60/hour")
async def create_item(
    request: Request,
    item_in: Item.Create = Body(...),
    current_user: User = Depends(require_admin)
):
    """Create a rentable item. The code is generated from the category when omitted."""
    category_obj = await get_category_or_404(item_in.category_id)

    if item_in.code:
        code = item_in.code.strip().upper()
        if await Item.find_one(Item.code == code):
            raise HTTPException(status_code=400, detail=f"Item code '{code}' already exists.")
    else:
        code = await generate_item_code(category_obj.name)

    item_obj = Item(
        **item_in.model_dump(exclude={"code", "category_id", "initial_stock"}),
        code=code,
        category_id=category_obj.id,
        stock=item_in.initial_stock,
        status=ItemStatus.AVAILABLE,
        is_active=True,
    )
    await item_obj.insert()
    logger.info(f"Item '{item_obj.name}' ({item_obj.code}) created by '{current_user.email}' with stock {item_obj.stock}.")
    return validate_item_response(item_obj)


# --- GET /items/ ---
@router.get(
    "/",
    response_model=List[Item.Response],
    dependencies=[Depends(get_current_active_user)]
)
@limiter.limit("120/minute")
async def read_items(
    request: Request,
    skip: int = 0,
    limit: int = 100,
    name: Optional[str] = Query(None, description="Filter by item name (case-insensitive partial match)"),
    category_id: Optional[str] = Query(None, description="Filter by Category ID"),
    item_status: Optional[ItemStatus] = Query(None, alias="status", description="Filter by item status"),
    available_only: bool = Query(False, description="Only items that can be rented now (tersedia, stock > 0)"),
    include_inactive: bool = Query(False, description="Include soft-deleted items"),
):
    query_filters = {}
    if not include_inactive:
        query_filters["is_active"] = True
    if name:
        query_filters["name"] = {"$regex": name, "$options": "i"}
    if category_id:
        if not ObjectId.is_valid(category_id):
            raise HTTPException(status_code=400, detail="Invalid category_id format.")
        query_filters["category_id"] = ObjectId(category_id)
    if item_status:
        query_filters["status"] = item_status.value
    if available_only:
        query_filters["status"] = ItemStatus.AVAILABLE.value
        query_filters["stock"] = {"$gt": 0}

    items_docs = await Item.find(query_filters, skip=skip, limit=limit).sort("+name").to_list()
    return [validate_item_response(i) for i in items_docs]


# --- GET /items/{item_id} ---
@router.get(
    "/{item_id}",
    response_model=Item.Response,
    dependencies=[Depends(get_current_active_user)]
)
async def read_item(item_id: str = Path(..., description="The ID of the item to retrieve")):
    item = await get_item_or_404(item_id)
    return validate_item_response(item)


# --- PUT /items/{item_id} ---
@router.put("/{item_id}", response_model=Item.Response)
@limiter.limit("60/hour")
async def update_item(
    request: Request,
    item_id: str = Path(..., description="The ID of the item to update"),
    item_in: Item.Update = Body(...),
    current_user: User = Depends(require_admin)
):
    """Update item details. Stock is NOT updated here; use the stock endpoint."""
    item_to_update = await get_item_or_404(item_id)
    update_data = item_in.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No update data provided.")

    if "category_id" in update_data:
        new_category_id = update_data.pop("category_id")
        if new_category_id:
            update_data["category_id"] = (await get_category_or_404(new_category_id)).id
        else:
            logger.warning(f"Received empty category_id for item update {item_id}. Category not changed.")
    for field in ("price_per_day", "late_fee_per_day", "name", "is_active"):
        # null eksplisit tidak boleh menghapus field wajib
        if field in update_data and update_data[field] is None:
            del update_data[field]

    update_data["updated_at"] = datetime.now()
    await item_to_update.update({"$set": update_data})
    logger.info(f"Item '{item_to_update.name}' (ID: {item_id}) updated by '{current_user.email}'. Fields: {list(update_data.keys())}")

    updated_item = await Item.find_one({"_id": ObjectId(item_id)})
    if not updated_item:
        raise HTTPException(status_code=404, detail="Item not found after update.")
    return validate_item_response(updated_item)


# --- PATCH /items/{item_id}/stock --- (adjust-stock)
@router.patch("/{item_id}/stock", response_model=Item.StockAdjustResult)
@limiter.limit("120/hour")
async def adjust_stock(
    request: Request,
    item_id: str = Path(...),
    adjust_in: Item.StockAdjust = Body(...),
    current_user: User = Depends(require_gudang_or_admin)
):
    """Tambah/kurangi stok. Pengurangan melebihi stok di-clamp ke 0 dan dilaporkan sebagai `shortfall`."""
    logger.info(f"User '{current_user.email}' adjusting stock of item {item_id}: {adjust_in.action.value} {adjust_in.qty}")
    item, change = await adjust_item_stock(item_id, adjust_in.action, adjust_in.qty)
    return Item.StockAdjustResult(
        item=validate_item_response(item),
        action=change.action,
        qty=change.qty,
        previous_stock=change.previous_stock,
        new_stock=change.new_stock,
        shortfall=change.shortfall,
    )


# --- PATCH /items/{item_id}/status --- (maintenance / perbaikan selesai)
@router.patch("/{item_id}/status", response_model=Item.Response)
@limiter.limit("120/hour")
async def update_item_status(
    request: Request,
    item_id: str = Path(...),
    status_in: Item.StatusUpdate = Body(...),
    current_user: User = Depends(require_gudang_or_admin)
):
    logger.info(f"User '{current_user.email}' setting status of item {item_id} to '{status_in.status.value}'")
    item = await set_item_status(item_id, status_in.status)
    return validate_item_response(item)


# --- DELETE /items/{item_id} --- (soft delete)
@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: str = Path(..., description="The ID of the item to mark as inactive"),
    current_user: User = Depends(require_admin)
):
    """Mark an item as inactive. Idempotent: an already inactive item is left as is."""
    if not ObjectId.is_valid(item_id):
        raise HTTPException(status_code=400, detail="Invalid item ID format.")
    item_to_inactivate = await Item.find_one({"_id": ObjectId(item_id)})
    if not item_to_inactivate:
        raise HTTPException(status_code=404, detail=f"Item with ID '{item_id}' not found.")

    if item_to_inactivate.is_active:
        item_to_inactivate.is_active = False
        item_to_inactivate.updated_at = datetime.now()
        await item_to_inactivate.save()
        logger.info(f"Item '{item_to_inactivate.name}' (ID: {item_id}) marked as inactive by user '{current_user.email}'.")
    else:
        logger.info(f"Item '{item_id}' is already inactive. No action taken.")
