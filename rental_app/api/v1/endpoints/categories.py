# rental_app/api/v1/endpoints/categories.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Request
from bson import ObjectId
from loguru import logger
from datetime import datetime

from rental_app.core.security import require_admin, get_current_active_user
from rental_app.core.rate_limiter import limiter
from rental_app.models.category import Category
from rental_app.models.item import Item
from rental_app.models.user import User

router = APIRouter(
    tags=["Categories"]
)


async def get_category_or_404(category_id: str) -> Category:
    if not ObjectId.is_valid(category_id):
        raise HTTPException(status_code=400, detail="Invalid category ID format.")
    category = await Category.find_one({"_id": ObjectId(category_id)})
    if not category:
        raise HTTPException(status_code=404, detail=f"Category with ID '{category_id}' not found")
    return category


def validate_category_response(cat_doc: Category) -> Category.Response:
    cat_data = cat_doc.model_dump(mode="json")
    cat_data["id"] = str(cat_doc.id)
    return Category.Response.model_validate(cat_data)


@router.post(
    "/",
    response_model=Category.Response,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("20/hour")
async def create_category(
    request: Request,
    category_in: Category.Create = Body(...),
    current_user: User = Depends(require_admin)
):
    """Create a new category. Requires Admin role."""
    logger.info(f"User '{current_user.email}' attempting to create category: {category_in.name}")
    if await Category.find_one(Category.name == category_in.name):
        raise HTTPException(status_code=400, detail=f"Category name '{category_in.name}' already exists.")

    category_obj = Category(
        name=category_in.name,
        description=category_in.description,
        icon=category_in.icon or "package",
    )
    await category_obj.insert()
    return validate_category_response(category_obj)


# --- GET / --- (List all categories)
@router.get(
    "/",
    response_model=List[Category.Response],
    summary="List All Categories",
    dependencies=[Depends(get_current_active_user)]
)
@limiter.limit("60/minute")
async def read_categories(
    request: Request,
    skip: int = 0,
    limit: int = 100
):
    categories_docs = await Category.find_all(skip=skip, limit=limit).sort("+name").to_list()
    return [validate_category_response(c) for c in categories_docs]


# --- GET /{category_id} ---
@router.get(
    "/{category_id}",
    response_model=Category.Response,
    summary="Get Category Details",
    dependencies=[Depends(get_current_active_user)]
)
@limiter.limit("120/minute")
async def read_category(
    request: Request,
    category_id: str = Path(..., description="The ID of the category to retrieve")
):
    category = await get_category_or_404(category_id)
    return validate_category_response(category)


# --- PUT /{category_id} ---
@router.put(
    "/{category_id}",
    response_model=Category.Response,
    summary="Update Category (Admin)"
)
@limiter.limit("30/hour")
async def update_category(
    request: Request,
    category_id: str = Path(...),
    category_in: Category.Update = Body(...),
    current_user: User = Depends(require_admin)
):
    logger.info(f"User '{current_user.email}' attempting to update category: {category_id}")
    category_to_update = await get_category_or_404(category_id)
    update_data = category_in.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No update data provided.")

    if "name" in update_data and update_data["name"] != category_to_update.name:
        if await Category.find_one(Category.name == update_data["name"], Category.id != category_to_update.id):
            raise HTTPException(status_code=400, detail=f"Category name '{update_data['name']}' already exists.")

    update_data["updated_at"] = datetime.now()
    await category_to_update.update({"$set": update_data})

    updated_category = await Category.find_one({"_id": ObjectId(category_id)})
    if not updated_category:
        raise HTTPException(status_code=404, detail="Category not found after update.")
    return validate_category_response(updated_category)


# --- DELETE /{category_id} ---
@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Category (Admin)"
)
@limiter.limit("10/hour")
async def delete_category(
    request: Request,
    category_id: str = Path(...),
    current_user: User = Depends(require_admin)
):
    """Delete a category ONLY if it's not linked to any active items."""
    logger.warning(f"User '{current_user.email}' attempting to delete category: {category_id}")
    category_to_delete = await get_category_or_404(category_id)

    item_count = await Item.find(Item.category_id == category_to_delete.id, Item.is_active == True).count()  # noqa: E712
    if item_count > 0:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete category '{category_to_delete.name}' as it is linked to {item_count} active item(s)."
        )

    await category_to_delete.delete()
    logger.info(f"Category '{category_to_delete.name}' (ID: {category_id}) deleted by user '{current_user.email}'.")
    return None
