# rental_app/api/v1/endpoints/users.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from bson import ObjectId
from loguru import logger
from datetime import datetime

from rental_app.core.security import get_password_hash, require_admin
from rental_app.core.rate_limiter import limiter
from rental_app.models.enum import UserRole, VerificationStatus, TransactionStatus
from rental_app.models.transaction import Transaction
from rental_app.models.user import User

router = APIRouter(
    tags=["Users - Admin"],
    dependencies=[Depends(require_admin)]
)


async def get_user_or_404(user_id: str) -> User:
    if not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user ID format.")
    user = await User.find_one({"_id": ObjectId(user_id)})
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID '{user_id}' not found")
    return user


def validate_user_response(user_doc: User) -> User.Response:
    """Konversi ObjectId ke string dan validasi ke User.Response."""
    user_data = user_doc.model_dump(mode="json", exclude={"hashed_password"})
    user_data["id"] = str(user_doc.id)
    return User.Response.model_validate(user_data)


# --- GET / --- (List users)
@router.get("/", response_model=List[User.Response], summary="List Users (Admin Only)")
@limiter.limit("30/minute")
async def read_users(
    request: Request,
    skip: int = 0,
    limit: int = 100,
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    verification_status: Optional[VerificationStatus] = Query(None, description="Filter by verification status"),
    search: Optional[str] = Query(None, description="Case-insensitive match on name or email"),
):
    query_filters = {}
    if role:
        query_filters["role"] = role.value
    if verification_status:
        query_filters["verification_status"] = verification_status.value
    if search:
        query_filters["$or"] = [
            {"name": {"$regex": search, "$options": "i"}},
            {"email": {"$regex": search, "$options": "i"}},
        ]
    users_docs = await User.find(query_filters, skip=skip, limit=limit).sort("-created_at").to_list()
    return [validate_user_response(u) for u in users_docs]


# --- POST / --- (Create staff/admin/member)
@router.post("/", response_model=User.Response, status_code=status.HTTP_201_CREATED, summary="Create User (Admin Only)")
@limiter.limit("10/hour")
async def create_user_by_admin(
    request: Request,
    user_in: User.AdminCreate = Body(...),
):
    logger.info(f"Admin attempting to create user: {user_in.email} ({user_in.role.value})")
    if await User.find_one(User.email == user_in.email):
        raise HTTPException(status_code=400, detail="Email already registered.")
    user_obj = User(**user_in.model_dump(exclude={"password"}), hashed_password=get_password_hash(user_in.password))
    await user_obj.insert()
    return validate_user_response(user_obj)


# --- GET /{user_id} ---
@router.get("/{user_id}", response_model=User.Response, summary="Get User Details (Admin Only)")
@limiter.limit("60/minute")
async def read_user(
    request: Request,
    user_id: str = Path(..., description="The ID of the user to retrieve")
):
    user = await get_user_or_404(user_id)
    return validate_user_response(user)


# --- PUT /{user_id} ---
@router.put("/{user_id}", response_model=User.Response, summary="Update User (Admin Only)")
@limiter.limit("20/hour")
async def update_user(
    request: Request,
    user_id: str = Path(...),
    user_in: User.AdminUpdate = Body(...),
):
    """Update user details (name, email, phone, address, password, role, disabled)."""
    logger.info(f"Admin attempting to update user: {user_id}")
    user_to_update = await get_user_or_404(user_id)
    update_data = user_in.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No update data provided.")

    if update_data.get("email"):
        update_data["email"] = update_data["email"].lower()
        if update_data["email"] != user_to_update.email:
            if await User.find_one(User.email == update_data["email"], User.id != user_to_update.id):
                raise HTTPException(status_code=400, detail="Email already registered.")
    if "password" in update_data:
        password = update_data.pop("password")
        if password:
            update_data["hashed_password"] = get_password_hash(password)
    if "role" in update_data and update_data["role"] is not None:
        update_data["role"] = update_data["role"].value

    update_data["updated_at"] = datetime.now()
    await user_to_update.update({"$set": update_data})

    updated_user = await User.find_one({"_id": ObjectId(user_id)})
    if not updated_user:
        raise HTTPException(status_code=404, detail="User not found after update.")
    return validate_user_response(updated_user)


# --- PATCH /{user_id}/verification --- (Verifikasi member)
@router.patch("/{user_id}/verification", response_model=User.Response, summary="Verify Member (Admin Only)")
@limiter.limit("60/hour")
async def verify_user(
    request: Request,
    user_id: str = Path(...),
    verification_in: User.Verification = Body(...),
    current_admin: User = Depends(require_admin),
):
    """Setujui atau tolak akun member (berdasarkan data diri & foto KTP)."""
    user = await get_user_or_404(user_id)
    if user.role != UserRole.MEMBER:
        raise HTTPException(status_code=400, detail="Only member accounts need verification.")
    await user.update({"$set": {
        "verification_status": verification_in.status.value,
        "updated_at": datetime.now(),
    }})
    logger.info(f"Member '{user.email}' verification set to '{verification_in.status.value}' by '{current_admin.email}'.")
    return validate_user_response(await User.get(user.id))


async def _set_disabled(user_id: str, disabled: bool) -> dict:
    user = await get_user_or_404(user_id)
    if user.disabled != disabled:
        await user.update({"$set": {"disabled": disabled, "updated_at": datetime.now()}})
        logger.info(f"User '{user.email}' (ID: {user_id}) {'disabled' if disabled else 'enabled'}.")
    else:
        logger.info(f"User {user_id} already {'disabled' if disabled else 'enabled'}.")
    return {
        "message": f"User {'disabled' if disabled else 'enabled'} successfully",
        "user_id": user_id,
        "disabled": disabled,
    }


# --- PATCH /{user_id}/disable ---
@router.patch("/{user_id}/disable", status_code=status.HTTP_200_OK, summary="Disable User (Admin Only)")
@limiter.limit("30/hour")
async def disable_user(request: Request, user_id: str = Path(...)):
    return await _set_disabled(user_id, True)


# --- PATCH /{user_id}/enable ---
@router.patch("/{user_id}/enable", status_code=status.HTTP_200_OK, summary="Enable User (Admin Only)")
@limiter.limit("30/hour")
async def enable_user(request: Request, user_id: str = Path(...)):
    return await _set_disabled(user_id, False)


# --- DELETE /{user_id} ---
@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete User (Admin Only)")
@limiter.limit("5/hour")
async def delete_user(
    request: Request,
    user_id: str = Path(...),
    current_admin: User = Depends(require_admin)
):
    """Delete a user permanently. Users with open transactions cannot be deleted."""
    logger.warning(f"Admin '{current_admin.email}' attempting to delete user: {user_id}")
    user_to_delete = await get_user_or_404(user_id)
    if user_to_delete.id == current_admin.id:
        raise HTTPException(status_code=403, detail="Admins cannot delete themselves.")
    if user_to_delete.role == UserRole.ADMIN:
        admin_count = await User.find(User.role == UserRole.ADMIN).count()
        if admin_count <= 1:
            raise HTTPException(status_code=403, detail="Cannot delete the last admin.")
    open_count = await Transaction.find({
        "user_id": user_to_delete.id,
        "status": {"$nin": [TransactionStatus.COMPLETED.value, TransactionStatus.CANCELLED.value]},
    }).count()
    if open_count:
        raise HTTPException(status_code=400, detail=f"User still has {open_count} open transaction(s).")

    await user_to_delete.delete()
    logger.info(f"User '{user_to_delete.email}' (ID: {user_id}) deleted by admin '{current_admin.email}'.")
