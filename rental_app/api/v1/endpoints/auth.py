# rental_app/api/v1/endpoints/auth.py
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, status, Request, Body
from fastapi.security import OAuth2PasswordRequestForm
from loguru import logger

from rental_app.core.security import (
    create_access_token,
    verify_password,
    get_current_active_user,
    get_password_hash,
)
from rental_app.core.config import ACCESS_TOKEN_EXPIRE_MINUTES, AUTO_APPROVE_MEMBERS
from rental_app.core.rate_limiter import limiter
from rental_app.models.enum import UserRole, VerificationStatus
from rental_app.models.token import Token
from rental_app.models.user import User
from rental_app.api.v1.endpoints.users import validate_user_response

router = APIRouter(
    tags=["Authentication"]
)


# --- Endpoint /token ---
@router.post("/token", response_model=Token)
@limiter.limit("10/minute")
async def login_for_access_token(request: Request, form_data: OAuth2PasswordRequestForm = Depends()):
    """Login dengan email (field `username` di form OAuth2) dan password."""
    email = form_data.username.strip().lower()
    user = await User.find_one(User.email == email)
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Failed login attempt for '{email}'.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.disabled:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")
    if user.verification_status == VerificationStatus.PENDING:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is awaiting admin verification")
    if user.verification_status == VerificationStatus.REJECTED:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account verification was rejected")

    access_token = create_access_token(
        data={"sub": user.email, "role": user.role.value},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    logger.info(f"User '{user.email}' logged in (role: {user.role.value}).")
    return {"access_token": access_token, "token_type": "bearer"}


# --- Endpoint /register ---
@router.post("/register", response_model=User.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register_member(request: Request, user_in: User.Register = Body(...)):
    """Registrasi member baru. Status verifikasi `pending` sampai disetujui admin."""
    if await User.find_one(User.email == user_in.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user_obj = User(
        **user_in.model_dump(exclude={"password"}),
        hashed_password=get_password_hash(user_in.password),
        role=UserRole.MEMBER,
        verification_status=VerificationStatus.APPROVED if AUTO_APPROVE_MEMBERS else VerificationStatus.PENDING,
    )
    await user_obj.insert()
    logger.info(f"Member '{user_obj.email}' registered (verification: {user_obj.verification_status.value}).")
    return validate_user_response(user_obj)


# --- Endpoint /me ---
@router.get("/me", response_model=User.Response)
async def read_current_user(current_user: User = Depends(get_current_active_user)):
    return validate_user_response(current_user)


# --- Endpoint /me/password ---
@router.put("/me/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_own_password(
    data: User.PasswordChange = Body(...),
    current_user: User = Depends(get_current_active_user)
):
    """Ganti password akun sendiri (butuh login dan password lama)."""
    if not verify_password(data.current_password, current_user.hashed_password):
        logger.warning(f"Password change rejected for '{current_user.email}': wrong current password.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    current_user.hashed_password = get_password_hash(data.new_password)
    current_user.updated_at = datetime.now()
    await current_user.save()
    logger.info(f"User '{current_user.email}' changed their password.")
