# rental_app/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Optional, List
import logging

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from rental_app.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from rental_app.models.enum import UserRole
from rental_app.models.user import User

logger = logging.getLogger(__name__)

# Konteks password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Return the email stored in ``sub`` or raise JWTError."""
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    email = payload.get("sub")
    if email is None:
        raise JWTError("Email ('sub') missing in token payload.")
    return email


async def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme)
) -> User:
    """
    Gets the current user from the request state (set by AuthMiddleware)
    or decodes the token if state is not available.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    email: Optional[str] = getattr(request.state, "email", None)
    if not email:
        logger.warning("Email not found in request state, attempting token decode in dependency.")
        try:
            email = decode_access_token(token)
        except JWTError:
            logger.warning("Token decode failed in get_current_user dependency.")
            raise credentials_exception

    user = await User.find_one(User.email == email)
    if user is None:
        logger.warning(f"User '{email}' not found in database.")
        raise credentials_exception
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """Checks if the retrieved user is active."""
    if current_user.disabled:
        logger.warning(f"Access denied for disabled user '{current_user.email}'.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")
    return current_user


def require_roles(required_roles: List[UserRole]):
    """
    Factory for a dependency that checks if the current user has one of the required roles.
    """
    async def roles_checker(current_user: User = Depends(get_current_active_user)):
        if current_user.role not in required_roles:
            logger.warning(
                f"Forbidden: User '{current_user.email}' with role '{current_user.role.value}' "
                f"attempted action requiring one of roles: {[r.value for r in required_roles]}."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Operation not permitted. Required roles: {[r.value for r in required_roles]}"
            )
        return current_user
    return roles_checker


def require_role(required_role: UserRole):
    return require_roles([required_role])


async def require_verified_member(
    current_user: User = Depends(require_role(UserRole.MEMBER))
) -> User:
    """Member yang sudah diverifikasi admin (boleh membuat transaksi)."""
    if not current_user.is_verified:
        logger.warning(f"Unverified member '{current_user.email}' attempted a verified-only action.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has not been verified by an admin yet."
        )
    return current_user


# Convenience dependencies for common roles
require_admin = require_role(UserRole.ADMIN)
require_gudang_or_admin = require_roles([UserRole.ADMIN, UserRole.GUDANG])
