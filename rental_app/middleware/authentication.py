# rental_app/middleware/authentication.py
from typing import Optional, Set, Callable, Awaitable

from fastapi import Request, status
from fastapi.security.utils import get_authorization_scheme_param
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp
from loguru import logger
from jose import JWTError

from rental_app.core.security import decode_access_token


# Daftar path yang TIDAK memerlukan autentikasi
PUBLIC_PATHS: Set[str] = {
    "/",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/health",
    "/api/v1/auth/token",
    "/api/v1/auth/register",
    "/api/v1/stats/public",
}


def is_public_path(path: str) -> bool:
    """Checks if the given path matches or starts with any public path prefix."""
    if path in PUBLIC_PATHS:
        return True
    if path.startswith("/docs") or path.startswith("/redoc"):
        return True
    return False


class AuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        request_id = getattr(request.state, "request_id", "N/A")

        # Preflight CORS tidak membawa header Authorization
        if request.method == "OPTIONS" or is_public_path(path):
            logger.debug(f"RID:{request_id} Public path accessed: {path}. Skipping auth.")
            return await call_next(request)

        authorization: Optional[str] = request.headers.get("Authorization")
        scheme, token = get_authorization_scheme_param(authorization or "")
        if not authorization or scheme.lower() != "bearer" or not token:
            logger.warning(f"RID:{request_id} Auth failed: No valid Bearer token for protected path {path}.")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Not authenticated"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            email = decode_access_token(token)
        except JWTError as e:
            logger.warning(f"RID:{request_id} Auth failed: Invalid token for path {path}. Error: {e}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": f"Invalid token: {str(e)}"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        # Set email di state untuk dependensi nanti
        request.state.email = email
        logger.debug(f"RID:{request_id} Auth successful for user '{email}' accessing protected path {path}.")
        return await call_next(request)
