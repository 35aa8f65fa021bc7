"""
Authentication Utility - JWT, cookie and password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification
- Setting/clearing the session cookie
- FastAPI dependencies for protected and role-gated routes

The token is read from the `jwt` cookie first, then from an
`Authorization: Bearer` header.
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import get_settings
from app.services.mongo_service import UserService, to_object_id

settings = get_settings()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

# Bearer token extractor (optional - the cookie is the primary carrier)
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.jwt_expire_days))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def set_auth_cookie(response: Response, user_id: str) -> str:
    """Issue a token for the user and store it in the session cookie."""
    token = create_access_token(data={"userId": user_id})
    response.set_cookie(
        key=settings.jwt_cookie_name,
        value=token,
        max_age=settings.jwt_expire_days * 24 * 60 * 60,
        **settings.cookie_settings
    )
    return token


def clear_auth_cookie(response: Response):
    """Clear the cookie with the same attributes used to set it."""
    response.delete_cookie(key=settings.jwt_cookie_name, **settings.cookie_settings)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user

    Returns the raw user document (without the password hash).
    """
    token = request.cookies.get(settings.jwt_cookie_name)
    if not token and credentials:
        token = credentials.credentials
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - No token provided",
        )

    payload = decode_token(token)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized - Invalid token")

    user_id = to_object_id(payload.get("userId"))
    user = UserService().get_by_id(user_id) if user_id else None
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized - User not found")

    return user


def require_roles(*roles: str):
    """
    Dependency factory - Require one of the given roles.

    Usage:
        @router.post("/create")
        async def route(user: dict = Depends(require_roles("faculty"))):
            ...
    """

    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "detail": "Forbidden - Insufficient permissions",
                    "requiredRoles": list(roles),
                    "userRole": user.get("role"),
                },
            )
        return user

    return dependency
