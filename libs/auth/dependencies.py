from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser
from libs.common.config import get_settings

settings = get_settings()
security = HTTPBearer()


async def get_current_user(
    token: Annotated[HTTPAuthorizationCredentials, Depends(security)]
) -> AuthUser:
    """
    Validate the identity provider's JWT and return the authenticated user.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token.credentials,
            settings.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )
        # Marketplace claims ride in app_metadata
        app_metadata = payload.get("app_metadata") or {}
        payload.setdefault("account_type", app_metadata.get("account_type"))
        payload.setdefault("is_admin", bool(app_metadata.get("is_admin", False)))
        return AuthUser(**payload)

    except (JWTError, ValidationError):
        raise credentials_exception


async def require_admin(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """
    Ensure the user is a platform operator (admin claim or service role).
    """
    if not (current_user.is_admin or current_user.role == "service_role"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


async def require_brand(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Ensure the user acts as a brand."""
    if current_user.account_type != "brand":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Brand account required",
        )
    return current_user


async def require_service(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Machine-to-machine callers (e.g. a brand's store reporting sales)."""
    if current_user.role != "service_role":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service credentials required",
        )
    return current_user
