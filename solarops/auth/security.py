import uuid
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.models import AppUser


http_bearer = HTTPBearer(auto_error=False)

ADMIN = "admin"
MANAGEMENT = "management"
PAYROLL_ROLES = (ADMIN, MANAGEMENT)


def decode_token(token: str) -> dict:
    """Tokens are issued by the hosted auth provider; we only verify them."""
    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience or None,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> AppUser:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    payload = decode_token(creds.credentials)
    try:
        user_uuid = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid subject")
    user = db.query(AppUser).filter(AppUser.id == user_uuid).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
    return user


def has_role(user: AppUser, *categories: str) -> bool:
    # Admin role bypass
    category = (user.role_category or "").lower()
    return category == ADMIN or category in categories


def require_roles(*categories: str):
    def _dep(user: AppUser = Depends(get_current_user)):
        if not has_role(user, *categories):
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return _dep
