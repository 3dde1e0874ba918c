# storefront/utils/get_user.py
from fastapi import Request, Depends, HTTPException, Header
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from storefront.models.user_models import User
from storefront.core.db import get_db
from storefront.core.security import decode_token


def _extract_token(token: str | None, authorization: str | None) -> str | None:
    # Support either header
    if token:
        return token
    if authorization and authorization.startswith("Bearer "):
        return authorization.split("Bearer ")[1]
    return None


async def _load_user(db: AsyncSession, raw_token: str) -> User:
    try:
        payload = decode_token(raw_token)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e))

    username = payload.get("sub")
    token_version = payload.get("token_version")
    if not username or token_version is None:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    result = await db.execute(select(User).where(User.username == username))
    user = result.scalars().first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if user.token_version != token_version:
        raise HTTPException(status_code=401, detail="Token invalidated. Please log in again.")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User account is inactive.")
    return user


async def get_current_user(
    request: Request,
    token: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    raw_token = _extract_token(token, authorization)
    if not raw_token:
        raise HTTPException(status_code=401, detail="Missing access token")

    user = await _load_user(db, raw_token)
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    token: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Checkout accepts guests; a token, when present, must still be valid."""
    raw_token = _extract_token(token, authorization)
    if not raw_token:
        return None
    user = await _load_user(db, raw_token)
    request.state.user = user
    return user
