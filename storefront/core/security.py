# storefront/core/security.py
from typing import Dict
from jose import jwt, JWTError
from storefront.core.config import JWT_SECRET, JWT_ALGORITHM


def decode_token(token: str) -> Dict:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise ValueError("Invalid or expired token")
    if payload.get("type", "access") != "access":
        raise ValueError("Not an access token")
    return payload
