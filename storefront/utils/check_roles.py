# storefront/utils/check_roles.py
from fastapi import HTTPException
from typing import Callable
from functools import wraps

from storefront.core.permissions import capabilities_for


def require_permission(action: str):
    """Decorator to check the caller's capability set; expects user to be passed by route."""
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, _user, **kwargs):
            if _user is None:
                raise HTTPException(status_code=401, detail="User not authenticated")
            if not capabilities_for(_user).has_permission(action):
                raise HTTPException(status_code=403, detail="Permission denied")
            return await func(*args, _user=_user, **kwargs)
        return wrapper
    return decorator
