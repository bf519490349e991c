import re

from fastapi import Depends, Header, HTTPException, Path

from core.errors import AuthError
from core.rate_limiter import rate_limiter
from core.sanitization import normalize_room_code

USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,64}$")


async def current_user(
    x_user_id: str | None = Header(default=None),
) -> str:
    if not x_user_id:
        raise AuthError("Not signed in")
    if not USER_ID_PATTERN.match(x_user_id):
        raise AuthError("Invalid user id")
    return x_user_id


async def room_code_param(code: str = Path(...)) -> str:
    return normalize_room_code(code)


async def rate_limited_user(user_id: str = Depends(current_user)) -> str:
    if not rate_limiter.is_allowed(user_id):
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(rate_limiter.retry_after(user_id))},
        )
    return user_id
