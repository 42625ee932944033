"""Authentication dependencies for FastAPI routes."""
from __future__ import annotations

import time
from collections import defaultdict
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from api.deps import get_db
from core.auth import decode_access_token
from core.logging_config import get_logger, set_request_user
from core.models import User

LOGGER = get_logger(__name__)

security = HTTPBearer(auto_error=False)

# In-memory sliding window for login attempts, keyed by client IP
_login_attempts: dict[str, list[float]] = defaultdict(list)
LOGIN_RATE_LIMIT = 5
LOGIN_RATE_WINDOW = 60


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def check_login_rate_limit(client_ip: str) -> None:
    """Raise 429 if login attempts exceed the rate limit."""
    now = time.time()
    recent = [t for t in _login_attempts[client_ip] if now - t < LOGIN_RATE_WINDOW]
    _login_attempts[client_ip] = recent
    if len(recent) >= LOGIN_RATE_LIMIT:
        LOGGER.warning(f"Login rate limit hit for {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many login attempts. Try again in {LOGIN_RATE_WINDOW} seconds.",
        )
    recent.append(now)


def reset_login_attempts() -> None:
    _login_attempts.clear()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Validate the bearer token and return the calling user.

    Every failure mode is a 401 so clients can treat them uniformly:
    missing header, bad signature, expired token, unknown or inactive user.
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Invalid token subject")

    user = db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()
    if user is None:
        raise _unauthorized("User not found or inactive")

    set_request_user(user.id)
    return user


__all__ = ["get_current_user", "check_login_rate_limit", "reset_login_attempts", "security"]
