"""Authentication routes: register, login, current user."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from api.auth_deps import check_login_rate_limit, get_current_user
from api.deps import get_db
from core.auth import create_access_token, hash_password, verify_password
from core.config import get_settings
from core.logging_config import get_logger
from core.models import User, UserRole

router = APIRouter()
LOGGER = get_logger(__name__)
SETTINGS = get_settings()


# =============================================================================
# Request/Response Models
# =============================================================================


class RegisterRequest(BaseModel):
    """Registration request body."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=8, max_length=128, description="Password (min 8 chars)")
    first_name: Optional[str] = Field(default=None, max_length=100, alias="firstName")
    last_name: Optional[str] = Field(default=None, max_length=100, alias="lastName")

    model_config = {"populate_by_name": True}


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Public user information."""

    id: int
    email: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    role: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


def _user_payload(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
    }


def _token_payload(user: User) -> Dict[str, Any]:
    return {
        "access_token": create_access_token(user.id, user.email, user.role),
        "token_type": "bearer",
        "expires_in": SETTINGS.jwt_access_token_expire_minutes * 60,
        "user": _user_payload(user),
    }


# =============================================================================
# Routes
# =============================================================================


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Create an agent account and return an access token."""
    email = body.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    # The first account administers the workspace.
    role = UserRole.ADMIN.value if db.query(User.id).first() is None else UserRole.AGENT.value
    user = User(
        email=email,
        hashed_password=hash_password(body.password),
        first_name=body.first_name,
        last_name=body.last_name,
        role=role,
    )
    db.add(user)
    db.flush()

    LOGGER.info(f"User registered: {user.email}")
    return _token_payload(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Authenticate and return an access token.

    Rate limited to 5 attempts per minute per IP.
    """
    client_ip = request.client.host if request.client else "unknown"
    check_login_rate_limit(client_ip)

    user = db.query(User).filter(User.email == body.email.lower()).first()
    if not user or not verify_password(body.password, user.hashed_password):
        LOGGER.warning(f"Failed login attempt for: {body.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated",
        )

    LOGGER.info(f"User logged in: {user.email}")
    return _token_payload(user)


@router.get("/user", response_model=UserResponse)
async def get_user(current_user: User = Depends(get_current_user)) -> Dict[str, Any]:
    return _user_payload(current_user)
