"""Authentication API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from api.core.config import Settings, get_settings
from api.core.dependencies import (
    AUTH_COOKIE,
    get_account_service,
    get_auth_service,
    get_current_identity,
)
from api.core.errors import http_error
from api.services import AccountService, AuthService
from shared.exceptions import SlotBoardError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


# ============================================
# Request / Response Models
# ============================================


class LoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str
    password: str
    confirm_password: str | None = None


class UserResponse(BaseModel):
    username: str


class LogoutResponse(BaseModel):
    message: str


# ============================================
# Helpers
# ============================================


def _set_session_cookie(
    response: Response, username: str, auth_service: AuthService, settings: Settings
) -> None:
    response.set_cookie(
        key=AUTH_COOKIE,
        value=auth_service.create_access_token(username),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="none" if settings.cookie_secure else "lax",
        max_age=settings.jwt_expire_days * 24 * 60 * 60,
    )


# ============================================
# Endpoints
# ============================================


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> UserResponse:
    """Create an account and log it in."""
    try:
        username = await accounts.register(body.username, body.password, body.confirm_password)
    except SlotBoardError as e:
        raise http_error(e) from None
    except Exception as e:
        logger.exception(f"Registration failed: {e}")
        raise HTTPException(status_code=500, detail="Registration failed") from None

    _set_session_cookie(response, username, auth_service, settings)
    return UserResponse(username=username)


@router.post("/login", response_model=UserResponse)
async def login(
    body: LoginRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> UserResponse:
    try:
        username = await accounts.authenticate(body.username, body.password)
    except SlotBoardError as e:
        raise http_error(e) from None
    except Exception as e:
        logger.exception(f"Login failed: {e}")
        raise HTTPException(status_code=500, detail="Login failed") from None

    _set_session_cookie(response, username, auth_service, settings)
    logger.info(f"{username} logged in")
    return UserResponse(username=username)


@router.post("/logout", response_model=LogoutResponse)
async def logout(response: Response) -> LogoutResponse:
    response.delete_cookie(AUTH_COOKIE)
    return LogoutResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def me(identity: str = Depends(get_current_identity)) -> UserResponse:
    return UserResponse(username=identity)
