"""Dependency injection utilities for FastAPI"""

import logging

import asyncpg
from fastapi import Cookie, Depends, HTTPException

from api.core.config import get_settings
from api.core.database import get_database_manager
from api.services import AccountService, AuthService, SlotService
from shared.repositories import AccessRuleRepository, CredentialRepository, SlotRepository
from shared.slot_engine import AccessPolicy, SlotEngine

logger = logging.getLogger(__name__)

AUTH_COOKIE = "auth_token"


# ============================================
# Service Dependencies
# ============================================


def get_auth_service() -> AuthService:
    settings = get_settings()
    return AuthService(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expire_days=settings.jwt_expire_days,
    )


def get_db_pool() -> asyncpg.Pool:
    db_manager = get_database_manager()
    if not db_manager.is_connected:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db_manager.pool


async def get_slot_service(pool: asyncpg.Pool = Depends(get_db_pool)) -> SlotService:
    """SlotService wired with the current access rules and slot features"""
    settings = get_settings()
    try:
        rules = await AccessRuleRepository(pool, timeout=settings.store_timeout).list_rules()
    except Exception as e:
        logger.exception(f"Failed to load access rules: {e}")
        raise HTTPException(status_code=503, detail="Access rules unavailable") from None

    engine = SlotEngine(
        features=settings.slot_features,
        policy=AccessPolicy.from_rules(rules),
        tz=settings.tz,
    )
    return SlotService(
        SlotRepository(pool, timeout=settings.store_timeout),
        engine,
        tz=settings.tz,
        retries=settings.optimistic_retries,
    )


def get_account_service(pool: asyncpg.Pool = Depends(get_db_pool)) -> AccountService:
    return AccountService(CredentialRepository(pool, timeout=get_settings().store_timeout))


# ============================================
# Authentication Dependencies
# ============================================


async def get_current_identity(auth_token: str | None = Cookie(None)) -> str:
    """Return the acting identity (JWT subject) for slot operations"""
    if not auth_token:
        raise HTTPException(status_code=401, detail="Not logged in")

    payload = get_auth_service().verify_token(auth_token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return str(payload["sub"])
