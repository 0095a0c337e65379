"""Account registration and login against user_credentials."""

from __future__ import annotations

import logging

from shared.exceptions import InvalidCredentials, UsernameTaken, ValidationError
from shared.repositories.credential import CredentialRepository
from shared.security import (
    burn_password_check,
    hash_password,
    needs_rehash,
    verify_password,
)

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


class AccountService:
    """Username/password accounts. Usernames are the slot-board identities."""

    def __init__(self, repo: CredentialRepository) -> None:
        self.repo = repo

    async def register(
        self, username: str, password: str, confirm_password: str | None = None
    ) -> str:
        """Create an account and return the normalized username."""
        name = (username or "").strip().lower()
        if len(name) < MIN_USERNAME_LENGTH:
            raise ValidationError(
                f"Username must be at least {MIN_USERNAME_LENGTH} characters long"
            )
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        if confirm_password is not None and confirm_password != password:
            raise ValidationError("Passwords do not match")

        created = await self.repo.create(name, hash_password(password))
        if created is None:
            raise UsernameTaken()
        logger.info(f"Registered account {name}")
        return created.username

    async def authenticate(self, username: str, password: str) -> str:
        """Return the normalized username, or raise InvalidCredentials."""
        name = (username or "").strip().lower()
        credential = await self.repo.get_by_username(name) if name else None
        if credential is None:
            verified = burn_password_check(password or "")
        else:
            verified = verify_password(password or "", credential.password_hash)
        if not verified:
            logger.info(f"Failed login for {name or '<empty>'}")
            raise InvalidCredentials()

        if needs_rehash(credential.password_hash):
            await self.repo.update_hash(name, hash_password(password))
        return credential.username
