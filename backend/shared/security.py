"""Password hashing on top of werkzeug.security."""

from __future__ import annotations

from functools import lru_cache

from werkzeug.security import check_password_hash, generate_password_hash

# werkzeug method string: scrypt with n=2**15, r=8, p=1
PASSWORD_METHOD = "scrypt:32768:8:1"
SALT_LENGTH = 16


def hash_password(password: str) -> str:
    """Return ``scrypt:32768:8:1$<salt>$<digest>`` for ``password``."""
    return generate_password_hash(password, method=PASSWORD_METHOD, salt_length=SALT_LENGTH)


def verify_password(password: str, stored: str) -> bool:
    """Constant-time check of ``password`` against a stored hash.

    Anything werkzeug cannot parse (including legacy plaintext values) never
    verifies.
    """
    if not stored or "$" not in stored:
        return False
    try:
        return check_password_hash(stored, password)
    except ValueError:
        return False


def needs_rehash(stored: str) -> bool:
    """True when ``stored`` was not produced with the current method string."""
    method = (stored or "").split("$", 1)[0]
    return "$" not in (stored or "") or method != PASSWORD_METHOD


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("dummy-password-for-unknown-users")


def burn_password_check(password: str) -> bool:
    """Hash ``password`` against a throwaway hash; always False.

    Used for unknown usernames so a failed login costs the same either way.
    """
    verify_password(password, _dummy_hash())
    return False
