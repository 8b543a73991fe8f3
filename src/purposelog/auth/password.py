"""Password hashing.

Learn: bcrypt salts automatically and produces hashes starting with
"$2b$". The cost factor comes from Settings.bcrypt_rounds (10 by default,
4 in tests). Passwords are truncated to 72 bytes (bcrypt's limit).

bcrypt is deliberately slow, so PasswordHasher runs it in the threadpool:
the request awaits the hash instead of stalling the event loop for every
other in-flight request.
"""

import bcrypt
from starlette.concurrency import run_in_threadpool

from purposelog.errors import ValidationError

PASSWORD_MIN_LEN = 6


def hash_password(password: str, rounds: int) -> str:
    """Hash a password with bcrypt at the given cost factor."""
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash (constant-time in bcrypt)."""
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def check_password_length(password: str) -> None:
    if len(password) < PASSWORD_MIN_LEN:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LEN} characters"
        )


class PasswordHasher:
    """Async façade over bcrypt with a fixed cost factor."""

    def __init__(self, rounds: int):
        self.rounds = rounds

    async def hash(self, password: str) -> str:
        check_password_length(password)
        return await run_in_threadpool(hash_password, password, self.rounds)

    async def verify(self, password: str, password_hash: str) -> bool:
        return await run_in_threadpool(verify_password, password, password_hash)
