"""Credential store — user lookups and the refresh-token slot.

Learn: The stored session value is a SHA-256 digest of the refresh token,
the same way API keys are usually kept: a database leak does not hand
out live refresh tokens, and the comparison is constant-time. Matching
is still exact — any token other than the most recently issued one
fails.
"""

import hashlib
import hmac
import uuid
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from purposelog.db.models import User, normalize_identifier


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def store_refresh_token(user: User, token: Optional[str]) -> None:
    """Overwrite (or clear, with None) the user's single session slot."""
    user.refresh_token_digest = token_digest(token) if token else None


def refresh_token_matches(user: User, token: str) -> bool:
    if not user.refresh_token_digest:
        return False
    return hmac.compare_digest(user.refresh_token_digest, token_digest(token))


class UserStore:
    """Queries over the users table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.username == normalize_identifier(username))
        )
        return result.scalars().first()

    async def find_by_login(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[User]:
        """Match on whichever identifiers were supplied."""
        conditions = _identifier_conditions(username, email)
        if not conditions:
            return None
        result = await self.db.execute(select(User).where(or_(*conditions)))
        return result.scalars().first()

    async def find_conflict(
        self,
        username: Optional[str],
        email: Optional[str],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[User]:
        """Another user already holding this username or email, if any."""
        conditions = _identifier_conditions(username, email)
        if not conditions:
            return None
        q = select(User).where(or_(*conditions))
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        result = await self.db.execute(q)
        return result.scalars().first()


def _identifier_conditions(username: Optional[str], email: Optional[str]) -> list:
    conditions = []
    if username and username.strip():
        conditions.append(User.username == normalize_identifier(username))
    if email and email.strip():
        conditions.append(User.email == normalize_identifier(email))
    return conditions
