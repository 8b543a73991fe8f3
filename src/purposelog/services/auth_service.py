"""Auth service — registration, login, refresh rotation, logout.

Learn: This is the session state machine for a user:

    Anonymous → Authenticated → Authenticated(rotated) … → LoggedOut

Every transition into Authenticated goes through _start_session(), which
mints a fresh access/refresh pair and OVERWRITES the stored refresh
token. There is exactly one slot per user, so:
- a second login (another device) silently invalidates the first
  device's refresh token
- refreshing with token R succeeds once; replaying R afterwards fails,
  because the slot now holds R'

Concurrent logins for the same user race on that slot; the database's
last write wins and no lock is taken.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from purposelog.auth.jwt import TokenError, TokenIssuer
from purposelog.auth.password import PasswordHasher, check_password_length
from purposelog.config import Settings
from purposelog.db.models import User
from purposelog.errors import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from purposelog.services.user_store import (
    UserStore,
    refresh_token_matches,
    store_refresh_token,
)
from purposelog.storage import AvatarStorage, StorageError
from purposelog.storage.uploads import upload_avatar

logger = structlog.get_logger()


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Session:
    user: User
    tokens: TokenPair


def _blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


class AuthService:
    """Credential verification and token issuance/rotation."""

    def __init__(
        self,
        db: AsyncSession,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        storage: AvatarStorage,
        settings: Settings,
    ):
        self.db = db
        self.users = UserStore(db)
        self.hasher = hasher
        self.issuer = issuer
        self.storage = storage
        self.settings = settings

    # ─── Register ────────────────────────────────────────

    async def register(
        self,
        full_name: Optional[str],
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
        avatar: Optional[UploadFile],
    ) -> Session:
        """Create an account and log it in.

        Learn: The avatar is pushed to storage BEFORE the row is created.
        If the upload fails nothing is written — there is never a user
        without a valid avatar.
        """
        if any(_blank(v) for v in (full_name, username, email, password)):
            raise ValidationError("All fields are required")
        if avatar is None or not avatar.filename:
            raise ValidationError("Avatar is required")
        check_password_length(password)

        if await self.users.find_conflict(username, email):
            raise ConflictError()

        asset = await upload_avatar(self.storage, avatar, self.settings.upload_dir)

        user = User(
            full_name=full_name,
            username=username,
            email=email,
            password_hash=await self.hasher.hash(password),
            avatar_url=asset.url,
            avatar_storage_key=asset.storage_key,
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same name
            await self.db.rollback()
            await self._discard_asset(asset.storage_key)
            raise ConflictError()

        tokens = self._start_session(user)
        await self.db.commit()

        logger.info("auth.registered", user_id=str(user.id), username=user.username)
        return Session(user=user, tokens=tokens)

    # ─── Login ───────────────────────────────────────────

    async def login(
        self,
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> Session:
        if _blank(username) and _blank(email):
            raise ValidationError("Username or Email is required")
        if _blank(password):
            raise ValidationError("Password is required")

        user = await self.users.find_by_login(username, email)
        if user is None:
            raise NotFoundError("User not found")

        if not await self.hasher.verify(password, user.password_hash):
            logger.info("auth.login_failed", user_id=str(user.id))
            raise InvalidCredentialsError()

        tokens = self._start_session(user)
        await self.db.commit()

        logger.info("auth.login", user_id=str(user.id))
        return Session(user=user, tokens=tokens)

    # ─── Refresh ─────────────────────────────────────────

    async def refresh(self, refresh_token: Optional[str]) -> Session:
        """Exchange the current refresh token for a new pair (rotation-on-use).

        Every failure below surfaces as the same UnauthorizedError — the
        caller can't tell a bad signature from an expired token from a
        rotated-out one.
        """
        if not refresh_token:
            raise UnauthorizedError("Unauthorized request. Token missing")

        try:
            payload = self.issuer.verify_refresh_token(refresh_token)
            user_id = uuid.UUID(payload["sub"])
        except (TokenError, ValueError) as e:
            logger.info("auth.refresh_rejected", reason=str(e))
            raise UnauthorizedError()

        user = await self.users.get(user_id)
        if user is None:
            logger.info("auth.refresh_rejected", reason="unknown user")
            raise UnauthorizedError()
        if not refresh_token_matches(user, refresh_token):
            logger.warning("auth.refresh_reuse", user_id=str(user.id))
            raise UnauthorizedError()

        tokens = self._start_session(user)
        await self.db.commit()

        logger.info("auth.refreshed", user_id=str(user.id))
        return Session(user=user, tokens=tokens)

    # ─── Logout ──────────────────────────────────────────

    async def logout(self, user: User) -> None:
        store_refresh_token(user, None)
        await self.db.commit()
        logger.info("auth.logout", user_id=str(user.id))

    # ─── Internals ───────────────────────────────────────

    def _start_session(self, user: User) -> TokenPair:
        """Mint a pair and claim the user's single refresh slot (not committed)."""
        access_token = self.issuer.issue_access_token(str(user.id))
        refresh_token = self.issuer.issue_refresh_token(str(user.id))
        store_refresh_token(user, refresh_token)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def _discard_asset(self, storage_key: str) -> None:
        try:
            await self.storage.delete(storage_key)
        except StorageError as e:
            logger.warning(
                "auth.avatar_cleanup_failed", storage_key=storage_key, error=str(e)
            )
