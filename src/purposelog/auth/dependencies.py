"""FastAPI auth dependencies.

Learn: get_current_user is attached at include_router level in
purposelog.api, so every protected route runs it before the handler.
It drives AccessGate, an explicit three-stage pipeline:

    extract (cookie) → verify (signature, expiry) → resolve (user row)

Each stage either hands its product to the next or raises
UnauthorizedError, which short-circuits the request before any business
logic executes. Access tokens are NOT checked against stored session
state: a valid signature inside the 15-minute window is enough.
"""

import uuid

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from purposelog.auth.cookies import ACCESS_COOKIE
from purposelog.auth.jwt import TokenError, TokenIssuer
from purposelog.auth.password import PasswordHasher
from purposelog.config import Settings, get_settings
from purposelog.db.engine import get_db
from purposelog.db.models import User
from purposelog.errors import UnauthorizedError

logger = structlog.get_logger()


def get_token_issuer(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    return TokenIssuer(settings)


def get_password_hasher(
    settings: Settings = Depends(get_settings),
) -> PasswordHasher:
    return PasswordHasher(settings.bcrypt_rounds)


class AccessGate:
    """Resolves the access-token cookie on a request to a User."""

    def __init__(self, issuer: TokenIssuer, db: AsyncSession):
        self.issuer = issuer
        self.db = db

    def extract(self, request: Request) -> str:
        token = request.cookies.get(ACCESS_COOKIE)
        if not token:
            raise UnauthorizedError("Unauthorized request. Token missing")
        return token

    def verify(self, token: str) -> uuid.UUID:
        try:
            payload = self.issuer.verify_access_token(token)
            return uuid.UUID(payload["sub"])
        except (TokenError, ValueError) as e:
            logger.info("auth.access_rejected", reason=str(e))
            raise UnauthorizedError()

    async def resolve(self, user_id: uuid.UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UnauthorizedError("Invalid token. User does not exist")
        return user

    async def __call__(self, request: Request) -> User:
        token = self.extract(request)
        user_id = self.verify(token)
        return await self.resolve(user_id)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> User:
    """Require a valid access cookie; attach the user to request.state."""
    user = await AccessGate(issuer, db)(request)
    request.state.user = user
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user
