"""JWT token creation and verification.

Learn: JWT gives stateless verification — signature and expiry are
checked without touching the database.
- Access token: short-lived (15 min), authorizes individual requests
- Refresh token: long-lived (7 days), only used to mint a new pair

Each kind is signed with its own secret, so holding one can never forge
or stand in for the other. A random jti makes every issued token unique,
even two minted for the same user in the same second.
"""

import secrets
from datetime import datetime, timedelta, timezone

import jwt

from purposelog.config import Settings

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Raised when token verification fails."""


class TokenExpiredError(TokenError):
    pass


class TokenInvalidError(TokenError):
    pass


class TokenIssuer:
    """Mints and verifies access/refresh tokens for a user id."""

    def __init__(self, settings: Settings):
        self.algorithm = settings.jwt_algorithm
        self.access_ttl = timedelta(minutes=settings.access_token_expire_minutes)
        self.refresh_ttl = timedelta(days=settings.refresh_token_expire_days)
        self._secrets = {
            ACCESS: settings.access_token_secret,
            REFRESH: settings.refresh_token_secret,
        }

    def issue_access_token(self, user_id: str) -> str:
        return self._issue(user_id, ACCESS, self.access_ttl)

    def issue_refresh_token(self, user_id: str) -> str:
        return self._issue(user_id, REFRESH, self.refresh_ttl)

    def verify_access_token(self, token: str) -> dict:
        return self._verify(token, ACCESS)

    def verify_refresh_token(self, token: str) -> dict:
        return self._verify(token, REFRESH)

    def _issue(self, user_id: str, kind: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "type": kind,
            "iat": now,
            "exp": now + ttl,
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def _verify(self, token: str, kind: str) -> dict:
        """Decode and validate a token of the expected kind.

        Returns the payload dict on success.
        Raises TokenExpiredError or TokenInvalidError on failure.
        """
        try:
            payload = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "type"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid token: {e}")

        if payload.get("type") != kind:
            raise TokenInvalidError(f"Expected a {kind} token")
        return payload
