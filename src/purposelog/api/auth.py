"""Auth API — registration, login, token refresh, logout.

Routes for the session lifecycle:
- POST /auth/register → multipart form + avatar → user + cookies (201)
- POST /auth/login → username/email + password → cookies
- POST /auth/refresh-token → refreshToken cookie → rotated cookies
- POST /auth/logout → clear stored refresh token + both cookies

Tokens never appear in response bodies; they travel only in HttpOnly
cookies set on the response.
"""

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, File, Form, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from purposelog.auth.cookies import (
    REFRESH_COOKIE,
    clear_auth_cookies,
    set_auth_cookies,
)
from purposelog.auth.dependencies import (
    get_current_user,
    get_password_hasher,
    get_token_issuer,
)
from purposelog.auth.jwt import TokenIssuer
from purposelog.auth.password import PasswordHasher
from purposelog.config import Settings, get_settings
from purposelog.db.engine import get_db
from purposelog.db.models import User
from purposelog.errors import envelope
from purposelog.schemas.user import LoginRequest, serialize_user
from purposelog.services.auth_service import AuthService
from purposelog.storage import AvatarStorage, get_avatar_storage

router = APIRouter(prefix="/auth")


def _svc(
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    issuer: TokenIssuer = Depends(get_token_issuer),
    storage: AvatarStorage = Depends(get_avatar_storage),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(db, hasher, issuer, storage, settings)


@router.post("/register", status_code=201)
async def register(
    response: Response,
    full_name: Optional[str] = Form(None, alias="fullName"),
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    svc: AuthService = Depends(_svc),
    settings: Settings = Depends(get_settings),
):
    """Create an account (avatar required) and log it in."""
    session = await svc.register(full_name, username, email, password, avatar)
    set_auth_cookies(
        response, session.tokens.access_token, session.tokens.refresh_token, settings
    )
    return envelope(
        "User registered and logged in successfully",
        data={"user": serialize_user(session.user)},
    )


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    svc: AuthService = Depends(_svc),
    settings: Settings = Depends(get_settings),
):
    session = await svc.login(body.username, body.email, body.password)
    set_auth_cookies(
        response, session.tokens.access_token, session.tokens.refresh_token, settings
    )
    return envelope(
        "User logged in successfully",
        data={"user": serialize_user(session.user)},
    )


@router.post("/refresh-token")
async def refresh_token(
    response: Response,
    token: Optional[str] = Cookie(None, alias=REFRESH_COOKIE),
    svc: AuthService = Depends(_svc),
    settings: Settings = Depends(get_settings),
):
    """Rotate: the presented refresh token is spent, a new pair is set."""
    session = await svc.refresh(token)
    set_auth_cookies(
        response, session.tokens.access_token, session.tokens.refresh_token, settings
    )
    return envelope("Tokens refreshed successfully")


@router.post("/logout")
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
    svc: AuthService = Depends(_svc),
    settings: Settings = Depends(get_settings),
):
    await svc.logout(user)
    clear_auth_cookies(response, settings)
    return envelope("User logged out successfully")
