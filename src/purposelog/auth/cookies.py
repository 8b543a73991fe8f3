"""Cookie transport for the token pair.

Both cookies are HttpOnly (unreadable from page scripts) and Secure in
production. Max-Age mirrors each token's own lifetime, so the browser
drops a cookie around the time its token would stop verifying anyway.
"""

from starlette.responses import Response

from purposelog.config import Settings

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def set_auth_cookies(
    response: Response, access_token: str, refresh_token: str, settings: Settings
) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name, httponly=True, secure=settings.is_production, samesite="lax"
        )
