from __future__ import annotations

from fastapi import Request, Response

from capital.core.config import settings
from capital.core.security import parse_duration, sign_token


# -----------------------------
# Cookie settings
# -----------------------------
def access_cookie_name() -> str:
    return str(getattr(settings, "ACCESS_COOKIE_NAME", "access_token")).strip() or "access_token"


def refresh_cookie_name() -> str:
    return str(getattr(settings, "REFRESH_COOKIE_NAME", "refresh_token")).strip() or "refresh_token"


def refresh_cookie_path() -> str:
    # Refresh cookie is only ever sent to the refresh endpoint
    return str(getattr(settings, "REFRESH_COOKIE_PATH", "/api/v1/authentication/refresh")).strip() or "/"


def cookie_samesite() -> str:
    v = str(getattr(settings, "COOKIE_SAMESITE", "none")).lower().strip()
    if v not in {"lax", "strict", "none"}:
        return "none"
    return v


def cookie_attributes(path: str) -> dict:
    """
    Attributes shared by set and clear calls. Browsers only remove a cookie when the
    clearing Set-Cookie carries the same path/domain/secure/samesite it was set with.
    """
    return {
        "httponly": True,
        "secure": bool(settings.COOKIE_SECURE),
        "samesite": cookie_samesite(),
        "path": path,
        "domain": settings.COOKIE_DOMAIN,
    }


def default_refresh_seconds() -> int:
    return parse_duration(settings.REFRESH_TOKEN_EXPIRES_IN)


# -----------------------------
# Session lifecycle
# -----------------------------
def issue_session(response: Response, user_id: str, seconds_until_expire: int | None = None) -> None:
    """
    Set both session cookies for user_id.

    The access token is always signed for the fixed access window. The refresh token is
    signed for seconds_until_expire when rotating an existing session, otherwise for the
    default refresh window. Both cookies live as long as the refresh token so an expired
    access token can still be presented and answered with a refresh hint.
    """
    if seconds_until_expire is None:
        refresh_seconds = default_refresh_seconds()
    else:
        refresh_seconds = max(0, int(seconds_until_expire))

    access_token = sign_token(user_id, settings.ACCESS_TOKEN_EXPIRES_IN)
    refresh_token = sign_token(user_id, refresh_seconds)

    response.set_cookie(
        key=access_cookie_name(),
        value=access_token,
        max_age=refresh_seconds,
        **cookie_attributes("/"),
    )
    response.set_cookie(
        key=refresh_cookie_name(),
        value=refresh_token,
        max_age=refresh_seconds,
        **cookie_attributes(refresh_cookie_path()),
    )


def clear_session(response: Response) -> None:
    response.delete_cookie(key=access_cookie_name(), **cookie_attributes("/"))
    response.delete_cookie(key=refresh_cookie_name(), **cookie_attributes(refresh_cookie_path()))


def _read_cookie(req: Request, name: str) -> str | None:
    val = req.cookies.get(name)
    if not val:
        return None
    val = val.strip()
    return val or None


def read_access_cookie(req: Request) -> str | None:
    return _read_cookie(req, access_cookie_name())


def read_refresh_cookie(req: Request) -> str | None:
    return _read_cookie(req, refresh_cookie_name())
