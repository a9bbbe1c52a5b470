# capital/dependencies/auth.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from fastapi import Request, Response, status

from capital.core.security import (
    TokenExpiredError,
    TokenMalformedError,
    TokenMissingSubjectError,
    verify_token,
)
from capital.services.sessions import clear_session, read_access_cookie, read_refresh_cookie

logger = logging.getLogger(__name__)


class AuthenticationRejected(Exception):
    """
    Terminal authentication failure for a request.

    Rendered by the app's exception handler, which clears both session cookies on the
    error response when clear_cookies is set.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        clear_cookies: bool = False,
        refreshable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.clear_cookies = clear_cookies
        self.refreshable = refreshable


@dataclass(frozen=True)
class RefreshIdentity:
    user_id: str
    # Absolute epoch seconds of the presented refresh token
    expires_at: int


def authenticate_token(required: bool) -> Callable[..., Awaitable[Optional[str]]]:
    """
    Build a dependency gating a route on the access cookie.

    required=True: the caller must hold a valid access token; its user_id is returned
    and attached to request.state.user_id.
    required=False: the route is anonymous-only; a valid token is turned away, an
    expired one is ignored and a malformed one is cleared before proceeding.
    """

    async def dependency(request: Request, response: Response) -> Optional[str]:
        token = read_access_cookie(request)

        if token is None:
            if required:
                raise AuthenticationRejected(status.HTTP_401_UNAUTHORIZED, "Authentication required")
            return None

        try:
            payload = verify_token(token)
        except TokenExpiredError:
            if required:
                raise AuthenticationRejected(
                    status.HTTP_401_UNAUTHORIZED,
                    "Access token has expired",
                    refreshable=True,
                )
            return None
        except TokenMalformedError:
            if required:
                raise AuthenticationRejected(
                    status.HTTP_403_FORBIDDEN,
                    "Invalid access token",
                    clear_cookies=True,
                )
            # The handlers in main.py re-apply this when the route raises
            request.state.clear_session = True
            clear_session(response)
            return None
        except Exception:
            logger.exception("Unexpected error verifying access token")
            raise AuthenticationRejected(status.HTTP_403_FORBIDDEN, "Unable to verify access token")

        if not required:
            raise AuthenticationRejected(status.HTTP_302_FOUND, "Already authenticated")

        request.state.user_id = payload.user_id
        return payload.user_id

    return dependency


require_user = authenticate_token(required=True)
require_anonymous = authenticate_token(required=False)


async def authenticate_refresh_token(request: Request) -> RefreshIdentity:
    """
    Gate for the refresh endpoint. Only the refresh cookie is consulted.
    """
    token = read_refresh_cookie(request)
    if token is None:
        raise AuthenticationRejected(status.HTTP_401_UNAUTHORIZED, "Refresh token missing")

    try:
        payload = verify_token(token)
    except TokenExpiredError:
        raise AuthenticationRejected(
            status.HTTP_401_UNAUTHORIZED,
            "Refresh token has expired",
            clear_cookies=True,
        )
    except TokenMissingSubjectError:
        raise AuthenticationRejected(
            status.HTTP_403_FORBIDDEN,
            "Invalid refresh token",
            clear_cookies=True,
        )
    except TokenMalformedError:
        # Signature or encoding failure
        raise AuthenticationRejected(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid refresh token",
            clear_cookies=True,
        )
    except Exception:
        logger.exception("Unexpected error verifying refresh token")
        raise AuthenticationRejected(status.HTTP_403_FORBIDDEN, "Unable to verify refresh token")

    identity = RefreshIdentity(user_id=payload.user_id, expires_at=payload.exp)
    request.state.user_id = identity.user_id
    request.state.refresh_expires_at = identity.expires_at
    return identity
