# capital/routes/authentication.py
from __future__ import annotations

import logging
import math
import time

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from capital.core.database import get_db
from capital.core.security import TokenExpiredError, TokenMalformedError, verify_token
from capital.dependencies.auth import (
    AuthenticationRejected,
    RefreshIdentity,
    authenticate_refresh_token,
    require_anonymous,
    require_user,
)
from capital.schemas.auth import AuthenticationStatusOut, LoginIn, SuccessOut
from capital.services.sessions import clear_session, issue_session, read_access_cookie
from capital.services.users import authenticate_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/authentication", tags=["authentication"])


@router.get("", response_model=AuthenticationStatusOut)
async def authentication_status(request: Request, response: Response):
    token = read_access_cookie(request)
    if token is None:
        return {"authenticated": False}

    try:
        verify_token(token)
    except TokenExpiredError:
        # Cookies stay; the client is expected to call /refresh
        raise AuthenticationRejected(status.HTTP_401_UNAUTHORIZED, "Access token has expired", refreshable=True)
    except TokenMalformedError:
        clear_session(response)
        return {"authenticated": False}
    except Exception:
        logger.exception("Unexpected error verifying access token")
        raise AuthenticationRejected(status.HTTP_403_FORBIDDEN, "Unable to verify access token")

    return {"authenticated": True}


@router.post("/login", response_model=SuccessOut, dependencies=[Depends(require_anonymous)])
async def login(payload: LoginIn, response: Response, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, payload.username, payload.password)
    issue_session(response, user.user_id)
    return {"success": True}


@router.post("/refresh", response_model=SuccessOut)
async def refresh(response: Response, identity: RefreshIdentity = Depends(authenticate_refresh_token)):
    # Never extend the session past the presented refresh token's expiry
    remaining = max(0, math.floor(identity.expires_at - time.time()))
    issue_session(response, identity.user_id, remaining)
    return {"success": True}


@router.post("/logout", response_model=SuccessOut, dependencies=[Depends(require_user)])
async def logout(response: Response):
    clear_session(response)
    return {"success": True}
