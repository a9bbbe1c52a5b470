from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from capital.core.cache import RedisCache
from capital.core.database import get_db
from capital.dependencies.auth import require_anonymous, require_user
from capital.dependencies.services import get_cache
from capital.schemas.auth import SuccessOut
from capital.schemas.user import RegisterIn, UserDetailsOut, UserUpdate
from capital.services import users as users_service
from capital.services.sessions import issue_session

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post(
    "",
    response_model=SuccessOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_anonymous)],
)
async def register(payload: RegisterIn, response: Response, db: AsyncSession = Depends(get_db)):
    user = await users_service.create_user(db, payload)
    issue_session(response, user.user_id)
    return {"success": True}


@router.get("", response_model=UserDetailsOut)
async def get_user_details(
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    return await users_service.fetch_user_details(db, cache, user_id)


@router.put("", status_code=status.HTTP_204_NO_CONTENT)
async def update_user_details(
    payload: UserUpdate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await users_service.update_user_details(db, cache, user_id, payload)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    response: Response,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await users_service.delete_user(db, cache, response, user_id)
