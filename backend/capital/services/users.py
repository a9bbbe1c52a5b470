from __future__ import annotations

import logging

from fastapi import HTTPException, Response, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from capital.core.cache import RedisCache
from capital.core.config import settings
from capital.core.database import transaction
from capital.core.errors import http_error
from capital.core.security import hash_password, verify_password
from capital.models.user import User
from capital.schemas.user import RegisterIn, UserDetailsOut, UserUpdate
from capital.services.accounts import accounts_cache
from capital.services.budgets import budgets_cache
from capital.services.read_through import ReadThroughCache
from capital.services.sessions import clear_session
from capital.services.transactions import transactions_cache

logger = logging.getLogger(__name__)

user_cache: ReadThroughCache[dict] = ReadThroughCache("user", lambda: settings.USER_CACHE_TTL_SECONDS)

# Every per-user collection, dropped together when the user is deleted
USER_CACHES = (accounts_cache, budgets_cache, transactions_cache, user_cache)


def _user_not_found() -> HTTPException:
    return http_error(
        status.HTTP_404_NOT_FOUND,
        "User not found",
        {"user_id": "User does not exist based on the provided ID"},
    )


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username.strip()))
    return result.scalar_one_or_none()


async def find_conflicts(
    db: AsyncSession,
    username: str | None,
    email: str | None,
    exclude_user_id: str | None = None,
) -> dict[str, str]:
    """
    Field-keyed messages for a username or email already held by another user.
    """
    clauses = []
    if username:
        clauses.append(User.username == username)
    if email:
        clauses.append(User.email == email)
    if not clauses:
        return {}

    query = select(User.username, User.email).where(or_(*clauses))
    if exclude_user_id:
        query = query.where(User.user_id != exclude_user_id)

    conflicts: dict[str, str] = {}
    for existing_username, existing_email in (await db.execute(query)).all():
        if username and existing_username == username:
            conflicts["username"] = "Username already exists"
        if email and existing_email == email:
            conflicts["email"] = "Email already exists"
    return conflicts


async def _raise_conflict_after_race(
    db: AsyncSession,
    exc: IntegrityError,
    username: str | None,
    email: str | None,
    exclude_user_id: str | None = None,
):
    # A concurrent writer claimed the value between the pre-check and the commit
    logger.info("Unique constraint hit on user write: %s", exc.orig)
    conflicts = await find_conflicts(db, username, email, exclude_user_id)
    if not conflicts:
        raise exc
    raise http_error(status.HTTP_409_CONFLICT, "Account details already in use", conflicts) from exc


async def authenticate_user(db: AsyncSession, username: str, password: str) -> User:
    user = await get_user_by_username(db, username)
    if not user or not verify_password(password, user.password):
        raise http_error(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid credentials",
            {"username": "Invalid credentials", "password": "Invalid credentials"},
        )
    return user


async def create_user(db: AsyncSession, payload: RegisterIn) -> User:
    email = str(payload.email).strip().lower()

    conflicts = await find_conflicts(db, payload.username, email)
    if conflicts:
        raise http_error(status.HTTP_409_CONFLICT, "Account details already in use", conflicts)

    user = User(
        username=payload.username,
        name=payload.name,
        email=email,
        password=hash_password(payload.password),
    )
    try:
        async with transaction(db):
            db.add(user)
    except IntegrityError as exc:
        await _raise_conflict_after_race(db, exc, payload.username, email)
    return user


async def _load_user_details(db: AsyncSession, user_id: str) -> dict:
    user = await db.get(User, user_id)
    if not user:
        raise _user_not_found()
    return UserDetailsOut.model_validate(user).model_dump(mode="json")


async def fetch_user_details(db: AsyncSession, cache: RedisCache, user_id: str) -> dict:
    """Public profile fields only; the password hash never reaches the cache."""
    return await user_cache.fetch(cache, user_id, lambda: _load_user_details(db, user_id))


async def update_user_details(db: AsyncSession, cache: RedisCache, user_id: str, payload: UserUpdate) -> None:
    password_errors = payload.password_errors()
    if password_errors:
        raise http_error(status.HTTP_400_BAD_REQUEST, "Invalid password change", password_errors)

    changes = payload.model_dump(exclude_unset=True, exclude={"password", "newPassword", "verifyPassword"})
    if "email" in changes:
        changes["email"] = str(changes["email"]).strip().lower()
    if not changes and not payload.changes_password:
        raise http_error(status.HTTP_400_BAD_REQUEST, "No user fields to update", {"user": "No fields provided"})

    conflicts = await find_conflicts(db, changes.get("username"), changes.get("email"), user_id)
    if conflicts:
        raise http_error(status.HTTP_409_CONFLICT, "Account details already in use", conflicts)

    try:
        async with transaction(db):
            user = await db.get(User, user_id)
            if not user:
                raise _user_not_found()

            if payload.changes_password:
                if not verify_password(payload.password, user.password):
                    raise http_error(
                        status.HTTP_400_BAD_REQUEST,
                        "Invalid credentials",
                        {"password": "Invalid credentials"},
                    )
                user.password = hash_password(payload.newPassword)

            for field, value in changes.items():
                setattr(user, field, value)
    except IntegrityError as exc:
        await _raise_conflict_after_race(db, exc, changes.get("username"), changes.get("email"), user_id)

    await user_cache.invalidate(cache, user_id)


async def delete_user(db: AsyncSession, cache: RedisCache, response: Response, user_id: str) -> None:
    """
    Remove the user with everything they own, end their session and drop every
    cached collection.
    """
    async with transaction(db):
        user = await db.get(User, user_id)
        if not user:
            raise _user_not_found()
        await db.delete(user)

    clear_session(response)
    for collection in USER_CACHES:
        await collection.invalidate(cache, user_id)
    logger.info("Deleted user %s", user_id)
