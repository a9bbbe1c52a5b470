from __future__ import annotations

from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from capital.core.cache import RedisCache
from capital.core.config import settings
from capital.core.database import transaction
from capital.core.errors import http_error
from capital.models.account import Account
from capital.models.transaction import Transaction
from capital.schemas.account import AccountCreate, AccountOut, AccountUpdate
from capital.services.read_through import ReadThroughCache
from capital.services.transactions import transactions_cache

accounts_cache: ReadThroughCache[list[dict]] = ReadThroughCache(
    "accounts", lambda: settings.ACCOUNTS_CACHE_TTL_SECONDS
)


def _not_found() -> HTTPException:
    return http_error(
        status.HTTP_404_NOT_FOUND,
        "Account not found",
        {"account": "Account does not exist or does not belong to the user"},
    )


async def _get_account_for_user(db: AsyncSession, user_id: str, account_id: str) -> Account:
    result = await db.execute(
        select(Account).where(Account.account_id == account_id, Account.user_id == user_id)
    )
    account = result.scalar_one_or_none()
    if not account:
        raise _not_found()
    return account


async def _load_accounts(db: AsyncSession, user_id: str) -> list[dict]:
    result = await db.execute(
        select(Account)
        .where(Account.user_id == user_id)
        .order_by(Account.account_order, Account.name)
    )
    return [AccountOut.model_validate(a).model_dump(mode="json") for a in result.scalars().all()]


async def fetch_accounts(db: AsyncSession, cache: RedisCache, user_id: str) -> list[dict]:
    return await accounts_cache.fetch(cache, user_id, lambda: _load_accounts(db, user_id))


async def create_account(db: AsyncSession, cache: RedisCache, user_id: str, payload: AccountCreate) -> str:
    account = Account(user_id=user_id, last_updated=datetime.now(timezone.utc), **payload.model_dump())
    async with transaction(db):
        db.add(account)

    await accounts_cache.invalidate(cache, user_id)
    return account.account_id


async def update_account(
    db: AsyncSession,
    cache: RedisCache,
    user_id: str,
    account_id: str,
    payload: AccountUpdate,
) -> None:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise http_error(status.HTTP_400_BAD_REQUEST, "No account fields to update", {"account": "No fields provided"})

    async with transaction(db):
        account = await _get_account_for_user(db, user_id, account_id)
        for field, value in changes.items():
            setattr(account, field, value)
        account.last_updated = datetime.now(timezone.utc)

    await accounts_cache.invalidate(cache, user_id)


async def reorder_accounts(db: AsyncSession, cache: RedisCache, user_id: str, account_ids: list[str]) -> None:
    async with transaction(db):
        result = await db.execute(select(Account).where(Account.user_id == user_id))
        owned = {a.account_id: a for a in result.scalars().all()}

        unknown = [a for a in account_ids if a not in owned]
        if unknown:
            raise _not_found()

        for position, account_id in enumerate(account_ids):
            owned[account_id].account_order = position

    await accounts_cache.invalidate(cache, user_id)


async def delete_account(db: AsyncSession, cache: RedisCache, user_id: str, account_id: str) -> None:
    async with transaction(db):
        account = await _get_account_for_user(db, user_id, account_id)
        await db.execute(
            update(Transaction).where(Transaction.account_id == account_id).values(account_id=None)
        )
        await db.delete(account)

    await accounts_cache.invalidate(cache, user_id)
    await transactions_cache.invalidate(cache, user_id)
