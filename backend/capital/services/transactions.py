from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capital.core.cache import RedisCache
from capital.core.config import settings
from capital.core.database import transaction
from capital.core.errors import http_error
from capital.models.account import Account
from capital.models.budget import BudgetCategory
from capital.models.transaction import Transaction
from capital.schemas.transaction import TransactionCreate, TransactionOut, TransactionUpdate
from capital.services.read_through import ReadThroughCache

transactions_cache: ReadThroughCache[list[dict]] = ReadThroughCache(
    "transactions", lambda: settings.TRANSACTIONS_CACHE_TTL_SECONDS
)


def _not_found(field: str = "transaction_id") -> HTTPException:
    return http_error(
        status.HTTP_404_NOT_FOUND,
        "Transaction not found",
        {field: "Transaction does not exist or does not belong to the user"},
    )


async def _check_links(db: AsyncSession, user_id: str, changes: dict) -> None:
    """
    A transaction may only point at the caller's own account and budget category.
    """
    account_id = changes.get("account_id")
    if account_id is not None:
        owned = await db.scalar(
            select(Account.account_id).where(Account.account_id == account_id, Account.user_id == user_id)
        )
        if owned is None:
            raise http_error(
                status.HTTP_404_NOT_FOUND,
                "Account not found",
                {"account_id": "Account does not exist or does not belong to the user"},
            )

    category_id = changes.get("budget_category_id")
    if category_id is not None:
        owned = await db.scalar(
            select(BudgetCategory.budget_category_id).where(
                BudgetCategory.budget_category_id == category_id,
                BudgetCategory.user_id == user_id,
            )
        )
        if owned is None:
            raise http_error(
                status.HTTP_404_NOT_FOUND,
                "Budget category not found",
                {"budget_category_id": "Budget category does not exist or does not belong to the user"},
            )


async def _load_transactions(db: AsyncSession, user_id: str) -> list[dict]:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.user_id == user_id)
        .order_by(Transaction.date.desc(), Transaction.transaction_id)
    )
    return [TransactionOut.model_validate(t).model_dump(mode="json") for t in result.scalars().all()]


async def fetch_transactions(db: AsyncSession, cache: RedisCache, user_id: str) -> list[dict]:
    """Newest first."""
    return await transactions_cache.fetch(cache, user_id, lambda: _load_transactions(db, user_id))


async def create_transaction(db: AsyncSession, cache: RedisCache, user_id: str, payload: TransactionCreate) -> str:
    fields = payload.model_dump()
    async with transaction(db):
        await _check_links(db, user_id, fields)
        record = Transaction(user_id=user_id, **fields)
        db.add(record)

    await transactions_cache.invalidate(cache, user_id)
    return record.transaction_id


async def update_transaction(
    db: AsyncSession,
    cache: RedisCache,
    user_id: str,
    transaction_id: str,
    payload: TransactionUpdate,
) -> None:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            "No transaction fields to update",
            {"transaction": "No fields provided"},
        )

    async with transaction(db):
        result = await db.execute(
            select(Transaction).where(
                Transaction.transaction_id == transaction_id,
                Transaction.user_id == user_id,
            )
        )
        record = result.scalar_one_or_none()
        if not record:
            raise _not_found()

        await _check_links(db, user_id, changes)
        for field, value in changes.items():
            setattr(record, field, value)

    await transactions_cache.invalidate(cache, user_id)


async def delete_transactions(db: AsyncSession, cache: RedisCache, user_id: str, transaction_ids: list[str]) -> None:
    """
    Delete every listed transaction, or none of them when any id is unknown to the user.
    """
    wanted = set(transaction_ids)
    async with transaction(db):
        result = await db.execute(
            select(Transaction).where(
                Transaction.transaction_id.in_(list(wanted)),
                Transaction.user_id == user_id,
            )
        )
        records = result.scalars().all()
        if len(records) != len(wanted):
            raise _not_found("transactionIds")

        for record in records:
            await db.delete(record)

    await transactions_cache.invalidate(cache, user_id)
