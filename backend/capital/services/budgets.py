from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from capital.core.cache import RedisCache
from capital.core.config import settings
from capital.core.database import transaction
from capital.core.errors import http_error
from capital.models.budget import Budget, BudgetCategory
from capital.models.transaction import Transaction
from capital.schemas.budget import (
    BudgetCategoryCreate,
    BudgetCategoryOut,
    BudgetCategoryUpdate,
    BudgetCreate,
    BudgetGoalIn,
    BudgetGoalOut,
)
from capital.services.read_through import ReadThroughCache
from capital.services.transactions import transactions_cache

budgets_cache: ReadThroughCache[dict[str, list[dict]]] = ReadThroughCache(
    "budgets", lambda: settings.BUDGETS_CACHE_TTL_SECONDS
)


def _category_not_found() -> HTTPException:
    return http_error(
        status.HTTP_404_NOT_FOUND,
        "Budget category not found",
        {"budget_category": "Budget category does not exist or does not belong to the user"},
    )


async def _get_category_for_user(db: AsyncSession, user_id: str, category_id: str) -> BudgetCategory:
    result = await db.execute(
        select(BudgetCategory).where(
            BudgetCategory.budget_category_id == category_id,
            BudgetCategory.user_id == user_id,
        )
    )
    category = result.scalar_one_or_none()
    if not category:
        raise _category_not_found()
    return category


async def _get_budget(db: AsyncSession, category_id: str, month: int, year: int) -> Budget | None:
    return await db.get(Budget, (category_id, year, month))


async def _load_budgets(db: AsyncSession, user_id: str) -> dict[str, list[dict]]:
    """
    Group the user's categories by type, each with its goals newest period first.
    """
    result = await db.execute(
        select(BudgetCategory)
        .options(selectinload(BudgetCategory.budgets))
        .where(BudgetCategory.user_id == user_id)
        .order_by(BudgetCategory.category_order, BudgetCategory.name)
    )

    organized: dict[str, list[dict]] = {"Income": [], "Expenses": []}
    for category in result.scalars().all():
        goals = sorted(category.budgets, key=lambda b: (b.year, b.month), reverse=True)
        out = BudgetCategoryOut(
            budget_category_id=category.budget_category_id,
            type=category.type,
            name=category.name,
            category_order=category.category_order,
            goals=[BudgetGoalOut.model_validate(g) for g in goals],
        )
        organized[category.type].append(out.model_dump(mode="json"))
    return organized


async def fetch_budgets(db: AsyncSession, cache: RedisCache, user_id: str) -> dict[str, list[dict]]:
    return await budgets_cache.fetch(cache, user_id, lambda: _load_budgets(db, user_id))


# -----------------------------
# Categories
# -----------------------------
async def create_category(db: AsyncSession, cache: RedisCache, user_id: str, payload: BudgetCategoryCreate) -> str:
    category_id = str(uuid.uuid4())
    async with transaction(db):
        db.add(
            BudgetCategory(
                budget_category_id=category_id,
                user_id=user_id,
                type=payload.type,
                name=payload.name.strip(),
                category_order=payload.category_order,
            )
        )
        db.add(Budget(budget_category_id=category_id, year=payload.year, month=payload.month, goal=payload.goal))

    await budgets_cache.invalidate(cache, user_id)
    return category_id


async def update_category(
    db: AsyncSession,
    cache: RedisCache,
    user_id: str,
    category_id: str,
    payload: BudgetCategoryUpdate,
) -> None:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            "No budget category fields to update",
            {"budget_category": "No fields provided"},
        )

    async with transaction(db):
        category = await _get_category_for_user(db, user_id, category_id)
        for field, value in changes.items():
            setattr(category, field, value.strip() if isinstance(value, str) else value)

    await budgets_cache.invalidate(cache, user_id)


async def reorder_categories(db: AsyncSession, cache: RedisCache, user_id: str, category_ids: list[str]) -> None:
    async with transaction(db):
        result = await db.execute(select(BudgetCategory).where(BudgetCategory.user_id == user_id))
        owned = {c.budget_category_id: c for c in result.scalars().all()}

        if any(c not in owned for c in category_ids):
            raise _category_not_found()

        for position, category_id in enumerate(category_ids):
            owned[category_id].category_order = position

    await budgets_cache.invalidate(cache, user_id)


async def delete_category(db: AsyncSession, cache: RedisCache, user_id: str, category_id: str) -> None:
    async with transaction(db):
        category = await _get_category_for_user(db, user_id, category_id)
        await db.execute(
            update(Transaction)
            .where(Transaction.budget_category_id == category_id)
            .values(budget_category_id=None)
        )
        # Cascades to the category's budgets
        await db.delete(category)

    await budgets_cache.invalidate(cache, user_id)
    await transactions_cache.invalidate(cache, user_id)


# -----------------------------
# Monthly goals
# -----------------------------
async def create_budget(db: AsyncSession, cache: RedisCache, user_id: str, payload: BudgetCreate) -> None:
    async with transaction(db):
        await _get_category_for_user(db, user_id, payload.budget_category_id)

        if await _get_budget(db, payload.budget_category_id, payload.month, payload.year):
            raise http_error(
                status.HTTP_409_CONFLICT,
                "Budget already exists",
                {"budget": "A goal already exists for this category and period"},
            )

        db.add(
            Budget(
                budget_category_id=payload.budget_category_id,
                year=payload.year,
                month=payload.month,
                goal=payload.goal,
            )
        )

    await budgets_cache.invalidate(cache, user_id)


async def update_budget(
    db: AsyncSession,
    cache: RedisCache,
    user_id: str,
    category_id: str,
    payload: BudgetGoalIn,
) -> None:
    async with transaction(db):
        await _get_category_for_user(db, user_id, category_id)

        budget = await _get_budget(db, category_id, payload.month, payload.year)
        if not budget:
            raise http_error(
                status.HTTP_404_NOT_FOUND,
                "Budget not found",
                {"budget": "No goal exists for this category and period"},
            )
        budget.goal = payload.goal

    await budgets_cache.invalidate(cache, user_id)
