from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from capital.core.cache import RedisCache
from capital.services.accounts import fetch_accounts
from capital.services.budgets import fetch_budgets
from capital.services.economy import EconomyService
from capital.services.transactions import fetch_transactions
from capital.services.users import fetch_user_details


async def fetch_dashboard(
    db: AsyncSession,
    cache: RedisCache,
    economy: EconomyService,
    user_id: str,
) -> dict[str, Any]:
    # Sequential: an AsyncSession does not support concurrent operations
    return {
        "accounts": await fetch_accounts(db, cache, user_id),
        "budgets": await fetch_budgets(db, cache, user_id),
        "economy": await economy.get_or_refresh(),
        "transactions": await fetch_transactions(db, cache, user_id),
        "settings": await fetch_user_details(db, cache, user_id),
    }
