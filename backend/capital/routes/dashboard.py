from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from capital.core.cache import RedisCache
from capital.core.database import get_db
from capital.dependencies.auth import require_user
from capital.dependencies.services import get_cache, get_economy_service
from capital.schemas.account import AccountCreate, AccountCreatedOut, AccountOrderingIn, AccountUpdate
from capital.schemas.budget import (
    BudgetCategoryCreate,
    BudgetCategoryCreatedOut,
    BudgetCategoryUpdate,
    BudgetCreate,
    BudgetGoalIn,
    CategoryOrderingIn,
)
from capital.schemas.transaction import (
    TransactionCreate,
    TransactionCreatedOut,
    TransactionDeleteIn,
    TransactionUpdate,
)
from capital.services import accounts as accounts_service
from capital.services import budgets as budgets_service
from capital.services import transactions as transactions_service
from capital.services.dashboard import fetch_dashboard
from capital.services.economy import EconomyService

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get("")
async def get_dashboard(
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
    economy: EconomyService = Depends(get_economy_service),
):
    return await fetch_dashboard(db, cache, economy, user_id)


@router.get("/economy", dependencies=[Depends(require_user)])
async def get_economy(economy: EconomyService = Depends(get_economy_service)):
    return await economy.get_or_refresh()


# -----------------------------
# Accounts
# -----------------------------
@router.get("/accounts")
async def list_accounts(
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    return await accounts_service.fetch_accounts(db, cache, user_id)


@router.post("/accounts", response_model=AccountCreatedOut, status_code=status.HTTP_201_CREATED)
async def create_account(
    payload: AccountCreate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    account_id = await accounts_service.create_account(db, cache, user_id, payload)
    return {"account_id": account_id}


# Declared before /accounts/{account_id} so "ordering" is not captured as an id
@router.put("/accounts/ordering", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_accounts(
    payload: AccountOrderingIn,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await accounts_service.reorder_accounts(db, cache, user_id, payload.accounts)


@router.put("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_account(
    account_id: str,
    payload: AccountUpdate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await accounts_service.update_account(db, cache, user_id, account_id, payload)


@router.delete("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: str,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await accounts_service.delete_account(db, cache, user_id, account_id)


# -----------------------------
# Budgets
# -----------------------------
@router.get("/budgets")
async def list_budgets(
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    return await budgets_service.fetch_budgets(db, cache, user_id)


@router.post("/budgets/category", response_model=BudgetCategoryCreatedOut, status_code=status.HTTP_201_CREATED)
async def create_budget_category(
    payload: BudgetCategoryCreate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    category_id = await budgets_service.create_category(db, cache, user_id, payload)
    return {"budget_category_id": category_id}


@router.put("/budgets/category/ordering", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_budget_categories(
    payload: CategoryOrderingIn,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await budgets_service.reorder_categories(db, cache, user_id, payload.categories)


@router.put("/budgets/category/{budget_category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_budget_category(
    budget_category_id: str,
    payload: BudgetCategoryUpdate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await budgets_service.update_category(db, cache, user_id, budget_category_id, payload)


@router.delete("/budgets/category/{budget_category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget_category(
    budget_category_id: str,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await budgets_service.delete_category(db, cache, user_id, budget_category_id)


@router.post("/budgets/budget", status_code=status.HTTP_201_CREATED)
async def create_budget(
    payload: BudgetCreate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await budgets_service.create_budget(db, cache, user_id, payload)
    return {"success": True}


@router.put("/budgets/budget/{budget_category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_budget(
    budget_category_id: str,
    payload: BudgetGoalIn,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await budgets_service.update_budget(db, cache, user_id, budget_category_id, payload)


# -----------------------------
# Transactions
# -----------------------------
@router.get("/transactions")
async def list_transactions(
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    return await transactions_service.fetch_transactions(db, cache, user_id)


@router.post("/transactions", response_model=TransactionCreatedOut, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    payload: TransactionCreate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    transaction_id = await transactions_service.create_transaction(db, cache, user_id, payload)
    return {"transaction_id": transaction_id}


@router.put("/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await transactions_service.update_transaction(db, cache, user_id, transaction_id, payload)


@router.delete("/transactions", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transactions(
    payload: TransactionDeleteIn,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await transactions_service.delete_transactions(db, cache, user_id, payload.transactionIds)


@router.delete("/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: str,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    cache: RedisCache = Depends(get_cache),
):
    await transactions_service.delete_transactions(db, cache, user_id, [transaction_id])
