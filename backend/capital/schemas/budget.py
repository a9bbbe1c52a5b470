from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

BudgetType = Literal["Income", "Expenses"]


class BudgetPeriod(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1800, le=9999)


class BudgetGoalIn(BudgetPeriod):
    goal: float = Field(ge=0, le=999_999_999_999.99)


class BudgetCreate(BudgetGoalIn):
    budget_category_id: str


class BudgetCategoryCreate(BudgetGoalIn):
    type: BudgetType
    name: str = Field(min_length=1, max_length=30)
    category_order: int = Field(default=0, ge=0)


class BudgetCategoryUpdate(BaseModel):
    type: Optional[BudgetType] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=30)


class CategoryOrderingIn(BaseModel):
    categories: list[str] = Field(min_length=1)


class BudgetCategoryCreatedOut(BaseModel):
    budget_category_id: str


class BudgetGoalOut(BaseModel):
    goal: float
    month: int
    year: int

    model_config = ConfigDict(from_attributes=True)


class BudgetCategoryOut(BaseModel):
    budget_category_id: str
    type: BudgetType
    name: str
    category_order: int
    goals: list[BudgetGoalOut]
