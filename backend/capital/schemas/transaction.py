from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

_EARLIEST_DATE = datetime(1800, 1, 1, tzinfo=timezone.utc)
# UTC+14, the furthest-ahead timezone
_LATEST_OFFSET = timedelta(hours=14)


def _blank_to_none(v):
    # The client sends "" to unlink an account or category
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _check_amount(v: float) -> float:
    if v == 0:
        raise ValueError("Amount cannot be $0")
    return v


def _check_date(v: datetime) -> datetime:
    if v.tzinfo is None:
        v = v.replace(tzinfo=timezone.utc)
    if v < _EARLIEST_DATE:
        raise ValueError("Date must be on or after 1800-01-01")
    if v > datetime.now(timezone.utc) + _LATEST_OFFSET:
        raise ValueError("Date cannot be in the future")
    return v


class TransactionCreate(BaseModel):
    amount: float = Field(ge=-999_999_999_999.99, le=999_999_999_999.99)
    description: str = Field(default="", max_length=255)
    date: datetime
    account_id: Optional[str] = Field(default=None, max_length=36)
    budget_category_id: Optional[str] = Field(default=None, max_length=36)

    @field_validator("account_id", "budget_category_id", mode="before")
    @classmethod
    def blank_link(cls, v):
        return _blank_to_none(v)

    @field_validator("amount")
    @classmethod
    def non_zero_amount(cls, v: float) -> float:
        return _check_amount(v)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()

    @field_validator("date")
    @classmethod
    def date_in_range(cls, v: datetime) -> datetime:
        return _check_date(v)


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, ge=-999_999_999_999.99, le=999_999_999_999.99)
    description: Optional[str] = Field(default=None, max_length=255)
    date: Optional[datetime] = None
    account_id: Optional[str] = Field(default=None, max_length=36)
    budget_category_id: Optional[str] = Field(default=None, max_length=36)

    @field_validator("amount", "description", "date", mode="before")
    @classmethod
    def not_null(cls, v, info: ValidationInfo):
        if v is None:
            raise ValueError(f"{info.field_name.capitalize()} cannot be null")
        return v

    @field_validator("account_id", "budget_category_id", mode="before")
    @classmethod
    def blank_link(cls, v):
        return _blank_to_none(v)

    @field_validator("amount")
    @classmethod
    def non_zero_amount(cls, v: float) -> float:
        return _check_amount(v)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()

    @field_validator("date")
    @classmethod
    def date_in_range(cls, v: datetime) -> datetime:
        return _check_date(v)


class TransactionDeleteIn(BaseModel):
    transactionIds: list[str] = Field(min_length=1)


class TransactionCreatedOut(BaseModel):
    transaction_id: str


class TransactionOut(BaseModel):
    transaction_id: str
    amount: float
    description: str
    date: datetime
    account_id: Optional[str] = None
    budget_category_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
