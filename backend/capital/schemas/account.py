from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

AccountType = Literal[
    "Checking",
    "Savings",
    "Credit Card",
    "Debt",
    "Retirement",
    "Investment",
    "Loan",
    "Property",
    "Other",
]


class AccountCreate(BaseModel):
    name: str = Field(min_length=1, max_length=30)
    type: AccountType
    balance: float = Field(ge=-999_999_999_999.99, le=999_999_999_999.99)
    image: Optional[str] = Field(default=None, max_length=500)
    account_order: int = Field(default=0, ge=0)


class AccountUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=30)
    type: Optional[AccountType] = None
    balance: Optional[float] = Field(default=None, ge=-999_999_999_999.99, le=999_999_999_999.99)
    image: Optional[str] = Field(default=None, max_length=500)

    # Omit a field to leave it unchanged; only image may be cleared with null
    @field_validator("name", "type", "balance", mode="before")
    @classmethod
    def not_null(cls, v, info: ValidationInfo):
        if v is None:
            raise ValueError(f"{info.field_name.capitalize()} cannot be null")
        return v


class AccountOrderingIn(BaseModel):
    accounts: list[str] = Field(min_length=1)


class AccountCreatedOut(BaseModel):
    account_id: str


class AccountOut(BaseModel):
    account_id: str
    name: str
    type: str
    balance: float
    image: Optional[str] = None
    account_order: int
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)
