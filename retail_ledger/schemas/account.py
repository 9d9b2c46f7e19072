"""
Pydantic schemas for the chart of accounts and counterparts.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from retail_ledger.models.enums import NormalBalance, IdentityKind


# --- Chart of Accounts ---

class AccountCategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    normal_balance: NormalBalance
    description: str | None = None


class AccountCategoryResponse(BaseModel):
    id: int
    name: str
    normal_balance: NormalBalance
    description: str | None

    model_config = {"from_attributes": True}


class AccountSubCategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category_id: int
    description: str | None = None


class AccountSubCategoryResponse(BaseModel):
    id: int
    name: str
    category_id: int
    description: str | None

    model_config = {"from_attributes": True}


class AccountCreate(BaseModel):
    """Request to create a new account."""
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    subcategory_id: int
    description: str | None = None
    is_system: bool = False


class AccountCodeUpdate(BaseModel):
    code: str = Field(min_length=1, max_length=20)


class AccountResponse(BaseModel):
    id: int
    code: str
    name: str
    subcategory_id: int
    normal_balance: NormalBalance
    is_active: bool
    is_system: bool
    created_at: datetime

    model_config = {"from_attributes": True}


# --- Counterparts ---

class CounterpartIdentity(BaseModel):
    """Exactly one identity reference: a person or a company."""
    kind: IdentityKind
    id: int = Field(gt=0)


class CounterpartCreate(BaseModel):
    identity: CounterpartIdentity
    account_id: int | None = None


class CounterpartResponse(BaseModel):
    id: int
    identity_kind: IdentityKind
    identity_id: int
    account_id: int | None
    is_active: bool

    model_config = {"from_attributes": True}


class AccountBalanceResponse(BaseModel):
    """Natural-direction balance of an account."""
    account_id: int
    account_code: str
    normal_balance: NormalBalance
    balance: Decimal
    as_of: datetime | None = None
