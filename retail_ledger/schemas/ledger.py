"""
Pydantic schemas for ledger operations.

These define the API contract: what data comes in,
what data goes out. They are separate from the database
models because the API shape and the storage shape
are often different.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from retail_ledger.models.enums import EntryDirection, JournalKind, NormalBalance


# --- Request Schemas ---

class JournalLine(BaseModel):
    """A single debit or credit in a journal."""
    account_id: int
    amount: Decimal = Field(gt=0, decimal_places=2)
    direction: EntryDirection

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("amount must be positive")
        return v


# --- Response Schemas ---

class LedgerEntryResponse(BaseModel):
    id: int
    account_id: int
    entry_date: datetime
    debit_amount: Decimal
    credit_amount: Decimal

    model_config = {"from_attributes": True}


class JournalResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    journal_date: datetime
    description: str | None
    kind: JournalKind
    transaction_id: int | None
    payment_id: int | None
    allocation_id: int | None
    reverses_journal_id: int | None
    total_debits: Decimal
    total_credits: Decimal
    entries: list[LedgerEntryResponse]

    model_config = {"from_attributes": True}


class TrialBalanceLine(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    normal_balance: NormalBalance
    total_debits: Decimal
    total_credits: Decimal
    balance: Decimal


class TrialBalanceResponse(BaseModel):
    as_of: datetime | None
    lines: list[TrialBalanceLine]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool
