"""
Pydantic schemas for business transactions.
"""

import uuid
from datetime import datetime, date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from retail_ledger.models.enums import (
    EntryDirection,
    SettlementStatus,
    TransactionStatus,
    TransactionType,
)
from retail_ledger.schemas.ledger import JournalLine


# --- Purchases ---

class PurchaseLineCreate(BaseModel):
    product_unit_id: int
    quantity: Decimal = Field(gt=0, decimal_places=4)
    unit_cost: Decimal = Field(ge=0, decimal_places=2)
    production_date: date | None = None
    expiry_date: date | None = None
    batch_number: str | None = Field(default=None, max_length=50)

    @model_validator(mode="after")
    def expiry_after_production(self):
        if (
            self.production_date is not None
            and self.expiry_date is not None
            and self.expiry_date < self.production_date
        ):
            raise ValueError("expiry_date must not precede production_date")
        return self


class PurchaseCreate(BaseModel):
    supplier_id: int | None = None
    payment_id: int | None = None
    invoice_number: str | None = Field(default=None, max_length=50)
    transaction_date: datetime | None = None
    notes: str | None = None
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=100)
    lines: list[PurchaseLineCreate] = Field(min_length=1)


# --- Sales ---

class SaleLineCreate(BaseModel):
    product_unit_id: int
    quantity: Decimal = Field(gt=0, decimal_places=4)
    # Defaults to the product unit's current sale price
    unit_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)


class SaleCreate(BaseModel):
    customer_id: int | None = None
    # The payment that prompted this sale, e.g. a deposit taken up front
    payment_id: int | None = None
    transaction_date: datetime | None = None
    notes: str | None = None
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=100)
    lines: list[SaleLineCreate] = Field(min_length=1)


# --- Adjustments ---

class AdjustmentCreate(BaseModel):
    """A manual journal, held as a draft until posted."""
    payment_id: int | None = None
    transaction_date: datetime | None = None
    notes: str | None = None
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=100)
    lines: list[JournalLine] = Field(min_length=2)

    @field_validator("lines")
    @classmethod
    def must_have_debits_and_credits(cls, v: list) -> list:
        directions = {line.direction for line in v}
        if EntryDirection.DEBIT not in directions or EntryDirection.CREDIT not in directions:
            raise ValueError(
                "adjustment must contain at least one debit and one credit"
            )
        return v


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=255)


# --- Responses ---

class TransactionResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    idempotency_key: str | None
    transaction_type: TransactionType
    status: TransactionStatus
    total_amount: Decimal
    payment_id: int | None
    transaction_date: datetime
    notes: str | None
    created_at: datetime
    posted_at: datetime | None
    cancelled_at: datetime | None

    model_config = {"from_attributes": True}


class SettlementResponse(BaseModel):
    transaction_id: int
    total_amount: Decimal
    allocated_amount: Decimal
    outstanding_amount: Decimal
    status: SettlementStatus
