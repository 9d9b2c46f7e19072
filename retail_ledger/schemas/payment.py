"""
Pydantic schemas for payments and allocations.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from retail_ledger.models.enums import PaymentType, PaymentStatus


class PaymentMethodCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: str | None = None
    active_for_sales: bool = True
    active_for_purchases: bool = True
    account_id: int | None = None


class PaymentMethodResponse(BaseModel):
    id: int
    name: str
    active_for_sales: bool
    active_for_purchases: bool
    account_id: int | None

    model_config = {"from_attributes": True}


class PaymentCreate(BaseModel):
    method_id: int
    amount: Decimal = Field(gt=0, decimal_places=2)
    payment_type: PaymentType
    payment_date: datetime | None = None
    notes: str | None = None


class PaymentResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    payment_date: datetime
    method_id: int
    amount: Decimal
    payment_type: PaymentType
    status: PaymentStatus
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AllocationCreate(BaseModel):
    transaction_id: int
    amount: Decimal = Field(gt=0, decimal_places=2)


class AllocationResponse(BaseModel):
    id: int
    payment_id: int
    transaction_id: int
    amount: Decimal
    created_at: datetime
    removed_at: datetime | None

    model_config = {"from_attributes": True}
