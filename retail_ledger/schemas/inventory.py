"""
Pydantic schemas for inventory lots.
"""

from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal

from pydantic import BaseModel


@dataclass(frozen=True)
class ConsumedLot:
    """One slice of a consume() result: what was taken from one batch."""
    batch_id: int
    quantity: Decimal
    unit_cost: Decimal
    cost: Decimal
    consumption_id: int | None = None


class BatchResponse(BaseModel):
    id: int
    product_unit_id: int
    purchase_line_id: int | None
    total_quantity: Decimal
    remaining_quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    production_date: date | None
    expiry_date: date | None
    batch_number: str | None
    is_voided: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class StockResponse(BaseModel):
    product_unit_id: int
    available_quantity: Decimal
    batches: list[BatchResponse]
