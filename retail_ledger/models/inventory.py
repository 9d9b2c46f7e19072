"""
Inventory lots.

A Batch is one receipt of stock with its own unit cost. Its
remaining quantity only ever goes down as sales consume it; the
only way back up is the reversal of a recorded consumption, which
restores exactly what was taken.
"""

from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, Date, DateTime, Numeric, ForeignKey,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_ledger.models.base import Base


class Batch(Base):
    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("total_quantity > 0", name="ck_batch_total_positive"),
        CheckConstraint("unit_cost >= 0", name="ck_batch_cost_non_negative"),
        CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= total_quantity",
            name="ck_batch_remaining_in_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    product_unit_id: Mapped[int] = mapped_column(
        ForeignKey("product_units.id"), nullable=False, index=True
    )
    purchase_line_id: Mapped[int | None] = mapped_column(
        ForeignKey("purchase_lines.id"), unique=True, nullable=True
    )
    total_quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    remaining_quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    production_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    batch_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # Set when the purchase that created the batch is cancelled
    is_voided: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    purchase_line: Mapped["PurchaseLine | None"] = relationship(back_populates="batch")

    @property
    def total_cost(self) -> Decimal:
        return self.total_quantity * self.unit_cost

    def __repr__(self) -> str:
        return (
            f"<Batch {self.id} unit={self.product_unit_id} "
            f"{self.remaining_quantity}/{self.total_quantity} @ {self.unit_cost}>"
        )


class BatchConsumption(Base):
    """
    What one sale line took from one batch, at the batch's cost.

    These rows are the allocation record used to reverse a sale.

    ``cost`` is the amount this slice moved out of Inventory, in cents.
    Each consume sets it so the live consumptions of a batch add up to
    its consumed quantity x unit cost rounded once; a fully sold batch
    therefore leaves exactly what its purchase put in.
    """

    __tablename__ = "batch_consumptions"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_consumption_quantity_positive"),
        CheckConstraint("cost >= 0", name="ck_consumption_cost_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sale_line_id: Mapped[int | None] = mapped_column(
        ForeignKey("sale_lines.id"), nullable=True, index=True
    )
    batch_id: Mapped[int] = mapped_column(
        ForeignKey("batches.id"), nullable=False, index=True
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    batch: Mapped[Batch] = relationship()
    sale_line: Mapped["SaleLine | None"] = relationship(back_populates="consumptions")
