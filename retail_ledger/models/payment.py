"""
Payments and payment allocations.

A Payment is a cash movement. A PaymentAllocation assigns part of a
payment to a transaction. One payment can cover several
transactions and one transaction can be paid by several payments.

Caps (enforced by the PaymentService under row locks):
- per payment: sum of active allocations <= payment.amount
- per transaction: sum of active allocations <= transaction.total_amount
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime, Numeric, ForeignKey, Text,
    Enum as SAEnum, Uuid, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_ledger.models.base import Base
from retail_ledger.models.enums import PaymentType, PaymentStatus


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    payment_date: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    method_id: Mapped[int] = mapped_column(
        ForeignKey("payment_methods.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    payment_type: Mapped[PaymentType] = mapped_column(
        SAEnum(PaymentType, name="payment_type_enum", create_constraint=True),
        nullable=False,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus, name="payment_status_enum", create_constraint=True),
        nullable=False,
        default=PaymentStatus.ACTIVE,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    voided_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    method: Mapped["PaymentMethod"] = relationship()
    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        back_populates="payment", order_by="PaymentAllocation.id"
    )

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.payment_type.value} {self.amount}>"


class PaymentAllocation(Base):
    __tablename__ = "payment_allocations"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_allocation_amount_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    payment_id: Mapped[int] = mapped_column(
        ForeignKey("payments.id"), nullable=False, index=True
    )
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    created_by_id: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    # Deallocation is a soft removal; removed rows stay for audit
    removed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    removed_by_id: Mapped[int | None] = mapped_column(nullable=True)

    payment: Mapped[Payment] = relationship(back_populates="allocations")
    transaction: Mapped["Transaction"] = relationship()

    @property
    def is_active(self) -> bool:
        return self.removed_at is None

    def __repr__(self) -> str:
        return (
            f"<PaymentAllocation {self.id} payment={self.payment_id} "
            f"transaction={self.transaction_id} {self.amount}>"
        )
