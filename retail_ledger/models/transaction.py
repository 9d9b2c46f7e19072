"""
Business transaction models.

A Transaction is the header for a business event (purchase, sale,
adjustment). Purchase and Sale are 1:1 type-specific headers that
carry the counterpart and the responsible actor; their lines hold
what is bought or sold.

Transactions are never physically deleted. Status moves only
through the transitions in VALID_TRANSITIONS.
"""

import uuid
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, Date, DateTime, Numeric, ForeignKey, Text,
    Enum as SAEnum, Uuid, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_ledger.models.base import Base
from retail_ledger.models.enums import (
    TransactionType,
    TransactionStatus,
    EntryDirection,
)


# Valid state transitions, the source of truth for the state machine
VALID_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.DRAFT: {TransactionStatus.POSTED, TransactionStatus.CANCELLED},
    TransactionStatus.POSTED: {TransactionStatus.CANCELLED},
    TransactionStatus.CANCELLED: set(),  # Terminal
}


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True, index=True
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            name="transaction_type_enum",
            create_constraint=True,
        ),
        nullable=False,
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            name="transaction_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=TransactionStatus.DRAFT,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("payments.id"), nullable=True
    )
    transaction_date: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Audit
    created_by_id: Mapped[int | None] = mapped_column(nullable=True)
    updated_by_id: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    posted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    purchase: Mapped["Purchase | None"] = relationship(back_populates="transaction")
    sale: Mapped["Sale | None"] = relationship(back_populates="transaction")
    adjustment_lines: Mapped[list["AdjustmentLine"]] = relationship(
        back_populates="transaction", order_by="AdjustmentLine.id"
    )

    def can_transition_to(self, new_status: TransactionStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.id} {self.transaction_type.value} "
            f"{self.total_amount} ({self.status.value})>"
        )


class Purchase(Base):
    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), unique=True, nullable=False
    )
    supplier_id: Mapped[int | None] = mapped_column(
        ForeignKey("suppliers.id"), nullable=True, index=True
    )
    invoice_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    purchased_by_id: Mapped[int | None] = mapped_column(nullable=True)

    transaction: Mapped[Transaction] = relationship(back_populates="purchase")
    supplier: Mapped["Supplier | None"] = relationship()
    lines: Mapped[list["PurchaseLine"]] = relationship(
        back_populates="purchase", order_by="PurchaseLine.id"
    )


class PurchaseLine(Base):
    """
    One product unit bought on a purchase.

    Posting the purchase turns each line into exactly one Batch.
    """

    __tablename__ = "purchase_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_purchase_line_quantity"),
        CheckConstraint("unit_cost >= 0", name="ck_purchase_line_cost"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    purchase_id: Mapped[int] = mapped_column(
        ForeignKey("purchases.id"), nullable=False, index=True
    )
    product_unit_id: Mapped[int] = mapped_column(
        ForeignKey("product_units.id"), nullable=False, index=True
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    production_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    batch_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    purchase: Mapped[Purchase] = relationship(back_populates="lines")
    batch: Mapped["Batch | None"] = relationship(back_populates="purchase_line")

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_cost


class Sale(Base):
    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), unique=True, nullable=False
    )
    customer_id: Mapped[int | None] = mapped_column(
        ForeignKey("customers.id"), nullable=True, index=True
    )
    sold_by_id: Mapped[int | None] = mapped_column(nullable=True)

    transaction: Mapped[Transaction] = relationship(back_populates="sale")
    customer: Mapped["Customer | None"] = relationship()
    lines: Mapped[list["SaleLine"]] = relationship(
        back_populates="sale", order_by="SaleLine.id"
    )


class SaleLine(Base):
    """
    One product unit sold on a sale.

    Cost of goods is not a column: it is derived from the batch
    consumptions recorded when the sale was posted.
    """

    __tablename__ = "sale_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_line_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_sale_line_price"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sale_id: Mapped[int] = mapped_column(
        ForeignKey("sales.id"), nullable=False, index=True
    )
    product_unit_id: Mapped[int] = mapped_column(
        ForeignKey("product_units.id"), nullable=False, index=True
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    sale: Mapped[Sale] = relationship(back_populates="lines")
    consumptions: Mapped[list["BatchConsumption"]] = relationship(
        back_populates="sale_line", order_by="BatchConsumption.id"
    )

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def cost_of_goods(self) -> Decimal:
        return sum(
            (c.cost for c in self.consumptions if c.reversed_at is None),
            Decimal("0"),
        )


class AdjustmentLine(Base):
    """A caller-supplied journal line held on a draft adjustment."""

    __tablename__ = "adjustment_lines"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_adjustment_line_amount"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), nullable=False, index=True
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    direction: Mapped[EntryDirection] = mapped_column(
        SAEnum(EntryDirection, name="entry_direction_enum", create_constraint=True),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    transaction: Mapped[Transaction] = relationship(back_populates="adjustment_lines")
