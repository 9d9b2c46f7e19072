"""
Counterparts: customers, suppliers, and payment methods.

A counterpart's identity is a tagged variant: identity_kind says
whether identity_id points at a person or a company record in the
identity system. There is exactly one identity reference, never two
nullable ones.

A counterpart may carry its own sub-ledger account; when it does,
postings for it hit that account instead of the default receivable
or payable control account.
"""

from datetime import datetime

from sqlalchemy import (
    String, Boolean, DateTime, ForeignKey, Text,
    Enum as SAEnum, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_ledger.models.base import Base
from retail_ledger.models.enums import IdentityKind


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("identity_kind", "identity_id", name="uq_customer_identity"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    identity_kind: Mapped[IdentityKind] = mapped_column(
        SAEnum(IdentityKind, name="identity_kind_enum", create_constraint=True),
        nullable=False,
    )
    identity_id: Mapped[int] = mapped_column(nullable=False)
    account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_id: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    account: Mapped["Account | None"] = relationship()

    def __repr__(self) -> str:
        return f"<Customer {self.id} {self.identity_kind.value}:{self.identity_id}>"


class Supplier(Base):
    __tablename__ = "suppliers"
    __table_args__ = (
        UniqueConstraint("identity_kind", "identity_id", name="uq_supplier_identity"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    identity_kind: Mapped[IdentityKind] = mapped_column(
        SAEnum(IdentityKind, name="identity_kind_enum", create_constraint=True),
        nullable=False,
    )
    identity_id: Mapped[int] = mapped_column(nullable=False)
    account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_id: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    account: Mapped["Account | None"] = relationship()

    def __repr__(self) -> str:
        return f"<Supplier {self.id} {self.identity_kind.value}:{self.identity_id}>"


class PaymentMethod(Base):
    """Cash, card, bank transfer... each may settle into its own account."""

    __tablename__ = "payment_methods"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active_for_sales: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    active_for_purchases: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )

    account: Mapped["Account | None"] = relationship()

    def __repr__(self) -> str:
        return f"<PaymentMethod {self.name}>"
