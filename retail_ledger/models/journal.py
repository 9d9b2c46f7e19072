"""
General journal and ledger entries.

A Journal is one atomic accounting event; its LedgerEntry rows are
the double-entry lines. Per journal, the sum of debit amounts must
equal the sum of credit amounts. That rule is enforced by the
LedgerPoster, not by the model.

Journals and entries are append-only. A correction is a new
REVERSAL journal pointing at the original.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime, Numeric, ForeignKey, Text,
    Enum as SAEnum, Uuid, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_ledger.models.base import Base
from retail_ledger.models.enums import JournalKind, EntryDirection


class Journal(Base):
    __tablename__ = "journals"
    __table_args__ = (
        # A transaction is posted at most once; retries cannot duplicate it
        UniqueConstraint("transaction_id", "kind", name="uq_journal_transaction_kind"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    journal_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    kind: Mapped[JournalKind] = mapped_column(
        SAEnum(JournalKind, name="journal_kind_enum", create_constraint=True),
        nullable=False,
    )

    # Links to source documents
    transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True, index=True
    )
    payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("payments.id"), nullable=True, index=True
    )
    allocation_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_allocations.id"), nullable=True, index=True
    )
    reverses_journal_id: Mapped[int | None] = mapped_column(
        ForeignKey("journals.id"), unique=True, nullable=True
    )

    created_by_id: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="journal", order_by="LedgerEntry.id"
    )

    @property
    def total_debits(self) -> Decimal:
        return sum((e.debit_amount for e in self.entries), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((e.credit_amount for e in self.entries), Decimal("0"))

    def __repr__(self) -> str:
        return f"<Journal {self.id} {self.kind.value} {self.journal_date:%Y-%m-%d}>"


class LedgerEntry(Base):
    """
    One side of a journal: exactly one of debit_amount and
    credit_amount is non-zero.
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint(
            "(debit_amount > 0 AND credit_amount = 0) OR "
            "(credit_amount > 0 AND debit_amount = 0)",
            name="ck_entry_single_side",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    journal_id: Mapped[int] = mapped_column(
        ForeignKey("journals.id"), nullable=False, index=True
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    entry_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )

    journal: Mapped[Journal] = relationship(back_populates="entries")
    account: Mapped["Account"] = relationship()

    @property
    def direction(self) -> EntryDirection:
        return EntryDirection.DEBIT if self.debit_amount > 0 else EntryDirection.CREDIT

    @property
    def amount(self) -> Decimal:
        return self.debit_amount if self.debit_amount > 0 else self.credit_amount

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.direction.value} {self.amount} account={self.account_id}>"
