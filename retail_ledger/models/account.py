"""
Chart of accounts: category -> subcategory -> account.

The category fixes the normal balance for every account beneath
it. The subcategory is a pure grouping layer. Entries are posted
against accounts.
"""

from datetime import datetime

from sqlalchemy import (
    String, Boolean, DateTime, Text, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_ledger.models.base import Base
from retail_ledger.models.enums import NormalBalance


class AccountCategory(Base):
    __tablename__ = "account_categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    normal_balance: Mapped[NormalBalance] = mapped_column(
        SAEnum(NormalBalance, name="normal_balance_enum", create_constraint=True),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    subcategories: Mapped[list["AccountSubCategory"]] = relationship(
        back_populates="category"
    )

    def __repr__(self) -> str:
        return f"<AccountCategory {self.name} ({self.normal_balance.value})>"


class AccountSubCategory(Base):
    __tablename__ = "account_subcategories"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("account_categories.id"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[AccountCategory] = relationship(back_populates="subcategories")
    accounts: Mapped[list["Account"]] = relationship(back_populates="subcategory")

    def __repr__(self) -> str:
        return f"<AccountSubCategory {self.name}>"


class Account(Base):
    """
    A single account in the chart of accounts.

    Once referenced by entries, an account is never deleted and its
    code never changes; it can only be deactivated via is_active=False.
    System accounts (is_system=True) back the posting rules and
    cannot be deactivated at all.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    subcategory_id: Mapped[int] = mapped_column(
        ForeignKey("account_subcategories.id"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Audit
    created_by_id: Mapped[int | None] = mapped_column(nullable=True)
    updated_by_id: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    subcategory: Mapped[AccountSubCategory] = relationship(back_populates="accounts")

    @property
    def normal_balance(self) -> NormalBalance:
        return self.subcategory.category.normal_balance

    def __repr__(self) -> str:
        return f"<Account {self.code} {self.name}>"
