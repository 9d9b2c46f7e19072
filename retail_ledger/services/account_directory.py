"""
Account directory: the chart of accounts.

Read side: resolves accounts by id or code and exposes each
account's normal-balance polarity (inherited from its category).

Write side is deliberately narrow: accounts can be created,
deactivated, and re-coded only while no ledger entry references
them. Nothing is ever deleted.
"""

import logging

from sqlalchemy import select, exists
from sqlalchemy.orm import Session

from retail_ledger.actor import ActorContext
from retail_ledger.config import get_settings
from retail_ledger.exceptions import (
    AccountCodeLockedError,
    InvalidStateTransitionError,
    NotFoundError,
    RetailLedgerError,
)
from retail_ledger.models.account import Account, AccountCategory, AccountSubCategory
from retail_ledger.models.enums import NormalBalance, SystemAccount
from retail_ledger.models.journal import LedgerEntry
from retail_ledger.schemas.account import (
    AccountCategoryCreate,
    AccountSubCategoryCreate,
    AccountCreate,
)

logger = logging.getLogger(__name__)


# The five accounting natures and where each one increases
STANDARD_CATEGORIES: list[tuple[str, NormalBalance]] = [
    ("Assets", NormalBalance.DEBIT),
    ("Liabilities", NormalBalance.CREDIT),
    ("Equity", NormalBalance.CREDIT),
    ("Revenue", NormalBalance.CREDIT),
    ("Expenses", NormalBalance.DEBIT),
]

# role -> (category, subcategory, account name, settings attribute)
SYSTEM_ACCOUNTS: dict[SystemAccount, tuple[str, str, str, str]] = {
    SystemAccount.CASH: (
        "Assets", "Cash & Equivalents", "Cash on Hand", "CASH_ACCOUNT_CODE"),
    SystemAccount.ACCOUNTS_RECEIVABLE: (
        "Assets", "Trade Receivables", "Accounts Receivable", "AR_ACCOUNT_CODE"),
    SystemAccount.INVENTORY: (
        "Assets", "Inventory", "Merchandise Inventory", "INVENTORY_ACCOUNT_CODE"),
    SystemAccount.SUPPLIER_ADVANCES: (
        "Assets", "Prepayments", "Supplier Advances", "SUPPLIER_ADVANCES_ACCOUNT_CODE"),
    SystemAccount.ACCOUNTS_PAYABLE: (
        "Liabilities", "Trade Payables", "Accounts Payable", "AP_ACCOUNT_CODE"),
    SystemAccount.CUSTOMER_DEPOSITS: (
        "Liabilities", "Customer Deposits", "Unapplied Customer Receipts",
        "CUSTOMER_DEPOSITS_ACCOUNT_CODE"),
    SystemAccount.SALES_REVENUE: (
        "Revenue", "Sales", "Sales Revenue", "SALES_REVENUE_ACCOUNT_CODE"),
    SystemAccount.COST_OF_GOODS_SOLD: (
        "Expenses", "Cost of Sales", "Cost of Goods Sold", "COGS_ACCOUNT_CODE"),
}


class AccountDirectory:

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    # --- Categories ---

    def create_category(self, request: AccountCategoryCreate) -> AccountCategory:
        existing = self.db.execute(
            select(AccountCategory).where(AccountCategory.name == request.name)
        ).scalar_one_or_none()
        if existing:
            raise RetailLedgerError(f"Category '{request.name}' already exists")

        category = AccountCategory(
            name=request.name,
            normal_balance=request.normal_balance,
            description=request.description,
        )
        self.db.add(category)
        self.db.flush()
        return category

    def create_subcategory(self, request: AccountSubCategoryCreate) -> AccountSubCategory:
        if not self.db.get(AccountCategory, request.category_id):
            raise NotFoundError("Account category", request.category_id)

        subcategory = AccountSubCategory(
            name=request.name,
            category_id=request.category_id,
            description=request.description,
        )
        self.db.add(subcategory)
        self.db.flush()
        return subcategory

    # --- Accounts ---

    def create_account(self, request: AccountCreate, actor: ActorContext) -> Account:
        """
        Create a new account.

        Raises RetailLedgerError if the code already exists.
        """
        if self.db.execute(
            select(Account).where(Account.code == request.code)
        ).scalar_one_or_none():
            raise RetailLedgerError(f"Account with code '{request.code}' already exists")

        if not self.db.get(AccountSubCategory, request.subcategory_id):
            raise NotFoundError("Account subcategory", request.subcategory_id)

        account = Account(
            code=request.code,
            name=request.name,
            subcategory_id=request.subcategory_id,
            description=request.description,
            is_system=request.is_system,
            created_by_id=actor.user_id,
            updated_by_id=actor.user_id,
        )
        self.db.add(account)
        self.db.flush()
        logger.info("account created code=%s id=%s", account.code, account.id)
        return account

    def get_account(self, account_id: int) -> Account:
        account = self.db.get(Account, account_id)
        if not account:
            raise NotFoundError("Account", account_id)
        return account

    def get_by_code(self, code: str) -> Account:
        account = self.db.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        if not account:
            raise NotFoundError("Account", code)
        return account

    def normal_balance(self, account_id: int) -> NormalBalance:
        return self.get_account(account_id).normal_balance

    def has_entries(self, account_id: int) -> bool:
        return bool(self.db.execute(
            select(exists().where(LedgerEntry.account_id == account_id))
        ).scalar())

    def change_code(self, account_id: int, new_code: str, actor: ActorContext) -> Account:
        """
        Re-code an account.

        Refused once any ledger entry references the account:
        reports and exports key on the code, so it is frozen.
        """
        account = self.get_account(account_id)
        if account.code == new_code:
            return account
        if self.has_entries(account_id):
            raise AccountCodeLockedError(account.code)
        if self.db.execute(
            select(Account).where(Account.code == new_code)
        ).scalar_one_or_none():
            raise RetailLedgerError(f"Account with code '{new_code}' already exists")

        account.code = new_code
        account.updated_by_id = actor.user_id
        self.db.flush()
        return account

    def deactivate(self, account_id: int, actor: ActorContext) -> Account:
        account = self.get_account(account_id)
        if account.is_system:
            raise InvalidStateTransitionError(
                "Account", account.code, "ACTIVE", "INACTIVE",
                reason="system accounts cannot be deactivated",
            )
        account.is_active = False
        account.updated_by_id = actor.user_id
        self.db.flush()
        logger.info("account deactivated code=%s", account.code)
        return account

    # --- System accounts ---

    def system_account(self, role: SystemAccount) -> Account:
        """Return the configured account backing a posting rule."""
        code = getattr(self.settings, SYSTEM_ACCOUNTS[role][3])
        return self.get_by_code(code)

    def seed_chart_of_accounts(self, actor: ActorContext) -> list[Account]:
        """
        Create the standard categories and system accounts.

        Idempotent: existing categories, subcategories and accounts
        are reused, so this can run on every deployment.
        """
        categories = {}
        for name, polarity in STANDARD_CATEGORIES:
            category = self.db.execute(
                select(AccountCategory).where(AccountCategory.name == name)
            ).scalar_one_or_none()
            if not category:
                category = AccountCategory(name=name, normal_balance=polarity)
                self.db.add(category)
                self.db.flush()
            categories[name] = category

        accounts = []
        for role, (category_name, sub_name, account_name, setting) in SYSTEM_ACCOUNTS.items():
            code = getattr(self.settings, setting)
            account = self.db.execute(
                select(Account).where(Account.code == code)
            ).scalar_one_or_none()
            if not account:
                subcategory = self._get_or_create_subcategory(
                    categories[category_name], sub_name
                )
                account = Account(
                    code=code,
                    name=account_name,
                    subcategory_id=subcategory.id,
                    is_system=True,
                    created_by_id=actor.user_id,
                    updated_by_id=actor.user_id,
                )
                self.db.add(account)
                self.db.flush()
                logger.info("system account seeded role=%s code=%s", role.value, code)
            accounts.append(account)
        return accounts

    def _get_or_create_subcategory(
        self, category: AccountCategory, name: str
    ) -> AccountSubCategory:
        subcategory = self.db.execute(
            select(AccountSubCategory).where(
                AccountSubCategory.category_id == category.id,
                AccountSubCategory.name == name,
            )
        ).scalar_one_or_none()
        if not subcategory:
            subcategory = AccountSubCategory(name=name, category_id=category.id)
            self.db.add(subcategory)
            self.db.flush()
        return subcategory
