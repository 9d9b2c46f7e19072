"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from retail_ledger.models.base import Base
from retail_ledger.models.enums import (
    NormalBalance,
    EntryDirection,
    TransactionType,
    TransactionStatus,
    JournalKind,
    PaymentType,
    PaymentStatus,
    IdentityKind,
    SettlementStatus,
    SystemAccount,
)
from retail_ledger.models.audit_log import AuditLog
from retail_ledger.models.account import AccountCategory, AccountSubCategory, Account
from retail_ledger.models.catalog import ProductUnit
from retail_ledger.models.party import Customer, Supplier, PaymentMethod
from retail_ledger.models.transaction import (
    Transaction,
    Purchase,
    PurchaseLine,
    Sale,
    SaleLine,
    AdjustmentLine,
)
from retail_ledger.models.inventory import Batch, BatchConsumption
from retail_ledger.models.journal import Journal, LedgerEntry
from retail_ledger.models.payment import Payment, PaymentAllocation

__all__ = [
    "Base",
    "NormalBalance",
    "EntryDirection",
    "TransactionType",
    "TransactionStatus",
    "JournalKind",
    "PaymentType",
    "PaymentStatus",
    "IdentityKind",
    "SettlementStatus",
    "SystemAccount",
    "AuditLog",
    "AccountCategory",
    "AccountSubCategory",
    "Account",
    "ProductUnit",
    "Customer",
    "Supplier",
    "PaymentMethod",
    "Transaction",
    "Purchase",
    "PurchaseLine",
    "Sale",
    "SaleLine",
    "AdjustmentLine",
    "Batch",
    "BatchConsumption",
    "Journal",
    "LedgerEntry",
    "Payment",
    "PaymentAllocation",
]
