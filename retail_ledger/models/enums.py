"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored.
"""

import enum


class NormalBalance(str, enum.Enum):
    """Direction in which an account category naturally increases."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class EntryDirection(str, enum.Enum):
    """Side of a journal line."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class TransactionType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    ADJUSTMENT = "ADJUSTMENT"


class TransactionStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    CANCELLED = "CANCELLED"


class JournalKind(str, enum.Enum):
    TRANSACTION = "TRANSACTION"
    PAYMENT = "PAYMENT"
    ALLOCATION = "ALLOCATION"
    REVERSAL = "REVERSAL"


class PaymentType(str, enum.Enum):
    """RECEIPT: money in from a customer. DISBURSEMENT: money out to a supplier."""
    RECEIPT = "RECEIPT"
    DISBURSEMENT = "DISBURSEMENT"


class PaymentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    VOIDED = "VOIDED"


class IdentityKind(str, enum.Enum):
    """A counterpart is either a person or a company, never both."""
    PERSON = "PERSON"
    COMPANY = "COMPANY"


class SettlementStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERPAID = "OVERPAID"


class SystemAccount(str, enum.Enum):
    """Roles the posting rules need an account for."""
    CASH = "CASH"
    ACCOUNTS_RECEIVABLE = "ACCOUNTS_RECEIVABLE"
    INVENTORY = "INVENTORY"
    SUPPLIER_ADVANCES = "SUPPLIER_ADVANCES"
    ACCOUNTS_PAYABLE = "ACCOUNTS_PAYABLE"
    CUSTOMER_DEPOSITS = "CUSTOMER_DEPOSITS"
    SALES_REVENUE = "SALES_REVENUE"
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD"
