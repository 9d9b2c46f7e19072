"""Business logic services."""

from retail_ledger.services.account_directory import AccountDirectory
from retail_ledger.services.balance_service import BalanceCalculator
from retail_ledger.services.inventory_service import InventoryAllocator
from retail_ledger.services.ledger_service import LedgerPoster
from retail_ledger.services.party_service import PartyService
from retail_ledger.services.payment_service import PaymentService
from retail_ledger.services.transaction_service import TransactionLifecycle

__all__ = [
    "AccountDirectory",
    "BalanceCalculator",
    "InventoryAllocator",
    "LedgerPoster",
    "PartyService",
    "PaymentService",
    "TransactionLifecycle",
]
