"""
Balance calculator: read-side aggregation over the ledger.

Nothing here is stored. Balances come from ledger entries and
settlement status from allocations, recomputed on every call, so
they can never drift from the records they summarize.
"""

from datetime import datetime, date, time
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from retail_ledger.exceptions import NotFoundError
from retail_ledger.models.account import Account
from retail_ledger.models.enums import NormalBalance, SettlementStatus
from retail_ledger.models.journal import LedgerEntry
from retail_ledger.models.payment import Payment, PaymentAllocation
from retail_ledger.models.transaction import Transaction
from retail_ledger.services.ledger_service import to_money

ZERO = Decimal("0")


def as_of_bound(as_of: datetime | date | None) -> datetime | None:
    """A bare date means 'through the end of that day'."""
    if as_of is None or isinstance(as_of, datetime):
        return as_of
    return datetime.combine(as_of, time.max)


def natural_balance(normal_balance: NormalBalance, debits: Decimal, credits: Decimal) -> Decimal:
    """
    Express debits/credits in the account's natural direction.

    Debit-normal (assets, expenses): debits - credits
    Credit-normal (liabilities, equity, revenue): credits - debits
    """
    if normal_balance == NormalBalance.DEBIT:
        return debits - credits
    return credits - debits


class BalanceCalculator:

    def __init__(self, db: Session):
        self.db = db

    def _sums(self, account_id: int | None = None, as_of=None) -> tuple[Decimal, Decimal]:
        stmt = select(
            func.coalesce(func.sum(LedgerEntry.debit_amount), 0),
            func.coalesce(func.sum(LedgerEntry.credit_amount), 0),
        )
        if account_id is not None:
            stmt = stmt.where(LedgerEntry.account_id == account_id)
        bound = as_of_bound(as_of)
        if bound is not None:
            stmt = stmt.where(LedgerEntry.entry_date <= bound)
        debits, credits = self.db.execute(stmt).one()
        return to_money(debits), to_money(credits)

    def account_balance(self, account_id: int, as_of: datetime | date | None = None) -> Decimal:
        """
        Balance of an account through ``as_of`` (inclusive).

        The sign is flipped for credit-normal accounts, so a
        positive result always means "more of what this account
        naturally holds".
        """
        account = self.db.get(Account, account_id)
        if not account:
            raise NotFoundError("Account", account_id)

        debits, credits = self._sums(account_id, as_of)
        return natural_balance(account.normal_balance, debits, credits)

    def trial_balance(self, as_of: datetime | date | None = None) -> dict:
        """Per-account totals and natural balances, plus grand totals."""
        stmt = (
            select(
                LedgerEntry.account_id,
                func.coalesce(func.sum(LedgerEntry.debit_amount), 0),
                func.coalesce(func.sum(LedgerEntry.credit_amount), 0),
            )
            .group_by(LedgerEntry.account_id)
        )
        bound = as_of_bound(as_of)
        if bound is not None:
            stmt = stmt.where(LedgerEntry.entry_date <= bound)
        totals = {row[0]: (to_money(row[1]), to_money(row[2]))
                  for row in self.db.execute(stmt).all()}

        accounts = self.db.execute(
            select(Account).where(Account.id.in_(list(totals))).order_by(Account.code)
        ).scalars().all()

        lines = []
        for account in accounts:
            debits, credits = totals[account.id]
            lines.append({
                "account_id": account.id,
                "account_code": account.code,
                "account_name": account.name,
                "normal_balance": account.normal_balance,
                "total_debits": debits,
                "total_credits": credits,
                "balance": natural_balance(account.normal_balance, debits, credits),
            })

        total_debits = sum((line["total_debits"] for line in lines), ZERO)
        total_credits = sum((line["total_credits"] for line in lines), ZERO)
        return {
            "as_of": bound,
            "lines": lines,
            "total_debits": total_debits,
            "total_credits": total_credits,
            "is_balanced": total_debits == total_credits,
        }

    def check_integrity(self) -> dict:
        """
        Verify the whole ledger balances.

        Every journal balances individually, so the grand totals
        must match too. A difference here means something wrote
        entries around the LedgerPoster.
        """
        debits, credits = self._sums()
        return {
            "total_debits": debits,
            "total_credits": credits,
            "difference": debits - credits,
            "is_balanced": debits == credits,
        }

    # --- Settlement ---

    def allocated_to_transaction(self, transaction_id: int) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(PaymentAllocation.amount), 0)).where(
                PaymentAllocation.transaction_id == transaction_id,
                PaymentAllocation.removed_at.is_(None),
            )
        ).scalar()
        return to_money(total)

    def allocated_from_payment(self, payment_id: int) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(PaymentAllocation.amount), 0)).where(
                PaymentAllocation.payment_id == payment_id,
                PaymentAllocation.removed_at.is_(None),
            )
        ).scalar()
        return to_money(total)

    def _get_transaction(self, transaction_id: int) -> Transaction:
        transaction = self.db.get(Transaction, transaction_id)
        if not transaction or transaction.is_deleted:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    def settlement_status(self, transaction_id: int) -> SettlementStatus:
        transaction = self._get_transaction(transaction_id)
        allocated = self.allocated_to_transaction(transaction_id)
        return classify_settlement(to_money(transaction.total_amount), allocated)

    def outstanding_amount(self, transaction_id: int) -> Decimal:
        transaction = self._get_transaction(transaction_id)
        return to_money(transaction.total_amount) - self.allocated_to_transaction(transaction_id)

    def payment_unallocated(self, payment_id: int) -> Decimal:
        payment = self.db.get(Payment, payment_id)
        if not payment:
            raise NotFoundError("Payment", payment_id)
        return to_money(payment.amount) - self.allocated_from_payment(payment_id)


def classify_settlement(total: Decimal, allocated: Decimal) -> SettlementStatus:
    if allocated > total:
        return SettlementStatus.OVERPAID
    if allocated == total:
        return SettlementStatus.PAID
    if allocated == ZERO:
        return SettlementStatus.UNPAID
    return SettlementStatus.PARTIALLY_PAID
