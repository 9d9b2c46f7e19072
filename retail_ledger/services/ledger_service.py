"""
Ledger poster: the only writer of journals and ledger entries.

This service enforces the fundamental rules:
1. Every journal must balance (sum of debits == sum of credits, exactly)
2. Journals are append-only; corrections are reversal journals
3. Accounts must exist and be active
4. A journal and all its lines become visible together

Posting rules for business transactions:

    Purchase:   DEBIT  Inventory            (sum of batch total cost)
                CREDIT Payable              (supplier account or default AP)

    Sale:       DEBIT  Receivable           (customer account or default AR)
                CREDIT Sales Revenue        (sale total)
                DEBIT  Cost of Goods Sold   (cost of consumed batches)
                CREDIT Inventory            (same)

    Adjustment: the caller's own lines, under the same balance rule.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.orm import Session

from retail_ledger.actor import ActorContext
from retail_ledger.exceptions import (
    InactiveAccountError,
    InvalidAmountError,
    InvalidReversalError,
    NotFoundError,
    UnbalancedJournalError,
)
from retail_ledger.models.account import Account
from retail_ledger.models.enums import (
    EntryDirection,
    JournalKind,
    SystemAccount,
    TransactionType,
)
from retail_ledger.models.journal import Journal, LedgerEntry
from retail_ledger.models.transaction import Transaction
from retail_ledger.schemas.ledger import JournalLine
from retail_ledger.services.account_directory import AccountDirectory
from retail_ledger.services.unit_of_work import atomic, lock_one

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value) -> Decimal:
    """Quantize to cents, half-up. Accepts Decimal, int, float or str."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class InventoryEffect:
    """Monetary result of the inventory step of a posting."""
    received_cost: Decimal = ZERO
    consumed_cost: Decimal = ZERO


class LedgerPoster:
    """
    All ledger writes pass through this service.

    The service takes a database session as a constructor
    argument. The caller controls the outer transaction boundary;
    each journal is written inside its own savepoint.
    """

    def __init__(self, db: Session):
        self.db = db
        self.directory = AccountDirectory(db)

    def post_journal(
        self,
        journal_date: datetime,
        entries: list[JournalLine],
        actor: ActorContext,
        description: str | None = None,
        kind: JournalKind = JournalKind.TRANSACTION,
        transaction_id: int | None = None,
        payment_id: int | None = None,
        allocation_id: int | None = None,
        reverses_journal_id: int | None = None,
        allow_inactive: bool = False,
    ) -> Journal:
        """
        Post a balanced set of entries as one journal.

        Enforces:
        - at least one entry on each side, every amount positive
        - all referenced accounts exist and are active
          (reversals may touch accounts deactivated since)
        - total debits equal total credits, with no tolerance

        If any check fails, nothing is written.
        """
        if len(entries) < 2:
            raise InvalidAmountError("A journal needs at least two entries")
        for line in entries:
            if line.amount <= ZERO:
                raise InvalidAmountError(
                    f"Entry amounts must be positive, got {line.amount}"
                )

        # --- Validate all accounts ---
        account_ids = {line.account_id for line in entries}
        accounts = self.db.execute(
            select(Account).where(Account.id.in_(sorted(account_ids)))
        ).scalars().all()
        accounts_by_id = {a.id: a for a in accounts}

        missing = account_ids - set(accounts_by_id)
        if missing:
            raise NotFoundError("Account", sorted(missing))

        if not allow_inactive:
            for account in accounts_by_id.values():
                if not account.is_active:
                    raise InactiveAccountError(account.code)

        # --- Enforce balance rule ---
        total_debits = sum(
            (line.amount for line in entries if line.direction == EntryDirection.DEBIT),
            ZERO,
        )
        total_credits = sum(
            (line.amount for line in entries if line.direction == EntryDirection.CREDIT),
            ZERO,
        )
        if total_debits != total_credits:
            raise UnbalancedJournalError(total_debits, total_credits)

        # --- Write header and lines together ---
        with atomic(self.db):
            journal = Journal(
                journal_date=journal_date,
                description=description,
                kind=kind,
                transaction_id=transaction_id,
                payment_id=payment_id,
                allocation_id=allocation_id,
                reverses_journal_id=reverses_journal_id,
                created_by_id=actor.user_id,
            )
            self.db.add(journal)
            self.db.flush()

            for line in entries:
                is_debit = line.direction == EntryDirection.DEBIT
                self.db.add(LedgerEntry(
                    journal_id=journal.id,
                    account_id=line.account_id,
                    entry_date=journal_date,
                    debit_amount=line.amount if is_debit else ZERO,
                    credit_amount=ZERO if is_debit else line.amount,
                ))

        self.db.refresh(journal)
        logger.info(
            "journal posted id=%s kind=%s debits=%s credits=%s transaction=%s payment=%s",
            journal.id, kind.value, total_debits, total_credits,
            transaction_id, payment_id,
        )
        return journal

    def post_for_transaction(
        self,
        transaction: Transaction,
        actor: ActorContext,
        inventory_effect: InventoryEffect | None = None,
    ) -> Journal | None:
        """
        Derive and post the journal for a business transaction.

        Returns None when the transaction moves no money at all
        (e.g. a sale of zero-cost, zero-price goods).
        """
        effect = inventory_effect or InventoryEffect()
        lines = self.build_lines(transaction, effect)
        if not lines:
            logger.info("transaction %s has no monetary effect; no journal", transaction.id)
            return None

        return self.post_journal(
            journal_date=transaction.transaction_date,
            entries=lines,
            actor=actor,
            description=(
                f"{transaction.transaction_type.value.title()} "
                f"#{transaction.id}"
            ),
            kind=JournalKind.TRANSACTION,
            transaction_id=transaction.id,
        )

    def build_lines(
        self, transaction: Transaction, effect: InventoryEffect
    ) -> list[JournalLine]:
        """Apply the posting rule for the transaction's type."""
        if transaction.transaction_type == TransactionType.PURCHASE:
            return self._purchase_lines(transaction, effect)
        if transaction.transaction_type == TransactionType.SALE:
            return self._sale_lines(transaction, effect)
        return [
            JournalLine(
                account_id=line.account_id,
                amount=line.amount,
                direction=line.direction,
            )
            for line in transaction.adjustment_lines
        ]

    def payable_account_id(self, transaction: Transaction) -> int:
        """Supplier's own payable account, else the default AP account."""
        supplier = transaction.purchase.supplier if transaction.purchase else None
        if supplier is not None and supplier.account_id is not None:
            return supplier.account_id
        return self.directory.system_account(SystemAccount.ACCOUNTS_PAYABLE).id

    def receivable_account_id(self, transaction: Transaction) -> int:
        """Customer's own receivable account, else the default AR account."""
        customer = transaction.sale.customer if transaction.sale else None
        if customer is not None and customer.account_id is not None:
            return customer.account_id
        return self.directory.system_account(SystemAccount.ACCOUNTS_RECEIVABLE).id

    def _purchase_lines(self, transaction, effect) -> list[JournalLine]:
        cost = to_money(effect.received_cost)
        if cost == ZERO:
            return []

        inventory = self.directory.system_account(SystemAccount.INVENTORY)
        return [
            JournalLine(account_id=inventory.id, amount=cost,
                        direction=EntryDirection.DEBIT),
            JournalLine(account_id=self.payable_account_id(transaction), amount=cost,
                        direction=EntryDirection.CREDIT),
        ]

    def _sale_lines(self, transaction, effect) -> list[JournalLine]:
        lines = []
        revenue = to_money(transaction.total_amount)
        if revenue > ZERO:
            sales = self.directory.system_account(SystemAccount.SALES_REVENUE)
            lines += [
                JournalLine(account_id=self.receivable_account_id(transaction),
                            amount=revenue, direction=EntryDirection.DEBIT),
                JournalLine(account_id=sales.id, amount=revenue,
                            direction=EntryDirection.CREDIT),
            ]

        cost = to_money(effect.consumed_cost)
        if cost > ZERO:
            cogs = self.directory.system_account(SystemAccount.COST_OF_GOODS_SOLD)
            inventory = self.directory.system_account(SystemAccount.INVENTORY)
            lines += [
                JournalLine(account_id=cogs.id, amount=cost,
                            direction=EntryDirection.DEBIT),
                JournalLine(account_id=inventory.id, amount=cost,
                            direction=EntryDirection.CREDIT),
            ]
        return lines

    def reverse_journal(
        self,
        journal_id: int,
        actor: ActorContext,
        description: str | None = None,
    ) -> Journal:
        """
        Post the mirror image of a journal.

        The original is not modified. A new REVERSAL journal is
        created with every debit and credit swapped, pointing back at
        the original. A journal can be reversed once, and reversal
        journals themselves cannot be reversed.
        """
        with atomic(self.db):
            original = lock_one(self.db, select(Journal).where(Journal.id == journal_id))
            if original is None:
                raise NotFoundError("Journal", journal_id)
            if original.kind == JournalKind.REVERSAL:
                raise InvalidReversalError(
                    f"Journal {journal_id} is itself a reversal"
                )
            already = self.db.execute(
                select(Journal.id).where(Journal.reverses_journal_id == journal_id)
            ).scalar_one_or_none()
            if already is not None:
                raise InvalidReversalError(
                    f"Journal {journal_id} was already reversed by journal {already}"
                )

            swapped = [
                JournalLine(
                    account_id=entry.account_id,
                    amount=entry.amount,
                    direction=(
                        EntryDirection.CREDIT
                        if entry.direction == EntryDirection.DEBIT
                        else EntryDirection.DEBIT
                    ),
                )
                for entry in original.entries
            ]

            reversal = self.post_journal(
                journal_date=datetime.utcnow(),
                entries=swapped,
                actor=actor,
                description=description or f"Reversal of journal {original.id}",
                kind=JournalKind.REVERSAL,
                transaction_id=(
                    original.transaction_id
                    if original.kind == JournalKind.TRANSACTION else None
                ),
                payment_id=original.payment_id,
                allocation_id=original.allocation_id,
                reverses_journal_id=original.id,
                allow_inactive=True,
            )
        return reversal

    def get_journal(self, journal_id: int) -> Journal:
        journal = self.db.get(Journal, journal_id)
        if not journal:
            raise NotFoundError("Journal", journal_id)
        return journal

    def journals_for_transaction(self, transaction_id: int) -> list[Journal]:
        return list(self.db.execute(
            select(Journal)
            .where(Journal.transaction_id == transaction_id)
            .order_by(Journal.id)
        ).scalars().all())

    def posting_journal_for(self, transaction_id: int) -> Journal | None:
        return self.db.execute(
            select(Journal).where(
                Journal.transaction_id == transaction_id,
                Journal.kind == JournalKind.TRANSACTION,
            )
        ).scalar_one_or_none()

    def entries_for_account(self, account_id: int) -> list[LedgerEntry]:
        """Return all entries for an account, newest first."""
        if not self.db.get(Account, account_id):
            raise NotFoundError("Account", account_id)
        return list(self.db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.entry_date.desc(), LedgerEntry.id.desc())
        ).scalars().all())
