"""
Payment allocation engine.

Money moves in two steps:

    record_payment  RECEIPT:       DEBIT  Cash (method account)
                                   CREDIT Customer Deposits
                    DISBURSEMENT:  DEBIT  Supplier Advances
                                   CREDIT Cash (method account)

    allocate        RECEIPT:       DEBIT  Customer Deposits
                                   CREDIT Receivable (customer or default AR)
                    DISBURSEMENT:  DEBIT  Payable (supplier or default AP)
                                   CREDIT Supplier Advances

So an unallocated receipt is a liability to the customer until it is
applied to a sale, and an unallocated disbursement is an advance to
the supplier until it is applied to a purchase.

Both caps (payment amount, transaction total) are checked with the
payment row and then the transaction row locked, so two concurrent
allocations can never jointly exceed either.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from retail_ledger.actor import ActorContext
from retail_ledger.exceptions import (
    InvalidAmountError,
    InvalidStateTransitionError,
    NotFoundError,
    OverAllocationError,
    PaymentMismatchError,
    RetailLedgerError,
)
from retail_ledger.models.enums import (
    EntryDirection,
    JournalKind,
    PaymentStatus,
    PaymentType,
    SystemAccount,
    TransactionStatus,
    TransactionType,
)
from retail_ledger.models.journal import Journal
from retail_ledger.models.party import PaymentMethod
from retail_ledger.models.payment import Payment, PaymentAllocation
from retail_ledger.models.transaction import Transaction
from retail_ledger.schemas.ledger import JournalLine
from retail_ledger.schemas.payment import PaymentCreate, PaymentMethodCreate
from retail_ledger.services.account_directory import AccountDirectory
from retail_ledger.services.audit import record_event
from retail_ledger.services.balance_service import BalanceCalculator
from retail_ledger.services.ledger_service import LedgerPoster, to_money
from retail_ledger.services.unit_of_work import atomic, lock_one

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Which transaction type each payment direction may settle
SETTLES: dict[PaymentType, TransactionType] = {
    PaymentType.RECEIPT: TransactionType.SALE,
    PaymentType.DISBURSEMENT: TransactionType.PURCHASE,
}


class PaymentService:

    def __init__(self, db: Session):
        self.db = db
        self.directory = AccountDirectory(db)
        self.poster = LedgerPoster(db)
        self.balances = BalanceCalculator(db)

    # --- Payment methods ---

    def create_method(self, request: PaymentMethodCreate) -> PaymentMethod:
        if self.db.execute(
            select(PaymentMethod).where(PaymentMethod.name == request.name)
        ).scalar_one_or_none():
            raise RetailLedgerError(f"Payment method '{request.name}' already exists")
        if request.account_id is not None:
            self.directory.get_account(request.account_id)

        method = PaymentMethod(
            name=request.name,
            description=request.description,
            active_for_sales=request.active_for_sales,
            active_for_purchases=request.active_for_purchases,
            account_id=request.account_id,
        )
        self.db.add(method)
        self.db.flush()
        return method

    def _cash_account_id(self, method: PaymentMethod) -> int:
        if method.account_id is not None:
            return method.account_id
        return self.directory.system_account(SystemAccount.CASH).id

    # --- Payments ---

    def get_payment(self, payment_id: int) -> Payment:
        payment = self.db.get(Payment, payment_id)
        if not payment:
            raise NotFoundError("Payment", payment_id)
        return payment

    def record_payment(self, request: PaymentCreate, actor: ActorContext) -> Payment:
        """
        Record a cash movement and post its PAYMENT journal.

        The method must be enabled for the payment's direction:
        receipts need active_for_sales, disbursements
        active_for_purchases.
        """
        method = self.db.get(PaymentMethod, request.method_id)
        if not method:
            raise NotFoundError("Payment method", request.method_id)

        if request.payment_type == PaymentType.RECEIPT and not method.active_for_sales:
            raise PaymentMismatchError(
                f"Payment method '{method.name}' is not enabled for sales receipts"
            )
        if request.payment_type == PaymentType.DISBURSEMENT and not method.active_for_purchases:
            raise PaymentMismatchError(
                f"Payment method '{method.name}' is not enabled for purchase disbursements"
            )

        amount = to_money(request.amount)
        if amount <= ZERO:
            raise InvalidAmountError(f"Payment amount must be positive, got {amount}")

        cash_id = self._cash_account_id(method)
        if request.payment_type == PaymentType.RECEIPT:
            debit_id = cash_id
            credit_id = self.directory.system_account(SystemAccount.CUSTOMER_DEPOSITS).id
        else:
            debit_id = self.directory.system_account(SystemAccount.SUPPLIER_ADVANCES).id
            credit_id = cash_id

        with atomic(self.db):
            payment = Payment(
                payment_date=request.payment_date or datetime.utcnow(),
                method_id=method.id,
                amount=amount,
                payment_type=request.payment_type,
                notes=request.notes,
                created_by_id=actor.user_id,
            )
            self.db.add(payment)
            self.db.flush()

            self.poster.post_journal(
                journal_date=payment.payment_date,
                entries=[
                    JournalLine(account_id=debit_id, amount=amount,
                                direction=EntryDirection.DEBIT),
                    JournalLine(account_id=credit_id, amount=amount,
                                direction=EntryDirection.CREDIT),
                ],
                actor=actor,
                description=f"{request.payment_type.value.title()} #{payment.id}",
                kind=JournalKind.PAYMENT,
                payment_id=payment.id,
            )
            record_event(
                self.db, "PAYMENT_RECORDED", "payment", payment.id, actor,
                amount=amount, payment_type=payment.payment_type, method=method.name,
            )

        logger.info(
            "payment recorded id=%s type=%s amount=%s method=%s",
            payment.id, payment.payment_type.value, amount, method.name,
        )
        return payment

    def void_payment(self, payment_id: int, actor: ActorContext) -> Payment:
        """
        Withdraw a payment recorded in error.

        Refused while any allocation is still active: deallocate
        first, so each settlement is reversed explicitly.
        """
        with atomic(self.db):
            payment = lock_one(self.db, select(Payment).where(Payment.id == payment_id))
            if payment is None:
                raise NotFoundError("Payment", payment_id)
            if payment.status != PaymentStatus.ACTIVE:
                raise InvalidStateTransitionError(
                    "Payment", payment_id, payment.status, PaymentStatus.VOIDED,
                )
            if self.balances.allocated_from_payment(payment_id) > ZERO:
                raise InvalidStateTransitionError(
                    "Payment", payment_id, payment.status, PaymentStatus.VOIDED,
                    reason="payment still has active allocations",
                )

            journal = self.db.execute(
                select(Journal).where(
                    Journal.payment_id == payment_id,
                    Journal.kind == JournalKind.PAYMENT,
                )
            ).scalar_one_or_none()
            if journal is not None:
                self.poster.reverse_journal(
                    journal.id, actor, description=f"Void of payment #{payment_id}"
                )

            payment.status = PaymentStatus.VOIDED
            payment.voided_at = datetime.utcnow()
            record_event(self.db, "PAYMENT_VOIDED", "payment", payment_id, actor,
                         amount=payment.amount)

        logger.info("payment voided id=%s", payment_id)
        return payment

    # --- Allocations ---

    def allocate(
        self,
        payment_id: int,
        transaction_id: int,
        amount: Decimal,
        actor: ActorContext,
    ) -> PaymentAllocation:
        """
        Apply part of a payment to a posted transaction.

        Raises OverAllocationError if the payment's unallocated
        remainder or the transaction's outstanding amount is smaller
        than ``amount``. Settlement status is derived from the
        allocations afterwards; the transaction row is not changed.
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidAmountError(f"Allocation amount must be positive, got {amount}")

        with atomic(self.db):
            payment = lock_one(self.db, select(Payment).where(Payment.id == payment_id))
            if payment is None:
                raise NotFoundError("Payment", payment_id)
            transaction = lock_one(
                self.db,
                select(Transaction).where(
                    Transaction.id == transaction_id,
                    Transaction.is_deleted.is_(False),
                ),
            )
            if transaction is None:
                raise NotFoundError("Transaction", transaction_id)

            if payment.status != PaymentStatus.ACTIVE:
                raise PaymentMismatchError(f"Payment {payment_id} is voided")
            if transaction.status != TransactionStatus.POSTED:
                raise InvalidStateTransitionError(
                    "Transaction", transaction_id, transaction.status, "ALLOCATED",
                    reason="only posted transactions can receive payments",
                )
            if SETTLES[payment.payment_type] != transaction.transaction_type:
                raise PaymentMismatchError(
                    f"A {payment.payment_type.value} payment cannot settle a "
                    f"{transaction.transaction_type.value} transaction"
                )

            payment_cap = to_money(payment.amount)
            payment_allocated = self.balances.allocated_from_payment(payment_id)
            if payment_allocated + amount > payment_cap:
                raise OverAllocationError(
                    "payment", payment_id, payment_cap, payment_allocated, amount
                )

            transaction_cap = to_money(transaction.total_amount)
            transaction_allocated = self.balances.allocated_to_transaction(transaction_id)
            if transaction_allocated + amount > transaction_cap:
                raise OverAllocationError(
                    "transaction", transaction_id, transaction_cap,
                    transaction_allocated, amount,
                )

            allocation = PaymentAllocation(
                payment_id=payment_id,
                transaction_id=transaction_id,
                amount=amount,
                created_by_id=actor.user_id,
            )
            self.db.add(allocation)
            self.db.flush()

            self.poster.post_journal(
                journal_date=datetime.utcnow(),
                entries=self._settlement_lines(payment, transaction, amount),
                actor=actor,
                description=(
                    f"Payment #{payment_id} applied to transaction #{transaction_id}"
                ),
                kind=JournalKind.ALLOCATION,
                payment_id=payment_id,
                allocation_id=allocation.id,
            )
            record_event(
                self.db, "PAYMENT_ALLOCATED", "payment_allocation", allocation.id, actor,
                payment_id=payment_id, transaction_id=transaction_id, amount=amount,
            )

        logger.info(
            "payment allocated id=%s payment=%s transaction=%s amount=%s",
            allocation.id, payment_id, transaction_id, amount,
        )
        return allocation

    def _settlement_lines(
        self, payment: Payment, transaction: Transaction, amount: Decimal
    ) -> list[JournalLine]:
        if payment.payment_type == PaymentType.RECEIPT:
            debit_id = self.directory.system_account(SystemAccount.CUSTOMER_DEPOSITS).id
            credit_id = self.poster.receivable_account_id(transaction)
        else:
            debit_id = self.poster.payable_account_id(transaction)
            credit_id = self.directory.system_account(SystemAccount.SUPPLIER_ADVANCES).id
        return [
            JournalLine(account_id=debit_id, amount=amount, direction=EntryDirection.DEBIT),
            JournalLine(account_id=credit_id, amount=amount, direction=EntryDirection.CREDIT),
        ]

    def deallocate(self, allocation_id: int, actor: ActorContext) -> PaymentAllocation:
        """Soft-remove an allocation and reverse its settlement journal."""
        with atomic(self.db):
            allocation = self.db.get(PaymentAllocation, allocation_id)
            if allocation is None or not allocation.is_active:
                raise NotFoundError("Allocation", allocation_id)

            lock_one(self.db, select(Payment).where(Payment.id == allocation.payment_id))
            allocation = lock_one(
                self.db,
                select(PaymentAllocation).where(PaymentAllocation.id == allocation_id),
            )
            if not allocation.is_active:
                raise NotFoundError("Allocation", allocation_id)

            journal = self.db.execute(
                select(Journal).where(
                    Journal.allocation_id == allocation_id,
                    Journal.kind == JournalKind.ALLOCATION,
                )
            ).scalar_one_or_none()
            if journal is not None:
                self.poster.reverse_journal(
                    journal.id, actor,
                    description=f"Removal of allocation #{allocation_id}",
                )

            allocation.removed_at = datetime.utcnow()
            allocation.removed_by_id = actor.user_id
            record_event(
                self.db, "PAYMENT_DEALLOCATED", "payment_allocation", allocation_id, actor,
                payment_id=allocation.payment_id,
                transaction_id=allocation.transaction_id,
                amount=allocation.amount,
            )

        logger.info(
            "allocation removed id=%s payment=%s transaction=%s amount=%s",
            allocation_id, allocation.payment_id, allocation.transaction_id,
            allocation.amount,
        )
        return allocation
