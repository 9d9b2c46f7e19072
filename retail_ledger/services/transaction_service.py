"""
Transaction lifecycle manager.

Owns the state machine of a business transaction:

    DRAFT --post--> POSTED --cancel--> CANCELLED
      \\______________cancel_____________/

Posting runs the inventory step and the ledger step in one atomic
unit. Either both land or neither does: a sale that cannot be
costed never reaches the ledger, and a journal that fails to
balance leaves every batch untouched.

Cancelling a posted transaction never deletes anything. Stock is
put back through the recorded consumptions, purchased batches are
voided, and the posting journal is reversed.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from retail_ledger.actor import ActorContext
from retail_ledger.exceptions import (
    IdempotencyConflictError,
    InvalidAmountError,
    InvalidStateTransitionError,
    NotFoundError,
)
from retail_ledger.models.catalog import ProductUnit
from retail_ledger.models.enums import EntryDirection, TransactionStatus, TransactionType
from retail_ledger.models.inventory import Batch, BatchConsumption
from retail_ledger.models.transaction import (
    AdjustmentLine,
    Purchase,
    PurchaseLine,
    Sale,
    SaleLine,
    Transaction,
)
from retail_ledger.schemas.transaction import AdjustmentCreate, PurchaseCreate, SaleCreate
from retail_ledger.services.audit import record_event
from retail_ledger.services.balance_service import BalanceCalculator
from retail_ledger.services.inventory_service import InventoryAllocator
from retail_ledger.services.ledger_service import InventoryEffect, LedgerPoster, to_money
from retail_ledger.services.party_service import PartyService
from retail_ledger.services.payment_service import PaymentService
from retail_ledger.services.unit_of_work import atomic, lock_one

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class TransactionLifecycle:

    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryAllocator(db)
        self.poster = LedgerPoster(db)
        self.balances = BalanceCalculator(db)
        self.parties = PartyService(db)
        self.payments = PaymentService(db)

    # --- Reads ---

    def get(self, transaction_id: int) -> Transaction:
        transaction = self.db.get(Transaction, transaction_id)
        if not transaction or transaction.is_deleted:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    def _existing(
        self, idempotency_key: str | None, transaction_type: TransactionType
    ) -> Transaction | None:
        """The transaction an earlier request created under this key, if any."""
        if idempotency_key is None:
            return None
        existing = self.db.execute(
            select(Transaction).where(Transaction.idempotency_key == idempotency_key)
        ).scalar_one_or_none()
        if existing is not None and existing.transaction_type != transaction_type:
            raise IdempotencyConflictError(
                idempotency_key, existing.transaction_type, transaction_type
            )
        return existing

    def _sellable_unit(self, product_unit_id: int) -> ProductUnit:
        unit = self.db.get(ProductUnit, product_unit_id)
        if not unit or unit.is_deleted or not unit.is_active:
            raise NotFoundError("Product unit", product_unit_id)
        return unit

    def _new_header(self, transaction_type, request, actor, total) -> Transaction:
        if request.payment_id is not None:
            self.payments.get_payment(request.payment_id)
        transaction = Transaction(
            idempotency_key=request.idempotency_key,
            transaction_type=transaction_type,
            status=TransactionStatus.DRAFT,
            total_amount=to_money(total),
            payment_id=request.payment_id,
            transaction_date=request.transaction_date or datetime.utcnow(),
            notes=request.notes,
            created_by_id=actor.user_id,
            updated_by_id=actor.user_id,
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    # --- Drafts ---

    def create_purchase(self, request: PurchaseCreate, actor: ActorContext) -> Transaction:
        """
        Create a draft purchase.

        Its total is the sum of each line's quantity x unit cost,
        rounded per line, which is also what posting adds to Inventory.
        """
        existing = self._existing(request.idempotency_key, TransactionType.PURCHASE)
        if existing:
            return existing

        if request.supplier_id is not None:
            self.parties.get_supplier(request.supplier_id)
        for line in request.lines:
            self._sellable_unit(line.product_unit_id)

        total = sum(
            (to_money(line.quantity * line.unit_cost) for line in request.lines), ZERO
        )

        with atomic(self.db):
            transaction = self._new_header(TransactionType.PURCHASE, request, actor, total)
            purchase = Purchase(
                transaction_id=transaction.id,
                supplier_id=request.supplier_id,
                invoice_number=request.invoice_number,
                purchased_by_id=actor.user_id,
            )
            self.db.add(purchase)
            self.db.flush()
            for line in request.lines:
                self.db.add(PurchaseLine(
                    purchase_id=purchase.id,
                    product_unit_id=line.product_unit_id,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                    production_date=line.production_date,
                    expiry_date=line.expiry_date,
                    batch_number=line.batch_number,
                ))

        logger.info("purchase drafted id=%s total=%s", transaction.id, transaction.total_amount)
        return transaction

    def create_sale(self, request: SaleCreate, actor: ActorContext) -> Transaction:
        """
        Create a draft sale.

        A line without a unit price takes the product unit's current
        sale price. Stock is not checked here; posting does that
        under lock.
        """
        existing = self._existing(request.idempotency_key, TransactionType.SALE)
        if existing:
            return existing

        if request.customer_id is not None:
            self.parties.get_customer(request.customer_id)

        priced = []
        for line in request.lines:
            unit = self._sellable_unit(line.product_unit_id)
            price = line.unit_price if line.unit_price is not None else unit.sale_price
            if price is None:
                raise InvalidAmountError(
                    f"Product unit {unit.id} has no sale price; give unit_price explicitly"
                )
            priced.append((line, price))

        total = sum((line.quantity * price for line, price in priced), ZERO)

        with atomic(self.db):
            transaction = self._new_header(TransactionType.SALE, request, actor, total)
            sale = Sale(
                transaction_id=transaction.id,
                customer_id=request.customer_id,
                sold_by_id=actor.user_id,
            )
            self.db.add(sale)
            self.db.flush()
            for line, price in priced:
                self.db.add(SaleLine(
                    sale_id=sale.id,
                    product_unit_id=line.product_unit_id,
                    quantity=line.quantity,
                    unit_price=price,
                ))

        logger.info("sale drafted id=%s total=%s", transaction.id, transaction.total_amount)
        return transaction

    def create_adjustment(self, request: AdjustmentCreate, actor: ActorContext) -> Transaction:
        """Create a draft manual journal. Its total is the debit side."""
        existing = self._existing(request.idempotency_key, TransactionType.ADJUSTMENT)
        if existing:
            return existing

        total = sum(
            (line.amount for line in request.lines
             if line.direction == EntryDirection.DEBIT),
            ZERO,
        )

        with atomic(self.db):
            transaction = self._new_header(TransactionType.ADJUSTMENT, request, actor, total)
            for line in request.lines:
                self.db.add(AdjustmentLine(
                    transaction_id=transaction.id,
                    account_id=line.account_id,
                    direction=line.direction,
                    amount=line.amount,
                ))

        logger.info("adjustment drafted id=%s total=%s", transaction.id, transaction.total_amount)
        return transaction

    # --- State transitions ---

    def _lock_transaction(self, transaction_id: int) -> Transaction:
        transaction = lock_one(
            self.db,
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.is_deleted.is_(False),
            ),
        )
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    def _lines(self, transaction: Transaction) -> list:
        """Purchase or sale lines of a transaction, in entry order."""
        if transaction.transaction_type == TransactionType.PURCHASE:
            stmt = (
                select(PurchaseLine)
                .join(Purchase, PurchaseLine.purchase_id == Purchase.id)
                .where(Purchase.transaction_id == transaction.id)
                .order_by(PurchaseLine.id)
            )
        elif transaction.transaction_type == TransactionType.SALE:
            stmt = (
                select(SaleLine)
                .join(Sale, SaleLine.sale_id == Sale.id)
                .where(Sale.transaction_id == transaction.id)
                .order_by(SaleLine.id)
            )
        else:
            return []
        return list(self.db.execute(stmt).scalars().all())

    def _product_unit_ids(self, lines: list) -> list[int]:
        return sorted({line.product_unit_id for line in lines})

    def post(self, transaction_id: int, actor: ActorContext) -> Transaction:
        """
        Post a draft: move stock, then write the journal.

        Product units are locked in ascending id order before any
        batch is touched, so two postings that share units always
        queue in the same order.
        """
        with atomic(self.db):
            transaction = self._lock_transaction(transaction_id)
            if not transaction.can_transition_to(TransactionStatus.POSTED):
                raise InvalidStateTransitionError(
                    "Transaction", transaction_id,
                    transaction.status, TransactionStatus.POSTED,
                )

            lines = self._lines(transaction)
            for product_unit_id in self._product_unit_ids(lines):
                self.inventory.lock_product_unit(product_unit_id)

            effect = InventoryEffect()
            if transaction.transaction_type == TransactionType.PURCHASE:
                for line in lines:
                    batch = self.inventory.receive_batch(
                        product_unit_id=line.product_unit_id,
                        quantity=line.quantity,
                        unit_cost=line.unit_cost,
                        production_date=line.production_date,
                        expiry_date=line.expiry_date,
                        batch_number=line.batch_number,
                        purchase_line_id=line.id,
                    )
                    effect.received_cost += to_money(batch.total_cost)
            elif transaction.transaction_type == TransactionType.SALE:
                for line in lines:
                    lots = self.inventory.consume(
                        line.product_unit_id, line.quantity, sale_line_id=line.id
                    )
                    effect.consumed_cost += self.inventory.cost_of(lots)

            self.poster.post_for_transaction(transaction, actor, effect)

            transaction.status = TransactionStatus.POSTED
            transaction.posted_at = datetime.utcnow()
            transaction.updated_by_id = actor.user_id
            record_event(
                self.db, "TRANSACTION_POSTED", "transaction", transaction.id, actor,
                transaction_type=transaction.transaction_type,
                total_amount=transaction.total_amount,
                received_cost=effect.received_cost,
                consumed_cost=effect.consumed_cost,
            )

        logger.info(
            "transaction posted id=%s type=%s total=%s",
            transaction.id, transaction.transaction_type.value, transaction.total_amount,
        )
        return transaction

    def cancel(
        self, transaction_id: int, actor: ActorContext, reason: str | None = None
    ) -> Transaction:
        """
        Cancel a draft or a posted transaction.

        A posted transaction must have no active payment allocations;
        deallocate them first. A posted purchase whose batches have
        been sold from cannot be cancelled until those sales are.
        """
        with atomic(self.db):
            transaction = self._lock_transaction(transaction_id)
            if not transaction.can_transition_to(TransactionStatus.CANCELLED):
                raise InvalidStateTransitionError(
                    "Transaction", transaction_id,
                    transaction.status, TransactionStatus.CANCELLED,
                )

            was_posted = transaction.status == TransactionStatus.POSTED
            if was_posted:
                if self.balances.allocated_to_transaction(transaction_id) > ZERO:
                    raise InvalidStateTransitionError(
                        "Transaction", transaction_id,
                        transaction.status, TransactionStatus.CANCELLED,
                        reason="transaction has active payment allocations",
                    )

                lines = self._lines(transaction)
                for product_unit_id in self._product_unit_ids(lines):
                    self.inventory.lock_product_unit(product_unit_id)

                line_ids = [line.id for line in lines]
                if transaction.transaction_type == TransactionType.PURCHASE and line_ids:
                    batch_ids = self.db.execute(
                        select(Batch.id)
                        .where(Batch.purchase_line_id.in_(line_ids))
                        .order_by(Batch.id)
                    ).scalars().all()
                    for batch_id in batch_ids:
                        self.inventory.void_batch(batch_id)
                elif transaction.transaction_type == TransactionType.SALE and line_ids:
                    consumption_ids = self.db.execute(
                        select(BatchConsumption.id)
                        .where(
                            BatchConsumption.sale_line_id.in_(line_ids),
                            BatchConsumption.reversed_at.is_(None),
                        )
                        .order_by(BatchConsumption.id)
                    ).scalars().all()
                    for consumption_id in consumption_ids:
                        self.inventory.reverse_consumption(consumption_id)

                journal = self.poster.posting_journal_for(transaction_id)
                if journal is not None:
                    self.poster.reverse_journal(
                        journal.id, actor,
                        description=f"Cancellation of transaction #{transaction_id}",
                    )

            transaction.status = TransactionStatus.CANCELLED
            transaction.cancelled_at = datetime.utcnow()
            transaction.updated_by_id = actor.user_id
            record_event(
                self.db, "TRANSACTION_CANCELLED", "transaction", transaction.id, actor,
                was_posted=was_posted, reason=reason,
            )

        logger.info(
            "transaction cancelled id=%s was_posted=%s reason=%s",
            transaction_id, was_posted, reason,
        )
        return transaction

    def settlement(self, transaction_id: int) -> dict:
        transaction = self.get(transaction_id)
        allocated = self.balances.allocated_to_transaction(transaction_id)
        total = to_money(transaction.total_amount)
        return {
            "transaction_id": transaction.id,
            "total_amount": total,
            "allocated_amount": allocated,
            "outstanding_amount": total - allocated,
            "status": self.balances.settlement_status(transaction_id),
        }
