"""
Tests for the TransactionLifecycle.

Covers drafting, posting (stock and ledger together) and
cancellation of purchases, sales and adjustments.
"""

from decimal import Decimal

import pytest

from retail_ledger.actor import ActorContext
from retail_ledger.exceptions import (
    ContentionError,
    IdempotencyConflictError,
    InsufficientStockError,
    InvalidReversalError,
    InvalidStateTransitionError,
    NotFoundError,
    UnbalancedJournalError,
)
from retail_ledger.models.audit_log import AuditLog
from retail_ledger.models.enums import (
    EntryDirection,
    IdentityKind,
    JournalKind,
    PaymentType,
    TransactionStatus,
    TransactionType,
)
from retail_ledger.models.inventory import Batch
from retail_ledger.models.journal import Journal
from retail_ledger.schemas.account import CounterpartCreate, CounterpartIdentity
from retail_ledger.schemas.ledger import JournalLine
from retail_ledger.schemas.payment import PaymentCreate
from retail_ledger.schemas.transaction import (
    AdjustmentCreate,
    PurchaseCreate,
    PurchaseLineCreate,
    SaleCreate,
    SaleLineCreate,
)
from retail_ledger.services.balance_service import BalanceCalculator
from retail_ledger.services.inventory_service import InventoryAllocator
from retail_ledger.services.ledger_service import LedgerPoster
from retail_ledger.services.party_service import PartyService
from retail_ledger.services.payment_service import PaymentService
from retail_ledger.services.transaction_service import TransactionLifecycle
from retail_ledger.services.unit_of_work import retry_on_contention

ACTOR = ActorContext(user_id=5)


def draft_purchase(db_session, unit, quantity, cost, key=None, **line_fields):
    service = TransactionLifecycle(db_session)
    txn = service.create_purchase(PurchaseCreate(
        idempotency_key=key,
        lines=[PurchaseLineCreate(
            product_unit_id=unit.id,
            quantity=Decimal(quantity),
            unit_cost=Decimal(cost),
            **line_fields,
        )],
    ), ACTOR)
    db_session.commit()
    return txn


def posted_purchase(db_session, unit, quantity, cost, **line_fields):
    txn = draft_purchase(db_session, unit, quantity, cost, **line_fields)
    TransactionLifecycle(db_session).post(txn.id, ACTOR)
    db_session.commit()
    return txn


def draft_sale(db_session, unit, quantity, price=None, customer_id=None):
    txn = TransactionLifecycle(db_session).create_sale(SaleCreate(
        customer_id=customer_id,
        lines=[SaleLineCreate(
            product_unit_id=unit.id,
            quantity=Decimal(quantity),
            unit_price=Decimal(price) if price is not None else None,
        )],
    ), ACTOR)
    db_session.commit()
    return txn


def balance(db_session, account):
    return BalanceCalculator(db_session).account_balance(account.id)


class TestDrafts:

    def test_purchase_total_is_derived(self, db_session, chart, product_unit):
        txn = draft_purchase(db_session, product_unit, "100", "2.00")

        assert txn.status == TransactionStatus.DRAFT
        assert txn.transaction_type == TransactionType.PURCHASE
        assert txn.total_amount == Decimal("200.00")
        assert txn.created_by_id == 5

    def test_sale_price_defaults_to_unit_price(self, db_session, chart, product_unit):
        txn = draft_sale(db_session, product_unit, "3")
        assert txn.total_amount == Decimal("15.00")

    def test_idempotency_key_returns_existing(self, db_session, chart, product_unit):
        first = draft_purchase(db_session, product_unit, "10", "1.00", key="po-1")
        second = draft_purchase(db_session, product_unit, "99", "9.00", key="po-1")

        assert first.id == second.id
        assert second.total_amount == Decimal("10.00")

    def test_idempotency_key_of_another_type_conflicts(self, db_session, chart, product_unit):
        draft_purchase(db_session, product_unit, "10", "1.00", key="shared-1")

        with pytest.raises(IdempotencyConflictError, match="PURCHASE"):
            TransactionLifecycle(db_session).create_sale(SaleCreate(
                idempotency_key="shared-1",
                lines=[SaleLineCreate(product_unit_id=product_unit.id, quantity=Decimal("1"))],
            ), ACTOR)

    def test_purchase_linked_to_triggering_payment(
        self, db_session, chart, product_unit, cash_method
    ):
        payment = PaymentService(db_session).record_payment(PaymentCreate(
            method_id=cash_method.id, amount=Decimal("40.00"),
            payment_type=PaymentType.DISBURSEMENT,
        ), ACTOR)
        db_session.commit()

        txn = TransactionLifecycle(db_session).create_purchase(PurchaseCreate(
            payment_id=payment.id,
            lines=[PurchaseLineCreate(
                product_unit_id=product_unit.id, quantity=Decimal("20"), unit_cost=Decimal("2.00"),
            )],
        ), ACTOR)
        db_session.commit()

        assert txn.payment_id == payment.id

    def test_unknown_triggering_payment(self, db_session, chart, product_unit):
        with pytest.raises(NotFoundError, match="Payment 404"):
            TransactionLifecycle(db_session).create_purchase(PurchaseCreate(
                payment_id=404,
                lines=[PurchaseLineCreate(
                    product_unit_id=product_unit.id, quantity=Decimal("1"), unit_cost=Decimal("1.00"),
                )],
            ), ACTOR)

    def test_unknown_product_unit(self, db_session, chart):
        with pytest.raises(NotFoundError):
            TransactionLifecycle(db_session).create_sale(SaleCreate(
                lines=[SaleLineCreate(product_unit_id=404, quantity=Decimal("1"))],
            ), ACTOR)

    def test_unknown_customer(self, db_session, chart, product_unit):
        with pytest.raises(NotFoundError):
            draft_sale(db_session, product_unit, "1", customer_id=77)

    def test_drafting_touches_neither_stock_nor_ledger(self, db_session, chart, product_unit):
        draft_purchase(db_session, product_unit, "100", "2.00")
        assert db_session.query(Batch).count() == 0
        assert db_session.query(Journal).count() == 0


class TestPostPurchase:

    def test_creates_one_batch_per_line(self, db_session, chart, product_unit):
        posted_purchase(db_session, product_unit, "100", "2.00", batch_number="L-7")

        batches = InventoryAllocator(db_session).list_batches(product_unit.id)
        assert len(batches) == 1
        assert batches[0].remaining_quantity == Decimal("100")
        assert batches[0].unit_cost == Decimal("2.00")
        assert batches[0].batch_number == "L-7"

    def test_debits_inventory_credits_payable(self, db_session, chart, product_unit):
        txn = posted_purchase(db_session, product_unit, "100", "2.00")

        assert txn.status == TransactionStatus.POSTED
        assert txn.posted_at is not None
        assert balance(db_session, chart["1301"]) == Decimal("200.00")
        assert balance(db_session, chart["2101"]) == Decimal("200.00")

    def test_supplier_account_overrides_default_payable(
        self, db_session, chart, product_unit
    ):
        from retail_ledger.schemas.account import AccountCreate
        from retail_ledger.services.account_directory import AccountDirectory

        own = AccountDirectory(db_session).create_account(
            AccountCreate(code="2102", name="Payable: Acme",
                          subcategory_id=chart["2101"].subcategory_id),
            ACTOR,
        )
        supplier = PartyService(db_session).create_supplier(CounterpartCreate(
            identity=CounterpartIdentity(kind=IdentityKind.COMPANY, id=12),
            account_id=own.id,
        ), ACTOR)
        db_session.commit()

        service = TransactionLifecycle(db_session)
        txn = service.create_purchase(PurchaseCreate(
            supplier_id=supplier.id,
            lines=[PurchaseLineCreate(product_unit_id=product_unit.id,
                                      quantity=Decimal("4"), unit_cost=Decimal("2.50"))],
        ), ACTOR)
        service.post(txn.id, ACTOR)
        db_session.commit()

        assert balance(db_session, own) == Decimal("10.00")
        assert balance(db_session, chart["2101"]) == Decimal("0.00")

    def test_cannot_post_twice(self, db_session, chart, product_unit):
        txn = posted_purchase(db_session, product_unit, "10", "1.00")

        with pytest.raises(InvalidStateTransitionError, match="POSTED to POSTED"):
            TransactionLifecycle(db_session).post(txn.id, ACTOR)

        assert db_session.query(Batch).count() == 1
        assert db_session.query(Journal).count() == 1


class TestPostSale:

    def test_purchase_then_sale(self, db_session, chart, product_unit):
        posted_purchase(db_session, product_unit, "100", "2.00")
        sale = draft_sale(db_session, product_unit, "60", "5.00")

        TransactionLifecycle(db_session).post(sale.id, ACTOR)
        db_session.commit()

        batch = InventoryAllocator(db_session).list_batches(product_unit.id)[0]
        assert batch.remaining_quantity == Decimal("40")

        journal = LedgerPoster(db_session).posting_journal_for(sale.id)
        lines = {(e.account_id, e.direction, e.amount) for e in journal.entries}
        assert lines == {
            (chart["1201"].id, EntryDirection.DEBIT, Decimal("300.00")),
            (chart["4101"].id, EntryDirection.CREDIT, Decimal("300.00")),
            (chart["5101"].id, EntryDirection.DEBIT, Decimal("120.00")),
            (chart["1301"].id, EntryDirection.CREDIT, Decimal("120.00")),
        }
        assert balance(db_session, chart["1301"]) == Decimal("80.00")

    def test_cost_of_goods_recorded_on_line(self, db_session, chart, product_unit):
        posted_purchase(db_session, product_unit, "100", "2.00")
        sale = draft_sale(db_session, product_unit, "60", "5.00")
        TransactionLifecycle(db_session).post(sale.id, ACTOR)
        db_session.commit()

        line = sale.sale.lines[0]
        assert line.cost_of_goods == Decimal("120.00")

    def test_insufficient_stock_rolls_back_everything(self, db_session, chart, product_unit):
        posted_purchase(db_session, product_unit, "100", "2.00")
        sale = draft_sale(db_session, product_unit, "150", "5.00")

        with pytest.raises(InsufficientStockError):
            TransactionLifecycle(db_session).post(sale.id, ACTOR)
        db_session.commit()

        db_session.refresh(sale)
        assert sale.status == TransactionStatus.DRAFT
        batch = InventoryAllocator(db_session).list_batches(product_unit.id)[0]
        assert batch.remaining_quantity == Decimal("100")
        assert LedgerPoster(db_session).posting_journal_for(sale.id) is None

    def test_multi_line_sale_fails_as_a_unit(
        self, db_session, chart, product_unit, other_unit
    ):
        posted_purchase(db_session, product_unit, "10", "1.00")
        posted_purchase(db_session, other_unit, "2", "20.00")

        sale = TransactionLifecycle(db_session).create_sale(SaleCreate(lines=[
            SaleLineCreate(product_unit_id=product_unit.id, quantity=Decimal("5")),
            SaleLineCreate(product_unit_id=other_unit.id, quantity=Decimal("3")),
        ]), ACTOR)
        db_session.commit()

        with pytest.raises(InsufficientStockError):
            TransactionLifecycle(db_session).post(sale.id, ACTOR)
        db_session.commit()

        allocator = InventoryAllocator(db_session)
        assert allocator.available_quantity(product_unit.id) == Decimal("10")
        assert allocator.available_quantity(other_unit.id) == Decimal("2")

    def test_zero_value_sale_posts_without_journal(self, db_session, chart, product_unit):
        posted_purchase(db_session, product_unit, "5", "0.00")
        sale = draft_sale(db_session, product_unit, "1", "0.00")

        TransactionLifecycle(db_session).post(sale.id, ACTOR)
        db_session.commit()

        assert sale.status == TransactionStatus.POSTED
        assert LedgerPoster(db_session).posting_journal_for(sale.id) is None

    def test_split_sales_empty_inventory_to_the_cent(self, db_session, chart, product_unit):
        posted_purchase(db_session, product_unit, "1", "0.01")
        for _ in range(2):
            sale = draft_sale(db_session, product_unit, "0.5", "1.00")
            TransactionLifecycle(db_session).post(sale.id, ACTOR)
            db_session.commit()

        assert InventoryAllocator(db_session).available_quantity(product_unit.id) == Decimal("0")
        assert balance(db_session, chart["1301"]) == Decimal("0.00")
        assert balance(db_session, chart["5101"]) == Decimal("0.01")

    def test_resale_after_cancel_still_empties_inventory(
        self, db_session, chart, product_unit
    ):
        posted_purchase(db_session, product_unit, "1", "0.01")
        sales = []
        for _ in range(2):
            sale = draft_sale(db_session, product_unit, "0.5", "1.00")
            TransactionLifecycle(db_session).post(sale.id, ACTOR)
            db_session.commit()
            sales.append(sale)

        TransactionLifecycle(db_session).cancel(sales[0].id, ACTOR)
        db_session.commit()
        resale = draft_sale(db_session, product_unit, "0.5", "1.00")
        TransactionLifecycle(db_session).post(resale.id, ACTOR)
        db_session.commit()

        assert balance(db_session, chart["1301"]) == Decimal("0.00")
        assert balance(db_session, chart["5101"]) == Decimal("0.01")


class TestAdjustment:

    def test_adjustment_posts_callers_lines(self, db_session, chart):
        service = TransactionLifecycle(db_session)
        txn = service.create_adjustment(AdjustmentCreate(lines=[
            JournalLine(account_id=chart["5101"].id, amount=Decimal("12.00"),
                        direction=EntryDirection.DEBIT),
            JournalLine(account_id=chart["1301"].id, amount=Decimal("12.00"),
                        direction=EntryDirection.CREDIT),
        ]), ACTOR)
        service.post(txn.id, ACTOR)
        db_session.commit()

        assert txn.total_amount == Decimal("12.00")
        assert balance(db_session, chart["5101"]) == Decimal("12.00")

    def test_unbalanced_adjustment_fails_on_post(self, db_session, chart):
        service = TransactionLifecycle(db_session)
        txn = service.create_adjustment(AdjustmentCreate(lines=[
            JournalLine(account_id=chart["5101"].id, amount=Decimal("12.00"),
                        direction=EntryDirection.DEBIT),
            JournalLine(account_id=chart["1301"].id, amount=Decimal("11.00"),
                        direction=EntryDirection.CREDIT),
        ]), ACTOR)
        db_session.commit()

        with pytest.raises(UnbalancedJournalError):
            service.post(txn.id, ACTOR)
        db_session.commit()

        db_session.refresh(txn)
        assert txn.status == TransactionStatus.DRAFT


class TestCancel:

    def test_cancel_draft_has_no_effect(self, db_session, chart, product_unit):
        txn = draft_purchase(db_session, product_unit, "10", "1.00")

        TransactionLifecycle(db_session).cancel(txn.id, ACTOR, reason="typo")
        db_session.commit()

        assert txn.status == TransactionStatus.CANCELLED
        assert txn.cancelled_at is not None
        assert db_session.query(Journal).count() == 0

    def test_cancelled_is_terminal(self, db_session, chart, product_unit):
        txn = draft_purchase(db_session, product_unit, "10", "1.00")
        service = TransactionLifecycle(db_session)
        service.cancel(txn.id, ACTOR)
        db_session.commit()

        with pytest.raises(InvalidStateTransitionError):
            service.post(txn.id, ACTOR)
        with pytest.raises(InvalidStateTransitionError):
            service.cancel(txn.id, ACTOR)

    def test_cancelling_sale_restores_stock_and_balances(
        self, db_session, chart, product_unit
    ):
        posted_purchase(db_session, product_unit, "100", "2.00")
        before = {code: balance(db_session, account) for code, account in chart.items()}

        service = TransactionLifecycle(db_session)
        sale = draft_sale(db_session, product_unit, "60", "5.00")
        service.post(sale.id, ACTOR)
        db_session.commit()

        service.cancel(sale.id, ACTOR, reason="returned")
        db_session.commit()

        assert sale.status == TransactionStatus.CANCELLED
        batch = InventoryAllocator(db_session).list_batches(product_unit.id)[0]
        assert batch.remaining_quantity == Decimal("100")
        after = {code: balance(db_session, account) for code, account in chart.items()}
        assert after == before

        kinds = [j.kind for j in LedgerPoster(db_session).journals_for_transaction(sale.id)]
        assert kinds == [JournalKind.TRANSACTION, JournalKind.REVERSAL]

    def test_cancelling_purchase_voids_its_batch(self, db_session, chart, product_unit):
        txn = posted_purchase(db_session, product_unit, "10", "3.00")

        TransactionLifecycle(db_session).cancel(txn.id, ACTOR)
        db_session.commit()

        batch = InventoryAllocator(db_session).list_batches(product_unit.id)[0]
        assert batch.is_voided is True
        assert balance(db_session, chart["1301"]) == Decimal("0.00")
        assert balance(db_session, chart["2101"]) == Decimal("0.00")

    def test_purchase_with_sold_stock_cannot_be_cancelled(
        self, db_session, chart, product_unit
    ):
        purchase = posted_purchase(db_session, product_unit, "10", "3.00")
        sale = draft_sale(db_session, product_unit, "4", "5.00")
        service = TransactionLifecycle(db_session)
        service.post(sale.id, ACTOR)
        db_session.commit()

        with pytest.raises(InvalidReversalError):
            service.cancel(purchase.id, ACTOR)
        db_session.commit()

        db_session.refresh(purchase)
        assert purchase.status == TransactionStatus.POSTED
        assert balance(db_session, chart["1301"]) == Decimal("18.00")

    def test_cancel_writes_audit_entry(self, db_session, chart, product_unit):
        txn = posted_purchase(db_session, product_unit, "10", "1.00")
        TransactionLifecycle(db_session).cancel(txn.id, ACTOR, reason="duplicate")
        db_session.commit()

        events = [
            (a.event_type, a.details.get("reason"))
            for a in db_session.query(AuditLog).order_by(AuditLog.id).all()
        ]
        assert events == [
            ("TRANSACTION_POSTED", None),
            ("TRANSACTION_CANCELLED", "duplicate"),
        ]


class TestRetryAfterContention:

    def test_post_lands_once_after_a_failed_attempt(
        self, db_session, chart, product_unit, monkeypatch
    ):
        txn = draft_purchase(db_session, product_unit, "10", "2.00")
        original = LedgerPoster.post_for_transaction
        calls = []

        def post_after_lock_timeout(self, *args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise ContentionError("lock timeout on inventory account")
            return original(self, *args, **kwargs)

        monkeypatch.setattr(LedgerPoster, "post_for_transaction", post_after_lock_timeout)

        retry_on_contention(
            db_session,
            lambda: TransactionLifecycle(db_session).post(txn.id, ACTOR),
            attempts=3,
        )

        assert len(calls) == 2
        assert db_session.query(Batch).count() == 1
        journals = db_session.query(Journal).filter(
            Journal.kind == JournalKind.TRANSACTION
        ).all()
        assert len(journals) == 1
        db_session.refresh(txn)
        assert txn.status == TransactionStatus.POSTED
        assert balance(db_session, chart["1301"]) == Decimal("20.00")

    def test_exhausted_retries_leave_the_draft(
        self, db_session, chart, product_unit, monkeypatch
    ):
        txn = draft_purchase(db_session, product_unit, "10", "2.00")

        def always_locked(self, *args, **kwargs):
            raise ContentionError("lock timeout on inventory account")

        monkeypatch.setattr(LedgerPoster, "post_for_transaction", always_locked)

        with pytest.raises(ContentionError):
            retry_on_contention(
                db_session,
                lambda: TransactionLifecycle(db_session).post(txn.id, ACTOR),
                attempts=2,
            )

        db_session.refresh(txn)
        assert txn.status == TransactionStatus.DRAFT
        assert db_session.query(Batch).count() == 0
        assert db_session.query(Journal).count() == 0


def test_get_hides_soft_deleted(db_session, chart, product_unit):
    txn = draft_purchase(db_session, product_unit, "1", "1.00")
    txn.is_deleted = True
    db_session.commit()

    with pytest.raises(NotFoundError):
        TransactionLifecycle(db_session).get(txn.id)
