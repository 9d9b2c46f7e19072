"""
Inventory batch allocator.

Creates stock lots on purchase and consumes them on sale. This is
the only code that writes Batch.remaining_quantity.

Consumption order is deterministic so cost of goods is
reproducible for audit:
1. batches with an expiry date, earliest expiry first
2. batches without an expiry date
ties broken by creation order (batch id), i.e. FIFO.

Concurrency: the product unit row is the lock scope. consume and
receive_batch both lock it before touching batches, so two sales of
the same unit cannot race past the same remaining quantity, while
sales of unrelated units never wait on each other.
"""

import logging
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from retail_ledger.exceptions import (
    InsufficientStockError,
    InvalidAmountError,
    InvalidReversalError,
    NotFoundError,
)
from retail_ledger.models.catalog import ProductUnit
from retail_ledger.models.inventory import Batch, BatchConsumption
from retail_ledger.schemas.inventory import ConsumedLot
from retail_ledger.services.ledger_service import to_money
from retail_ledger.services.unit_of_work import atomic, lock_one, lock_rows

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class InventoryAllocator:

    def __init__(self, db: Session):
        self.db = db

    def lock_product_unit(self, product_unit_id: int) -> ProductUnit:
        unit = lock_one(
            self.db,
            select(ProductUnit).where(
                ProductUnit.id == product_unit_id,
                ProductUnit.is_deleted.is_(False),
            ),
        )
        if not unit:
            raise NotFoundError("Product unit", product_unit_id)
        return unit

    def receive_batch(
        self,
        product_unit_id: int,
        quantity: Decimal,
        unit_cost: Decimal,
        production_date: date | None = None,
        expiry_date: date | None = None,
        batch_number: str | None = None,
        purchase_line_id: int | None = None,
    ) -> Batch:
        """Create a batch with remaining == total quantity."""
        if quantity is None or quantity <= ZERO:
            raise InvalidAmountError(f"Batch quantity must be positive, got {quantity}")
        if unit_cost is None or unit_cost < ZERO:
            raise InvalidAmountError(f"Batch unit cost must not be negative, got {unit_cost}")

        with atomic(self.db):
            self.lock_product_unit(product_unit_id)
            batch = Batch(
                product_unit_id=product_unit_id,
                purchase_line_id=purchase_line_id,
                total_quantity=quantity,
                remaining_quantity=quantity,
                unit_cost=unit_cost,
                production_date=production_date,
                expiry_date=expiry_date,
                batch_number=batch_number,
            )
            self.db.add(batch)

        logger.info(
            "batch received id=%s product_unit=%s quantity=%s unit_cost=%s",
            batch.id, product_unit_id, quantity, unit_cost,
        )
        return batch

    def _eligible_batches_stmt(self, product_unit_id: int):
        return (
            select(Batch)
            .where(
                Batch.product_unit_id == product_unit_id,
                Batch.is_voided.is_(False),
                Batch.remaining_quantity > 0,
            )
            .order_by(
                Batch.expiry_date.is_(None),
                Batch.expiry_date,
                Batch.id,
            )
        )

    def consume(
        self,
        product_unit_id: int,
        quantity: Decimal,
        sale_line_id: int | None = None,
    ) -> list[ConsumedLot]:
        """
        Take ``quantity`` from the product unit's batches.

        All-or-nothing: availability is checked against the locked
        batch set before any batch is decremented. Each slice taken
        is recorded as a BatchConsumption so it can be reversed.

        A slice is costed so the batch's live consumptions sum to
        ``to_money(consumed x unit_cost)``: the cent left over by
        rounding lands on whichever slice crosses it, and the last
        slice of a batch takes whatever its purchase value has left.
        """
        if quantity is None or quantity <= ZERO:
            raise InvalidAmountError(f"Consume quantity must be positive, got {quantity}")

        with atomic(self.db):
            self.lock_product_unit(product_unit_id)
            batches = lock_rows(self.db, self._eligible_batches_stmt(product_unit_id))

            available = sum((b.remaining_quantity for b in batches), ZERO)
            if available < quantity:
                raise InsufficientStockError(product_unit_id, quantity, available)

            lots = []
            outstanding = quantity
            for batch in batches:
                if outstanding <= ZERO:
                    break
                taken = min(batch.remaining_quantity, outstanding)
                booked = self.booked_cost(batch.id)
                batch.remaining_quantity = batch.remaining_quantity - taken
                outstanding -= taken
                consumed = batch.total_quantity - batch.remaining_quantity
                cost = max(to_money(consumed * batch.unit_cost) - booked, ZERO)

                consumption = BatchConsumption(
                    sale_line_id=sale_line_id,
                    batch_id=batch.id,
                    quantity=taken,
                    unit_cost=batch.unit_cost,
                    cost=cost,
                )
                self.db.add(consumption)
                self.db.flush()
                lots.append(ConsumedLot(
                    batch_id=batch.id,
                    quantity=taken,
                    unit_cost=batch.unit_cost,
                    cost=cost,
                    consumption_id=consumption.id,
                ))

        logger.info(
            "stock consumed product_unit=%s quantity=%s lots=%s",
            product_unit_id, quantity, [(l.batch_id, str(l.quantity)) for l in lots],
        )
        return lots

    @staticmethod
    def cost_of(lots: list[ConsumedLot]) -> Decimal:
        """Cost of goods for a consume() result, in cents."""
        return sum((lot.cost for lot in lots), ZERO)

    def booked_cost(self, batch_id: int) -> Decimal:
        """What the live consumptions of a batch have moved out of Inventory."""
        total = self.db.execute(
            select(func.coalesce(func.sum(BatchConsumption.cost), 0)).where(
                BatchConsumption.batch_id == batch_id,
                BatchConsumption.reversed_at.is_(None),
            )
        ).scalar()
        return to_money(total)

    def reverse_consumption(self, consumption_id: int) -> BatchConsumption:
        """
        Put back exactly what one consumption took.

        Fails if the record was already reversed, the batch has been
        voided since, or restoring would push the batch above its total.
        """
        consumption = self.db.get(BatchConsumption, consumption_id)
        if not consumption:
            raise NotFoundError("Batch consumption", consumption_id)
        if consumption.reversed_at is not None:
            raise InvalidReversalError(
                f"Consumption {consumption_id} was already reversed"
            )

        with atomic(self.db):
            self.lock_product_unit(consumption.batch.product_unit_id)
            batch = lock_one(self.db, select(Batch).where(Batch.id == consumption.batch_id))
            if batch.is_voided:
                raise InvalidReversalError(
                    f"Batch {batch.id} is voided; cannot restore {consumption.quantity}"
                )

            restored = batch.remaining_quantity + consumption.quantity
            if restored > batch.total_quantity:
                raise InvalidReversalError(
                    f"Restoring {consumption.quantity} to batch {batch.id} would "
                    f"exceed its total: remaining={batch.remaining_quantity}, "
                    f"total={batch.total_quantity}"
                )
            batch.remaining_quantity = restored
            consumption.reversed_at = datetime.utcnow()

        logger.info(
            "consumption reversed id=%s batch=%s quantity=%s",
            consumption.id, batch.id, consumption.quantity,
        )
        return consumption

    def void_batch(self, batch_id: int) -> Batch:
        """
        Withdraw an untouched batch (its purchase is being cancelled).

        A batch that has been partly sold cannot be voided: the sales
        that consumed it must be cancelled first.
        """
        batch = self.db.get(Batch, batch_id)
        if batch is None:
            raise InvalidReversalError(f"Batch {batch_id} no longer exists")

        with atomic(self.db):
            self.lock_product_unit(batch.product_unit_id)
            batch = lock_one(self.db, select(Batch).where(Batch.id == batch_id))
            if batch.is_voided:
                raise InvalidReversalError(f"Batch {batch_id} is already voided")
            if batch.remaining_quantity != batch.total_quantity:
                raise InvalidReversalError(
                    f"Batch {batch_id} has been consumed "
                    f"({batch.total_quantity - batch.remaining_quantity} of "
                    f"{batch.total_quantity}); cancel those sales first"
                )
            batch.remaining_quantity = ZERO
            batch.is_voided = True

        logger.info("batch voided id=%s", batch_id)
        return batch

    def available_quantity(self, product_unit_id: int) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(Batch.remaining_quantity), 0)).where(
                Batch.product_unit_id == product_unit_id,
                Batch.is_voided.is_(False),
            )
        ).scalar()
        return Decimal(str(total))

    def list_batches(self, product_unit_id: int) -> list[Batch]:
        """All batches for a unit, in consumption order."""
        return list(self.db.execute(
            select(Batch)
            .where(Batch.product_unit_id == product_unit_id)
            .order_by(Batch.expiry_date.is_(None), Batch.expiry_date, Batch.id)
        ).scalars().all())
