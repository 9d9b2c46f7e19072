"""
Transaction API endpoints.

Drafts are created, then posted or cancelled. Posting and
cancelling run through retry_on_contention: a lock conflict re-runs
the whole unit, and only an exhausted retry budget reaches the
client as a retryable 409.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retail_ledger.actor import ActorContext
from retail_ledger.api.deps import get_actor, http_error
from retail_ledger.exceptions import RetailLedgerError
from retail_ledger.models.base import get_db
from retail_ledger.schemas.transaction import (
    AdjustmentCreate,
    CancelRequest,
    PurchaseCreate,
    SaleCreate,
    SettlementResponse,
    TransactionResponse,
)
from retail_ledger.services.transaction_service import TransactionLifecycle
from retail_ledger.services.unit_of_work import retry_on_contention

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("/purchases", response_model=TransactionResponse, status_code=201)
def create_purchase(
    request: PurchaseCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Create a draft purchase. Nothing touches stock until it is posted."""
    service = TransactionLifecycle(db)
    try:
        transaction = service.create_purchase(request, actor)
        db.commit()
        return transaction
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/sales", response_model=TransactionResponse, status_code=201)
def create_sale(
    request: SaleCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    service = TransactionLifecycle(db)
    try:
        transaction = service.create_sale(request, actor)
        db.commit()
        return transaction
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/adjustments", response_model=TransactionResponse, status_code=201)
def create_adjustment(
    request: AdjustmentCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    service = TransactionLifecycle(db)
    try:
        transaction = service.create_adjustment(request, actor)
        db.commit()
        return transaction
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/{transaction_id}/post", response_model=TransactionResponse)
def post_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """
    Post a draft: create or consume batches and write the journal,
    all or nothing.
    """
    service = TransactionLifecycle(db)
    try:
        return retry_on_contention(db, lambda: service.post(transaction_id, actor))
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/{transaction_id}/cancel", response_model=TransactionResponse)
def cancel_transaction(
    transaction_id: int,
    request: CancelRequest | None = None,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """
    Cancel a transaction. A posted one is undone by compensating
    entries; nothing is deleted.
    """
    reason = request.reason if request else None
    service = TransactionLifecycle(db)
    try:
        return retry_on_contention(
            db, lambda: service.cancel(transaction_id, actor, reason)
        )
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
):
    service = TransactionLifecycle(db)
    try:
        return service.get(transaction_id)
    except RetailLedgerError as e:
        raise http_error(e)


@router.get("/{transaction_id}/settlement", response_model=SettlementResponse)
def get_settlement(
    transaction_id: int,
    db: Session = Depends(get_db),
):
    """Settlement status, derived from active payment allocations."""
    service = TransactionLifecycle(db)
    try:
        return service.settlement(transaction_id)
    except RetailLedgerError as e:
        raise http_error(e)
