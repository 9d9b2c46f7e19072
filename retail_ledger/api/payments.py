"""
Payment API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retail_ledger.actor import ActorContext
from retail_ledger.api.deps import get_actor, http_error
from retail_ledger.exceptions import RetailLedgerError
from retail_ledger.models.base import get_db
from retail_ledger.schemas.payment import (
    AllocationCreate,
    AllocationResponse,
    PaymentCreate,
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaymentResponse,
)
from retail_ledger.services.payment_service import PaymentService
from retail_ledger.services.unit_of_work import retry_on_contention

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/methods", response_model=PaymentMethodResponse, status_code=201)
def create_payment_method(
    request: PaymentMethodCreate,
    db: Session = Depends(get_db),
):
    service = PaymentService(db)
    try:
        method = service.create_method(request)
        db.commit()
        return method
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("", response_model=PaymentResponse, status_code=201)
def record_payment(
    request: PaymentCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Record a receipt or disbursement and post its cash journal."""
    service = PaymentService(db)
    try:
        payment = service.record_payment(request, actor)
        db.commit()
        return payment
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(
    payment_id: int,
    db: Session = Depends(get_db),
):
    try:
        return PaymentService(db).get_payment(payment_id)
    except RetailLedgerError as e:
        raise http_error(e)


@router.post(
    "/{payment_id}/allocations",
    response_model=AllocationResponse,
    status_code=201,
)
def allocate_payment(
    payment_id: int,
    request: AllocationCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """
    Apply part of a payment to a posted transaction. Responds 409
    when either the payment or the transaction would be
    over-allocated.
    """
    service = PaymentService(db)
    try:
        return retry_on_contention(
            db,
            lambda: service.allocate(
                payment_id, request.transaction_id, request.amount, actor
            ),
        )
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/allocations/{allocation_id}", response_model=AllocationResponse)
def deallocate_payment(
    allocation_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    service = PaymentService(db)
    try:
        return retry_on_contention(db, lambda: service.deallocate(allocation_id, actor))
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/{payment_id}/void", response_model=PaymentResponse)
def void_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    service = PaymentService(db)
    try:
        return retry_on_contention(db, lambda: service.void_payment(payment_id, actor))
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)
