"""
Chart of accounts and counterpart endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retail_ledger.actor import ActorContext
from retail_ledger.api.deps import get_actor, http_error
from retail_ledger.exceptions import RetailLedgerError
from retail_ledger.models.base import get_db
from retail_ledger.schemas.account import (
    AccountCategoryCreate,
    AccountCategoryResponse,
    AccountCodeUpdate,
    AccountCreate,
    AccountResponse,
    AccountSubCategoryCreate,
    AccountSubCategoryResponse,
    CounterpartCreate,
    CounterpartResponse,
)
from retail_ledger.services.account_directory import AccountDirectory
from retail_ledger.services.party_service import PartyService

router = APIRouter(tags=["Accounts"])


# --- Chart of Accounts ---

@router.post(
    "/accounts/categories",
    response_model=AccountCategoryResponse,
    status_code=201,
)
def create_category(
    request: AccountCategoryCreate,
    db: Session = Depends(get_db),
):
    service = AccountDirectory(db)
    try:
        category = service.create_category(request)
        db.commit()
        return category
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post(
    "/accounts/subcategories",
    response_model=AccountSubCategoryResponse,
    status_code=201,
)
def create_subcategory(
    request: AccountSubCategoryCreate,
    db: Session = Depends(get_db),
):
    service = AccountDirectory(db)
    try:
        subcategory = service.create_subcategory(request)
        db.commit()
        return subcategory
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/accounts/seed", response_model=list[AccountResponse], status_code=201)
def seed_chart_of_accounts(
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """
    Create the standard categories and the system accounts the
    posting rules need. Safe to call repeatedly.
    """
    service = AccountDirectory(db)
    try:
        accounts = service.seed_chart_of_accounts(actor)
        db.commit()
        return accounts
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    service = AccountDirectory(db)
    try:
        account = service.create_account(request, actor)
        db.commit()
        return account
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
):
    service = AccountDirectory(db)
    try:
        return service.get_account(account_id)
    except RetailLedgerError as e:
        raise http_error(e)


@router.patch("/accounts/{account_id}/code", response_model=AccountResponse)
def change_account_code(
    account_id: int,
    request: AccountCodeUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """
    Re-code an account. Refused with 409 once any ledger entry
    references it.
    """
    service = AccountDirectory(db)
    try:
        account = service.change_code(account_id, request.code, actor)
        db.commit()
        return account
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/accounts/{account_id}/deactivate", response_model=AccountResponse)
def deactivate_account(
    account_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    service = AccountDirectory(db)
    try:
        account = service.deactivate(account_id, actor)
        db.commit()
        return account
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


# --- Counterparts ---

@router.post("/customers", response_model=CounterpartResponse, status_code=201)
def create_customer(
    request: CounterpartCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    service = PartyService(db)
    try:
        customer = service.create_customer(request, actor)
        db.commit()
        return customer
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/suppliers", response_model=CounterpartResponse, status_code=201)
def create_supplier(
    request: CounterpartCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    service = PartyService(db)
    try:
        supplier = service.create_supplier(request, actor)
        db.commit()
        return supplier
    except RetailLedgerError as e:
        db.rollback()
        raise http_error(e)
