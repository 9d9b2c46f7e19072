"""
Ledger API endpoints.

Read-only. Balances are calculated from ledger entries on every
request, never stored.
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retail_ledger.api.deps import get_as_of, http_error
from retail_ledger.exceptions import RetailLedgerError
from retail_ledger.models.base import get_db
from retail_ledger.schemas.account import AccountBalanceResponse
from retail_ledger.schemas.ledger import (
    JournalResponse,
    LedgerEntryResponse,
    TrialBalanceResponse,
)
from retail_ledger.services.account_directory import AccountDirectory
from retail_ledger.services.balance_service import BalanceCalculator, as_of_bound
from retail_ledger.services.ledger_service import LedgerPoster

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.get(
    "/accounts/{account_id}/balance",
    response_model=AccountBalanceResponse,
)
def get_account_balance(
    account_id: int,
    as_of: date | datetime | None = Depends(get_as_of),
    db: Session = Depends(get_db),
):
    """
    Balance of an account in its natural direction, optionally as
    of a point in time (inclusive).
    """
    try:
        account = AccountDirectory(db).get_account(account_id)
        balance = BalanceCalculator(db).account_balance(account_id, as_of)
    except RetailLedgerError as e:
        raise http_error(e)

    return AccountBalanceResponse(
        account_id=account.id,
        account_code=account.code,
        normal_balance=account.normal_balance,
        balance=balance,
        as_of=as_of_bound(as_of),
    )


@router.get(
    "/accounts/{account_id}/entries",
    response_model=list[LedgerEntryResponse],
)
def get_account_entries(
    account_id: int,
    db: Session = Depends(get_db),
):
    """Entries posted to an account, newest first."""
    try:
        return LedgerPoster(db).entries_for_account(account_id)
    except RetailLedgerError as e:
        raise http_error(e)


@router.get("/trial-balance", response_model=TrialBalanceResponse)
def get_trial_balance(
    as_of: date | datetime | None = Depends(get_as_of),
    db: Session = Depends(get_db),
):
    return BalanceCalculator(db).trial_balance(as_of)


@router.get("/journals/{journal_id}", response_model=JournalResponse)
def get_journal(
    journal_id: int,
    db: Session = Depends(get_db),
):
    try:
        return LedgerPoster(db).get_journal(journal_id)
    except RetailLedgerError as e:
        raise http_error(e)
