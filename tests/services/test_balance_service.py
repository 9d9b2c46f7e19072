"""
Tests for the BalanceCalculator.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from retail_ledger.actor import ActorContext
from retail_ledger.exceptions import NotFoundError
from retail_ledger.models.enums import EntryDirection, SettlementStatus
from retail_ledger.schemas.ledger import JournalLine
from retail_ledger.services.balance_service import BalanceCalculator, classify_settlement
from retail_ledger.services.ledger_service import LedgerPoster

ACTOR = ActorContext(user_id=1)


def post(db_session, when, debit_account, credit_account, amount):
    LedgerPoster(db_session).post_journal(
        when,
        [
            JournalLine(account_id=debit_account.id, amount=Decimal(amount),
                        direction=EntryDirection.DEBIT),
            JournalLine(account_id=credit_account.id, amount=Decimal(amount),
                        direction=EntryDirection.CREDIT),
        ],
        ACTOR,
    )
    db_session.commit()


class TestAccountBalance:

    def test_debit_normal_account(self, db_session, chart):
        post(db_session, datetime(2026, 3, 1, 9), chart["1301"], chart["2101"], "200.00")
        balance = BalanceCalculator(db_session).account_balance(chart["1301"].id)
        assert balance == Decimal("200.00")

    def test_credit_normal_account_is_positive(self, db_session, chart):
        post(db_session, datetime(2026, 3, 1, 9), chart["1301"], chart["2101"], "200.00")
        balance = BalanceCalculator(db_session).account_balance(chart["2101"].id)
        assert balance == Decimal("200.00")

    def test_as_of_is_inclusive(self, db_session, chart):
        post(db_session, datetime(2026, 3, 1, 9), chart["1301"], chart["2101"], "200.00")
        post(db_session, datetime(2026, 3, 2, 18), chart["1301"], chart["2101"], "50.00")

        calc = BalanceCalculator(db_session)
        assert calc.account_balance(chart["1301"].id, datetime(2026, 3, 1, 9)) == Decimal("200.00")
        assert calc.account_balance(chart["1301"].id, datetime(2026, 2, 28)) == Decimal("0.00")

    def test_as_of_date_covers_whole_day(self, db_session, chart):
        post(db_session, datetime(2026, 3, 2, 18), chart["1301"], chart["2101"], "50.00")
        calc = BalanceCalculator(db_session)
        assert calc.account_balance(chart["1301"].id, date(2026, 3, 2)) == Decimal("50.00")

    def test_unknown_account(self, db_session, chart):
        with pytest.raises(NotFoundError):
            BalanceCalculator(db_session).account_balance(9999)


class TestTrialBalance:

    def test_totals_balance(self, db_session, chart):
        post(db_session, datetime(2026, 3, 1), chart["1301"], chart["2101"], "200.00")
        post(db_session, datetime(2026, 3, 2), chart["1201"], chart["4101"], "75.50")

        report = BalanceCalculator(db_session).trial_balance()

        assert report["is_balanced"] is True
        assert report["total_debits"] == Decimal("275.50")
        assert report["total_credits"] == Decimal("275.50")
        codes = [line["account_code"] for line in report["lines"]]
        assert codes == sorted(codes)

    def test_integrity_check(self, db_session, chart):
        post(db_session, datetime(2026, 3, 1), chart["1301"], chart["2101"], "10.00")
        result = BalanceCalculator(db_session).check_integrity()
        assert result["is_balanced"] is True
        assert result["difference"] == Decimal("0.00")


class TestClassifySettlement:

    @pytest.mark.parametrize("total, allocated, expected", [
        ("100.00", "0.00", SettlementStatus.UNPAID),
        ("100.00", "40.00", SettlementStatus.PARTIALLY_PAID),
        ("100.00", "100.00", SettlementStatus.PAID),
        ("100.00", "100.01", SettlementStatus.OVERPAID),
        ("0.00", "0.00", SettlementStatus.PAID),
    ])
    def test_classification(self, total, allocated, expected):
        assert classify_settlement(Decimal(total), Decimal(allocated)) == expected
