"""
Unit tests for LedgerService.

Tests cover:
- Holding lifecycle (create, update, delete with cascade)
- Appending transactions and ledger ordering
- Field validation and full-sequence oversell checks
- Update/remove re-validation leaving the ledger unchanged on failure
- Version bumps and optimistic concurrency
- Per-holding lock serialization
"""

import threading
from datetime import date
from decimal import Decimal

import pytest

from fundfolio.core.exceptions import ConcurrencyConflict, NotFoundError, ValidationError
from fundfolio.domain.models import TransactionType
from fundfolio.services import LedgerService, TransactionCreate, TransactionUpdate


# =============================================================================
# HOLDING LIFECYCLE TESTS
# =============================================================================


class TestHoldingLifecycle:
    """Tests for holding creation, update and deletion."""

    def test_create_holding_starts_at_version_one(self, ledger_service: LedgerService, fixed_now):
        """
        GIVEN no holdings exist
        WHEN I open a holding of fund 000001
        THEN it is persisted with version 1 and creation timestamps
        """
        holding = ledger_service.create_holding("user-1", "000001", channel="支付宝")

        assert holding.holding_id
        assert holding.fund_code == "000001"
        assert holding.channel == "支付宝"
        assert holding.version == 1
        assert holding.created_at is not None

    def test_duplicate_fund_for_same_user_fails(self, ledger_service: LedgerService, holding_factory):
        """
        GIVEN a user already holds fund 000001
        WHEN they open another holding of 000001
        THEN ValidationError is raised
        """
        holding_factory("000001", user_id="user-1")

        with pytest.raises(ValidationError, match="already holds"):
            ledger_service.create_holding("user-1", "000001")

    def test_same_fund_for_different_users_is_allowed(self, holding_factory):
        """
        GIVEN user-1 holds fund 000001
        WHEN user-2 opens a holding of 000001
        THEN both holdings exist
        """
        first = holding_factory("000001", user_id="user-1")
        second = holding_factory("000001", user_id="user-2")

        assert first.holding_id != second.holding_id

    def test_list_holdings_only_returns_users_holdings(self, ledger_service: LedgerService, holding_factory):
        """
        GIVEN holdings for two users
        WHEN I list holdings of user-1
        THEN only user-1's holdings are returned
        """
        holding_factory("000001", user_id="user-1")
        holding_factory("110022", user_id="user-1")
        holding_factory("000001", user_id="user-2")

        holdings = ledger_service.list_holdings("user-1")

        assert {h.fund_code for h in holdings} == {"000001", "110022"}

    def test_update_holding_bumps_version(self, ledger_service: LedgerService, holding_factory):
        """
        GIVEN a holding at version 1
        WHEN I change its group
        THEN the group is stored and the version becomes 2
        """
        holding = holding_factory()

        updated = ledger_service.update_holding(holding.holding_id, group="长期", expected_version=1)

        assert updated.group == "长期"
        assert updated.version == 2

    def test_delete_holding_cascades_transactions(
        self,
        ledger_service: LedgerService,
        holding_factory,
        txn_factory,
        transaction_repo,
    ):
        """
        GIVEN a holding with transactions
        WHEN I delete the holding
        THEN the holding and its transactions are gone
        """
        holding = holding_factory()
        txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00")

        ledger_service.delete_holding(holding.holding_id)

        with pytest.raises(NotFoundError):
            ledger_service.get_holding(holding.holding_id)
        assert transaction_repo.list_by_holding(holding.holding_id) == []

    def test_get_unknown_holding_fails(self, ledger_service: LedgerService):
        """
        GIVEN no holdings
        WHEN I get a holding by an unknown ID
        THEN NotFoundError is raised
        """
        with pytest.raises(NotFoundError):
            ledger_service.get_holding("missing")


# =============================================================================
# APPEND TESTS
# =============================================================================


class TestAppend:
    """Tests for appending transactions."""

    def test_append_assigns_increasing_ids_and_bumps_version(
        self,
        ledger_service: LedgerService,
        holding_factory,
        txn_factory,
        clock,
    ):
        """
        GIVEN a new holding
        WHEN I append two transactions
        THEN txn_ids increase and the holding version is bumped per mutation
        """
        holding = holding_factory()
        first = txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00")
        clock.advance(seconds=60)
        second = txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.20")

        refreshed = ledger_service.get_holding(holding.holding_id)
        assert second.txn_id > first.txn_id
        assert refreshed.version == 3

    def test_list_orders_by_date_then_insertion(self, ledger_service: LedgerService, holding_factory, txn_factory):
        """
        GIVEN transactions appended out of date order, two on the same day
        WHEN I list the ledger
        THEN it is ordered by trade_date, ties by insertion sequence
        """
        holding = holding_factory()
        late = txn_factory(holding.holding_id, TransactionType.BUY, "10", "1.00", trade_date=date(2024, 6, 10))
        early = txn_factory(holding.holding_id, TransactionType.BUY, "10", "1.00", trade_date=date(2024, 6, 1))
        same_day = txn_factory(holding.holding_id, TransactionType.SELL, "5", "1.10", trade_date=date(2024, 6, 10))

        ledger = ledger_service.list(holding.holding_id)

        assert [t.txn_id for t in ledger] == [early.txn_id, late.txn_id, same_day.txn_id]

    @pytest.mark.parametrize(
        "shares, price, fee",
        [
            ("0", "1.00", "0"),
            ("-5", "1.00", "0"),
            ("10", "-1.00", "0"),
            ("10", "1.00", "-0.01"),
        ],
    )
    def test_append_rejects_invalid_amounts(self, holding_factory, txn_factory, shares, price, fee):
        """
        GIVEN a holding
        WHEN I append with non-positive shares, negative price or negative fee
        THEN ValidationError is raised
        """
        holding = holding_factory()

        with pytest.raises(ValidationError):
            txn_factory(holding.holding_id, TransactionType.BUY, shares, price, fee=fee)

    def test_oversell_is_rejected_and_ledger_unchanged(
        self,
        ledger_service: LedgerService,
        holding_factory,
        txn_factory,
    ):
        """
        GIVEN a holding with 100 shares
        WHEN I append a SELL of 150 shares
        THEN ValidationError is raised and neither ledger nor version change
        """
        holding = holding_factory()
        txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00")
        version_before = ledger_service.get_holding(holding.holding_id).version

        with pytest.raises(ValidationError, match="negative balance"):
            txn_factory(holding.holding_id, TransactionType.SELL, "150", "1.10")

        assert len(ledger_service.list(holding.holding_id)) == 1
        assert ledger_service.get_holding(holding.holding_id).version == version_before

    def test_backdated_sell_before_buy_is_rejected(self, holding_factory, txn_factory):
        """
        GIVEN a BUY of 100 shares on 2024-06-05
        WHEN I append a SELL of 50 shares dated 2024-06-01
        THEN ValidationError is raised because the prefix up to 06-01 oversells
        """
        holding = holding_factory()
        txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00", trade_date=date(2024, 6, 5))

        with pytest.raises(ValidationError):
            txn_factory(holding.holding_id, TransactionType.SELL, "50", "1.00", trade_date=date(2024, 6, 1))

    def test_cash_dividend_on_unheld_shares_is_rejected(self, holding_factory, txn_factory):
        """
        GIVEN a holding with 100 shares
        WHEN I append a cash dividend declared on 200 shares
        THEN ValidationError is raised
        """
        holding = holding_factory()
        txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00")

        with pytest.raises(ValidationError, match="Dividend"):
            txn_factory(holding.holding_id, TransactionType.DIVIDEND, "200", "0.05")

    def test_reinvested_dividend_needs_shares_held(self, holding_factory, txn_factory):
        """
        GIVEN a holding whose only BUY is dated after the dividend
        WHEN I append a reinvested dividend
        THEN ValidationError is raised
        """
        holding = holding_factory()
        txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00", trade_date=date(2024, 6, 10))

        with pytest.raises(ValidationError, match="no shares held"):
            txn_factory(
                holding.holding_id,
                TransactionType.DIVIDEND,
                "4",
                "1.25",
                trade_date=date(2024, 6, 5),
                reinvest=True,
            )

    def test_reinvest_flag_only_allowed_on_dividends(self, holding_factory, txn_factory):
        """
        GIVEN a holding
        WHEN I append a BUY flagged as reinvested
        THEN ValidationError is raised
        """
        holding = holding_factory()

        with pytest.raises(ValidationError, match="reinvested"):
            txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00", reinvest=True)

    def test_append_to_unknown_holding_fails(self, ledger_service: LedgerService):
        """
        GIVEN no holdings
        WHEN I append to an unknown holding
        THEN NotFoundError is raised
        """
        with pytest.raises(NotFoundError):
            ledger_service.append(
                TransactionCreate(
                    holding_id="missing",
                    txn_type=TransactionType.BUY,
                    trade_date=date(2024, 6, 3),
                    shares=Decimal("1"),
                    price=Decimal("1"),
                )
            )


# =============================================================================
# UPDATE / REMOVE TESTS
# =============================================================================


class TestUpdateAndRemove:
    """Tests for editing and deleting transactions."""

    def test_update_changes_fields_and_bumps_version(
        self,
        ledger_service: LedgerService,
        holding_factory,
        txn_factory,
    ):
        """
        GIVEN a BUY transaction
        WHEN I change its price and note
        THEN the change is stored and the holding version increments
        """
        holding = holding_factory()
        txn = txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00")

        updated = ledger_service.update(
            txn.txn_id,
            TransactionUpdate(price=Decimal("1.05"), note="corrected"),
        )

        assert updated.price == Decimal("1.05")
        assert updated.note == "corrected"
        assert ledger_service.get_holding(holding.holding_id).version == 3

    def test_update_moving_buy_after_sell_is_rejected(
        self,
        ledger_service: LedgerService,
        holding_factory,
        txn_factory,
    ):
        """
        GIVEN BUY 100 on 06-01 and SELL 80 on 06-05
        WHEN I move the BUY to 06-10
        THEN ValidationError is raised and the stored BUY keeps its date
        """
        holding = holding_factory()
        buy = txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00", trade_date=date(2024, 6, 1))
        txn_factory(holding.holding_id, TransactionType.SELL, "80", "1.10", trade_date=date(2024, 6, 5))

        with pytest.raises(ValidationError):
            ledger_service.update(buy.txn_id, TransactionUpdate(trade_date=date(2024, 6, 10)))

        assert ledger_service.get_transaction(buy.txn_id).trade_date == date(2024, 6, 1)

    def test_remove_buy_backing_a_sell_is_rejected(
        self,
        ledger_service: LedgerService,
        holding_factory,
        txn_factory,
    ):
        """
        GIVEN BUY 100 then SELL 80
        WHEN I remove the BUY
        THEN ValidationError is raised and both transactions remain
        """
        holding = holding_factory()
        buy = txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00", trade_date=date(2024, 6, 1))
        txn_factory(holding.holding_id, TransactionType.SELL, "80", "1.10", trade_date=date(2024, 6, 5))

        with pytest.raises(ValidationError):
            ledger_service.remove(buy.txn_id)

        assert len(ledger_service.list(holding.holding_id)) == 2

    def test_remove_deletes_transaction(self, ledger_service: LedgerService, holding_factory, txn_factory):
        """
        GIVEN two BUY transactions
        WHEN I remove one
        THEN only the other remains
        """
        holding = holding_factory()
        first = txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00")
        second = txn_factory(holding.holding_id, TransactionType.BUY, "50", "1.10")

        ledger_service.remove(first.txn_id)

        assert [t.txn_id for t in ledger_service.list(holding.holding_id)] == [second.txn_id]

    def test_remove_unknown_transaction_fails(self, ledger_service: LedgerService):
        """
        GIVEN no transactions
        WHEN I remove an unknown txn_id
        THEN NotFoundError is raised
        """
        with pytest.raises(NotFoundError):
            ledger_service.remove(999)


# =============================================================================
# CONCURRENCY TESTS
# =============================================================================


class TestConcurrency:
    """Tests for optimistic versioning and per-holding locks."""

    def test_stale_expected_version_conflicts_and_writes_nothing(
        self,
        ledger_service: LedgerService,
        holding_factory,
        txn_factory,
    ):
        """
        GIVEN a holding modified since the caller read version 1
        WHEN the caller appends with expected_version=1
        THEN ConcurrencyConflict is raised and the ledger is unchanged
        """
        holding = holding_factory()
        txn_factory(holding.holding_id, TransactionType.BUY, "100", "1.00")

        with pytest.raises(ConcurrencyConflict):
            ledger_service.append(
                TransactionCreate(
                    holding_id=holding.holding_id,
                    txn_type=TransactionType.BUY,
                    trade_date=date(2024, 6, 4),
                    shares=Decimal("10"),
                    price=Decimal("1"),
                ),
                expected_version=1,
            )

        assert len(ledger_service.list(holding.holding_id)) == 1

    def test_matching_expected_version_succeeds(self, ledger_service: LedgerService, holding_factory):
        """
        GIVEN a holding at version 1
        WHEN I append with expected_version=1
        THEN the transaction is stored and the version becomes 2
        """
        holding = holding_factory()

        ledger_service.append(
            TransactionCreate(
                holding_id=holding.holding_id,
                txn_type=TransactionType.BUY,
                trade_date=date(2024, 6, 4),
                shares=Decimal("10"),
                price=Decimal("1"),
            ),
            expected_version=1,
        )

        assert ledger_service.get_holding(holding.holding_id).version == 2

    def test_lost_compare_and_set_conflicts(
        self,
        ledger_service: LedgerService,
        holding_factory,
        holding_repo,
        monkeypatch,
    ):
        """
        GIVEN another writer bumps the version between read and write
        WHEN I append a transaction
        THEN ConcurrencyConflict is raised and no transaction is stored
        """
        holding = holding_factory()
        monkeypatch.setattr(holding_repo, "bump_version", lambda *args, **kwargs: None)

        with pytest.raises(ConcurrencyConflict):
            ledger_service.append(
                TransactionCreate(
                    holding_id=holding.holding_id,
                    txn_type=TransactionType.BUY,
                    trade_date=date(2024, 6, 4),
                    shares=Decimal("10"),
                    price=Decimal("1"),
                )
            )

        assert ledger_service.list(holding.holding_id) == []

    def test_failed_write_restores_version(
        self,
        ledger_service: LedgerService,
        holding_factory,
        transaction_repo,
        monkeypatch,
    ):
        """
        GIVEN the store rejects the transaction insert
        WHEN I append a transaction
        THEN the error propagates and the version is unchanged for the next writer
        """
        holding = holding_factory()
        request = TransactionCreate(
            holding_id=holding.holding_id,
            txn_type=TransactionType.BUY,
            trade_date=date(2024, 6, 4),
            shares=Decimal("10"),
            price=Decimal("1"),
        )

        def reject(transaction):
            raise RuntimeError("disk full")

        with monkeypatch.context() as patch:
            patch.setattr(transaction_repo, "create", reject)
            with pytest.raises(RuntimeError, match="disk full"):
                ledger_service.append(request)

        assert ledger_service.get_holding(holding.holding_id).version == 1
        ledger_service.append(request, expected_version=1)
        assert ledger_service.get_holding(holding.holding_id).version == 2

    def test_mutation_waits_for_holding_lock(
        self,
        ledger_service: LedgerService,
        holding_factory,
        locks,
    ):
        """
        GIVEN a replay holds the holding's lock
        WHEN another thread appends to the same holding
        THEN the append waits until the lock is released
        """
        holding = holding_factory()
        done = threading.Event()

        def append():
            ledger_service.append(
                TransactionCreate(
                    holding_id=holding.holding_id,
                    txn_type=TransactionType.BUY,
                    trade_date=date(2024, 6, 4),
                    shares=Decimal("10"),
                    price=Decimal("1"),
                )
            )
            done.set()

        with locks.hold(holding.holding_id):
            worker = threading.Thread(target=append)
            worker.start()
            assert not done.wait(timeout=0.2)

        worker.join(timeout=5)
        assert done.is_set()
        assert len(ledger_service.list(holding.holding_id)) == 1
