"""Ledger service for holdings and their transactions."""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, TypeVar

from fundfolio.core.exceptions import ConcurrencyConflict, NotFoundError, ValidationError
from fundfolio.core.locks import HoldingLockRegistry, get_holding_locks
from fundfolio.core.timezone import now_china
from fundfolio.domain.models import Holding, Transaction, TransactionType
from fundfolio.repositories.protocols import HoldingRepository, TransactionRepository

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

T = TypeVar("T")


@dataclass
class TransactionCreate:
    """Input data for appending a transaction."""

    holding_id: str
    txn_type: TransactionType
    trade_date: date
    shares: Decimal
    price: Decimal
    fee: Decimal = Decimal("0")
    reinvest: bool = False
    note: Optional[str] = None


@dataclass
class TransactionUpdate:
    """Partial update data for editing a transaction."""

    txn_type: Optional[TransactionType] = None
    trade_date: Optional[date] = None
    shares: Optional[Decimal] = None
    price: Optional[Decimal] = None
    fee: Optional[Decimal] = None
    reinvest: Optional[bool] = None
    note: Optional[str] = None


def validate_sequence(transactions: Iterable[Transaction]) -> None:
    """
    Replay share balances in ledger order and reject any prefix that goes negative.

    Any dividend needs shares held on its date; a cash dividend may not be
    declared on more shares than that.
    """
    balance = ZERO
    for txn in sorted(transactions, key=Transaction.sort_key):
        if txn.txn_type == TransactionType.DIVIDEND and balance <= 0:
            raise ValidationError(f"Dividend on {txn.trade_date} with no shares held")
        if txn.is_cash_dividend and txn.shares > balance:
            raise ValidationError(
                f"Dividend on {txn.shares} shares exceeds the {balance} held on {txn.trade_date}"
            )
        balance += txn.share_delta
        if balance < 0:
            raise ValidationError(
                f"Selling {txn.shares} shares on {txn.trade_date} leaves a negative balance "
                f"({balance})"
            )


class LedgerService:
    """
    Service for managing holdings and their transaction ledgers.

    The ledger is the source of truth for every derived figure. Each mutation
    runs under the holding's lock, re-validates the whole simulated sequence,
    and bumps the holding version with a compare-and-set before writing.
    """

    def __init__(
        self,
        holding_repo: HoldingRepository,
        transaction_repo: TransactionRepository,
        locks: Optional[HoldingLockRegistry] = None,
        clock: Callable[[], datetime] = now_china,
    ):
        self._holding_repo = holding_repo
        self._transaction_repo = transaction_repo
        self._locks = locks or get_holding_locks()
        self._clock = clock

    # ==========================================================================
    # Holdings
    # ==========================================================================

    def create_holding(
        self,
        user_id: str,
        fund_code: str,
        channel: Optional[str] = None,
        group: Optional[str] = None,
    ) -> Holding:
        """Open a holding of a fund for a user. A user holds each fund at most once."""
        fund_code = fund_code.strip()
        if not fund_code:
            raise ValidationError("Fund code is required")
        if self._holding_repo.get_by_user_and_fund(user_id, fund_code):
            raise ValidationError(f"User already holds fund '{fund_code}'")

        now = self._clock()
        holding = Holding(
            holding_id=str(uuid.uuid4()),
            user_id=user_id,
            fund_code=fund_code,
            channel=channel,
            group=group,
            version=1,
            created_at=now,
            updated_at=now,
        )
        created = self._holding_repo.create(holding)
        logger.info("Created holding %s of %s for user %s", created.holding_id, fund_code, user_id)
        return created

    def get_holding(self, holding_id: str) -> Holding:
        """Get holding by ID."""
        holding = self._holding_repo.get_by_id(holding_id)
        if not holding:
            raise NotFoundError("Holding", holding_id)
        return holding

    def list_holdings(self, user_id: str) -> list[Holding]:
        """List a user's holdings."""
        return self._holding_repo.list_by_user(user_id)

    def update_holding(
        self,
        holding_id: str,
        channel: Optional[str] = None,
        group: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Holding:
        """Change the channel and/or group of a holding."""
        with self._locks.hold(holding_id):
            holding = self.get_holding(holding_id)
            self._check_version(holding, expected_version)

            def write(bumped: Holding) -> Holding:
                if channel is not None:
                    bumped.channel = channel
                if group is not None:
                    bumped.group = group
                return self._holding_repo.update(bumped)

            updated = self._commit(holding, write)
        logger.info("Updated holding %s (version %d)", holding_id, updated.version)
        return updated

    def delete_holding(self, holding_id: str) -> None:
        """Delete a holding together with its transactions."""
        with self._locks.hold(holding_id):
            self.get_holding(holding_id)
            self._holding_repo.delete(holding_id)
        self._locks.discard(holding_id)
        logger.info("Deleted holding %s", holding_id)

    # ==========================================================================
    # Transactions
    # ==========================================================================

    def append(
        self,
        data: TransactionCreate,
        expected_version: Optional[int] = None,
    ) -> Transaction:
        """
        Append a transaction to a holding's ledger.

        Raises:
            NotFoundError: unknown holding
            ValidationError: invalid amounts, or the ledger would oversell
            ConcurrencyConflict: expected_version is stale
        """
        transaction = Transaction(
            holding_id=data.holding_id,
            txn_type=data.txn_type,
            trade_date=data.trade_date,
            shares=data.shares,
            price=data.price,
            fee=data.fee,
            reinvest=data.reinvest,
            note=data.note,
        )
        self._validate_fields(transaction)

        with self._locks.hold(data.holding_id):
            holding = self.get_holding(data.holding_id)
            self._check_version(holding, expected_version)
            ledger = self._transaction_repo.list_by_holding(data.holding_id)
            validate_sequence(ledger + [transaction])

            def write(bumped: Holding) -> Transaction:
                transaction.created_at = bumped.updated_at
                transaction.updated_at = bumped.updated_at
                return self._transaction_repo.create(transaction)

            created = self._commit(holding, write)

        logger.info(
            "Appended %s txn %s to holding %s: %s shares @ %s",
            created.txn_type.value, created.txn_id, created.holding_id, created.shares, created.price,
        )
        return created

    def list(self, holding_id: str, until: Optional[date] = None) -> list[Transaction]:
        """A holding's transactions in ledger order (trade_date, txn_id)."""
        with self._locks.hold(holding_id):
            self.get_holding(holding_id)
            return self._transaction_repo.list_by_holding(holding_id, until=until)

    def get_transaction(self, txn_id: int) -> Transaction:
        """Get transaction by ID."""
        transaction = self._transaction_repo.get_by_id(txn_id)
        if not transaction:
            raise NotFoundError("Transaction", str(txn_id))
        return transaction

    def update(
        self,
        txn_id: int,
        changes: TransactionUpdate,
        expected_version: Optional[int] = None,
    ) -> Transaction:
        """
        Edit a transaction.

        The edited ledger is validated as a whole before anything is written;
        an edit that moves a sale ahead of the purchase it depends on fails.
        """
        holding_id = self.get_transaction(txn_id).holding_id
        with self._locks.hold(holding_id):
            current = self.get_transaction(txn_id)
            edited = self._apply(current, changes)
            self._validate_fields(edited)

            holding = self.get_holding(holding_id)
            self._check_version(holding, expected_version)
            ledger = self._transaction_repo.list_by_holding(holding_id)
            validate_sequence([edited if t.txn_id == txn_id else t for t in ledger])

            def write(bumped: Holding) -> Transaction:
                edited.updated_at = bumped.updated_at
                return self._transaction_repo.update(edited)

            updated = self._commit(holding, write)

        logger.info("Updated txn %s of holding %s", txn_id, holding_id)
        return updated

    def remove(self, txn_id: int, expected_version: Optional[int] = None) -> None:
        """Delete a transaction, refusing if later sales would then oversell."""
        holding_id = self.get_transaction(txn_id).holding_id
        with self._locks.hold(holding_id):
            self.get_transaction(txn_id)
            holding = self.get_holding(holding_id)
            self._check_version(holding, expected_version)
            ledger = self._transaction_repo.list_by_holding(holding_id)
            validate_sequence([t for t in ledger if t.txn_id != txn_id])

            self._commit(holding, lambda bumped: self._transaction_repo.delete(txn_id))

        logger.info("Removed txn %s from holding %s", txn_id, holding_id)

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _validate_fields(txn: Transaction) -> None:
        if txn.shares is None or txn.shares <= 0:
            raise ValidationError(f"{txn.txn_type.value} requires shares > 0")
        if txn.price is None or txn.price < 0:
            raise ValidationError(f"{txn.txn_type.value} requires price >= 0")
        if txn.fee is None or txn.fee < 0:
            raise ValidationError("Fee cannot be negative")
        if txn.reinvest and txn.txn_type != TransactionType.DIVIDEND:
            raise ValidationError("Only dividends can be reinvested")

    @staticmethod
    def _apply(txn: Transaction, changes: TransactionUpdate) -> Transaction:
        edited = replace(txn)
        if changes.txn_type is not None:
            edited.txn_type = TransactionType(changes.txn_type)
        if changes.trade_date is not None:
            edited.trade_date = changes.trade_date
        if changes.shares is not None:
            edited.shares = changes.shares
        if changes.price is not None:
            edited.price = changes.price
        if changes.fee is not None:
            edited.fee = changes.fee
        if changes.reinvest is not None:
            edited.reinvest = changes.reinvest
        if changes.note is not None:
            edited.note = changes.note
        return edited

    @staticmethod
    def _check_version(holding: Holding, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != holding.version:
            raise ConcurrencyConflict(holding.holding_id, expected_version, holding.version)

    def _commit(self, holding: Holding, write: Callable[[Holding], T]) -> T:
        """
        Compare-and-set the holding version, then run the write.

        A lost compare-and-set raises ConcurrencyConflict before anything is
        written; a write that fails puts the version back.
        """
        holding_id = holding.holding_id
        bumped = self._holding_repo.bump_version(holding_id, holding.version, self._clock())
        if bumped is None:
            actual = self.get_holding(holding_id).version
            raise ConcurrencyConflict(holding_id, holding.version, actual)
        try:
            return write(bumped)
        except Exception:
            self._holding_repo.restore_version(holding, bumped.version)
            raise
