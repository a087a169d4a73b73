"""Weighted-average-cost replay of a holding's ledger."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from fundfolio.core.exceptions import DataUnavailableError, NotFoundError, ValidationError
from fundfolio.core.locks import HoldingLockRegistry, get_holding_locks
from fundfolio.core.timezone import now_china
from fundfolio.domain.models import FundQuote, Holding, Transaction, TransactionType
from fundfolio.domain.views import CostBasisResult
from fundfolio.repositories.protocols import HoldingRepository, TransactionRepository
from fundfolio.services.valuation_cache import ValuationCache

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class LedgerState:
    """Running position after replaying a ledger up to some date."""

    shares: Decimal = ZERO
    cost_basis: Decimal = ZERO
    realized_profit: Decimal = ZERO
    total_invested: Decimal = ZERO
    first_trade_date: Optional[date] = None

    @property
    def avg_cost(self) -> Decimal:
        return self.cost_basis / self.shares if self.shares else ZERO

    def buy(self, shares: Decimal, price: Decimal, fee: Decimal) -> None:
        self.cost_basis += shares * price + fee
        self.shares += shares

    def sell(self, shares: Decimal, price: Decimal, fee: Decimal) -> None:
        if shares > self.shares:
            raise ValidationError(f"Cannot sell {shares} shares, only {self.shares} held")
        if shares == self.shares:
            released = self.cost_basis
        else:
            released = shares * self.avg_cost
        self.realized_profit += shares * price - fee - released
        self.cost_basis -= released
        self.shares -= shares


def replay_ledger(
    transactions: Iterable[Transaction],
    as_of_date: Optional[date] = None,
) -> LedgerState:
    """
    Replay transactions in (trade_date, txn_id) order, up to and including `as_of_date`.

    Pure function of its arguments: replaying the same ledger twice always
    gives the same state.
    """
    state = LedgerState()
    for txn in sorted(transactions, key=Transaction.sort_key):
        if as_of_date is not None and txn.trade_date > as_of_date:
            break
        if state.first_trade_date is None:
            state.first_trade_date = txn.trade_date

        if txn.txn_type == TransactionType.BUY:
            state.buy(txn.shares, txn.price, txn.fee)
            state.total_invested += txn.shares * txn.price + txn.fee
        elif txn.txn_type == TransactionType.SELL:
            state.sell(txn.shares, txn.price, txn.fee)
        elif txn.reinvest:
            # Dividend paid out and bought straight back at the ex-dividend NAV
            state.realized_profit += txn.gross_amount
            state.buy(txn.shares, txn.price, txn.fee)
        else:
            state.realized_profit += txn.gross_amount - txn.fee
    return state


class CostBasisCalculator:
    """
    Derives shares, average cost and profit of a holding from its ledger.

    Nothing is cached: every call replays the full ledger, so any ledger
    mutation is reflected on the next read.
    """

    def __init__(
        self,
        holding_repo: HoldingRepository,
        transaction_repo: TransactionRepository,
        cache: ValuationCache,
        locks: Optional[HoldingLockRegistry] = None,
        clock: Callable[[], datetime] = now_china,
    ):
        self._holding_repo = holding_repo
        self._transaction_repo = transaction_repo
        self._cache = cache
        self._locks = locks or get_holding_locks()
        self._clock = clock

    def compute(self, holding_id: str, as_of: Optional[date] = None) -> CostBasisResult:
        """
        Value a holding as of a date (default today).

        Raises:
            NotFoundError: unknown holding
            DataUnavailableError: shares are held but no price can be found
        """
        with self._locks.hold(holding_id):
            holding = self._holding_repo.get_by_id(holding_id)
            if not holding:
                raise NotFoundError("Holding", holding_id)
            transactions = self._transaction_repo.list_by_holding(holding_id, until=as_of)
        return self.compute_for(holding, transactions, as_of)

    def compute_for(
        self,
        holding: Holding,
        transactions: list[Transaction],
        as_of: Optional[date] = None,
    ) -> CostBasisResult:
        """Value an already-loaded ledger. Safe to call from worker threads."""
        today = self._clock().date()
        as_of_date = as_of or today
        state = replay_ledger(transactions, as_of_date)

        price = None
        day_change = None
        market_value = ZERO
        if state.shares > 0:
            price, day_change = self.price_for(holding.fund_code, as_of_date, today)
            market_value = state.shares * price

        unrealized = market_value - state.cost_basis
        if state.total_invested:
            profit_rate = (unrealized + state.realized_profit) / state.total_invested
        else:
            profit_rate = ZERO

        return CostBasisResult(
            holding_id=holding.holding_id,
            fund_code=holding.fund_code,
            shares=state.shares,
            avg_cost=state.avg_cost,
            cost_basis=state.cost_basis,
            market_value=market_value,
            unrealized_profit=unrealized,
            realized_profit=state.realized_profit,
            total_invested=state.total_invested,
            profit_rate=profit_rate,
            price=price,
            day_change=day_change,
            as_of=as_of_date,
        )

    def price_for(
        self,
        fund_code: str,
        as_of_date: date,
        today: date,
    ) -> tuple[Decimal, Optional[Decimal]]:
        """
        Price per share and, when it is a live estimate, its move today.

        Today's price is the real-time estimate, falling back to the latest
        published NAV. Past dates use the NAV on or before that date.
        """
        if as_of_date >= today:
            try:
                quote: FundQuote = self._cache.estimate(fund_code).payload
                return quote.nav, quote.change
            except DataUnavailableError as exc:
                logger.warning("No estimate for %s, using latest NAV: %s", fund_code, exc)
                point = self._cache.nav_on(fund_code, today, exact=False)
                return point.nav, None

        point = self._cache.nav_on(fund_code, as_of_date, exact=False)
        return point.nav, None
