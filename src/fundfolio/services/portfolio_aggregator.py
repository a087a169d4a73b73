"""Cross-holding analytics: summary, allocation, rankings and profit calendar."""

import calendar
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from threading import Event
from typing import Callable, Optional, TypeVar

from fundfolio.core.exceptions import DataUnavailableError, OperationCancelled, ValidationError
from fundfolio.core.locks import HoldingLockRegistry, get_holding_locks
from fundfolio.core.timezone import now_china
from fundfolio.domain.models import Fund, FundType, Holding, RiskLevel, Transaction
from fundfolio.domain.views import (
    AllocationItem,
    AllocationView,
    CalendarDay,
    CostBasisResult,
    HoldingRanking,
    PortfolioSummary,
)
from fundfolio.repositories.protocols import (
    FundRepository,
    HoldingRepository,
    TransactionRepository,
)
from fundfolio.services.cost_basis import CostBasisCalculator
from fundfolio.services.valuation_cache import NAV_LOOKBACK, ValuationCache, nav_by_date

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
OTHER = "other"

ALLOCATION_DIMENSIONS = ("fund_type", "risk_level", "channel", "group")

FUND_TYPE_NAMES = {
    FundType.STOCK: "股票型",
    FundType.BOND: "债券型",
    FundType.MIX: "混合型",
    FundType.INDEX: "指数型",
    FundType.QDII: "QDII",
    FundType.FOF: "FOF",
    FundType.MONEY: "货币型",
}

RISK_LEVEL_NAMES = {
    RiskLevel.LOW: "低风险",
    RiskLevel.LOW_MEDIUM: "中低风险",
    RiskLevel.MEDIUM: "中等风险",
    RiskLevel.MEDIUM_HIGH: "中高风险",
    RiskLevel.HIGH: "高风险",
}

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class HoldingLedger:
    """A holding and its transactions, read together under the holding's lock."""

    holding: Holding
    transactions: list[Transaction]


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    return part / whole * HUNDRED if whole else ZERO


class PortfolioAggregator:
    """
    Combines per-holding valuations into portfolio-level views.

    Ledgers are read in the calling thread; per-holding replay and pricing
    fan out onto a thread pool and share nothing but the ValuationCache.
    Every call accepts a `cancel_event`: once it is set, holdings not yet
    started are skipped and the call raises OperationCancelled.
    """

    def __init__(
        self,
        holding_repo: HoldingRepository,
        transaction_repo: TransactionRepository,
        fund_repo: FundRepository,
        calculator: CostBasisCalculator,
        cache: ValuationCache,
        locks: Optional[HoldingLockRegistry] = None,
        clock: Callable[[], datetime] = now_china,
        max_workers: int = 8,
    ):
        self._holding_repo = holding_repo
        self._transaction_repo = transaction_repo
        self._fund_repo = fund_repo
        self._calculator = calculator
        self._cache = cache
        self._locks = locks or get_holding_locks()
        self._clock = clock
        self._max_workers = max_workers

    # ==========================================================================
    # Public API
    # ==========================================================================

    def valuations(
        self,
        user_id: str,
        cancel_event: Optional[Event] = None,
    ) -> list[CostBasisResult]:
        """Current CostBasisResult of every holding, ordered by holding_id."""
        ledgers = self._load(user_id)
        return self._fan_out(
            lambda ledger: self._calculator.compute_for(ledger.holding, ledger.transactions),
            ledgers,
            cancel_event,
        )

    def summary(self, user_id: str, cancel_event: Optional[Event] = None) -> PortfolioSummary:
        """Portfolio totals. total_value is exactly the sum of holding market values."""
        results = self.valuations(user_id, cancel_event)

        total_value = sum((r.market_value for r in results), ZERO)
        total_cost = sum((r.cost_basis for r in results), ZERO)
        total_profit = total_value - total_cost
        today_profit = sum(
            (r.shares * r.day_change for r in results if r.day_change is not None),
            ZERO,
        )
        return PortfolioSummary(
            total_value=total_value,
            total_cost=total_cost,
            total_profit=total_profit,
            profit_rate=total_profit / total_cost if total_cost else ZERO,
            realized_profit=sum((r.realized_profit for r in results), ZERO),
            today_profit=today_profit,
            holding_count=len(results),
            as_of=self._clock(),
        )

    def allocation(
        self,
        user_id: str,
        by: str = "fund_type",
        categories: Optional[dict[str, str]] = None,
        cancel_event: Optional[Event] = None,
    ) -> AllocationView:
        """
        Market value per bucket along one dimension.

        `categories` maps holding_id to a caller-chosen bucket and takes
        precedence over the dimension. Holdings without a known bucket go to
        "other"; none are dropped.
        """
        if by not in ALLOCATION_DIMENSIONS and categories is None:
            raise ValidationError(
                f"Unknown allocation dimension '{by}', expected one of {', '.join(ALLOCATION_DIMENSIONS)}"
            )

        ledgers = self._load(user_id)
        funds = self._fund_repo.list_by_codes([ledger.holding.fund_code for ledger in ledgers])
        results = self._fan_out(
            lambda ledger: self._calculator.compute_for(ledger.holding, ledger.transactions),
            ledgers,
            cancel_event,
        )

        buckets: dict[str, list[Decimal]] = {}
        names: dict[str, str] = {}
        for ledger, result in zip(ledgers, results):
            holding = ledger.holding
            if categories is not None:
                key, name = categories.get(holding.holding_id) or OTHER, None
            else:
                key, name = self._bucket(by, holding, funds.get(holding.fund_code))
            key = key or OTHER
            names.setdefault(key, name or ("其他" if key == OTHER else key))
            buckets.setdefault(key, []).append(result.market_value)

        total_value = sum((r.market_value for r in results), ZERO)
        items = [
            AllocationItem(
                key=key,
                name=names[key],
                market_value=sum(values, ZERO),
                percentage=_percent(sum(values, ZERO), total_value),
                count=len(values),
            )
            for key, values in buckets.items()
        ]
        items.sort(key=lambda item: (-item.market_value, item.key))
        return AllocationView(
            dimension="custom" if categories is not None else by,
            items=items,
            total_value=total_value,
            as_of=self._clock(),
        )

    def top_holdings(
        self,
        user_id: str,
        n: int = 5,
        cancel_event: Optional[Event] = None,
    ) -> list[HoldingRanking]:
        """Holdings with the highest unrealized profit first; ties by holding_id."""
        return self._ranked(user_id, n, descending=True, cancel_event=cancel_event)

    def bottom_holdings(
        self,
        user_id: str,
        n: int = 5,
        cancel_event: Optional[Event] = None,
    ) -> list[HoldingRanking]:
        """Holdings with the lowest unrealized profit first; ties by holding_id."""
        return self._ranked(user_id, n, descending=False, cancel_event=cancel_event)

    def profit_calendar(
        self,
        user_id: str,
        year: int,
        month: int,
        cancel_event: Optional[Event] = None,
    ) -> list[CalendarDay]:
        """
        Daily profit for each day of a month.

        daily_profit(d) = MV(d) - MV(p) - net cash flow in (p, d], where p is
        the last day the holding could be valued. A day on which a holding
        with shares has no NAV is None, and so is the portfolio total for it.
        profit_rate divides the day's profit by the previous market value.
        Days before the first transaction or after today are left out.
        """
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid month: {month}")

        today = self._clock().date()
        month_start = date(year, month, 1)
        month_end = date(year, month, calendar.monthrange(year, month)[1])

        ledgers = [ledger for ledger in self._load(user_id) if ledger.transactions]
        if not ledgers:
            return []
        first_trade = min(ledger.transactions[0].trade_date for ledger in ledgers)
        start = max(month_start, first_trade)
        end = min(month_end, today)
        if start > end:
            return []
        days = [start + timedelta(days=i) for i in range((end - start).days + 1)]

        per_holding = self._fan_out(
            lambda ledger: self._holding_calendar(ledger, days, today),
            ledgers,
            cancel_event,
        )

        result = []
        for day in days:
            entries = [by_day[day] for by_day in per_holding]
            if any(profit is None for profit, _ in entries):
                result.append(CalendarDay(date=day, profit=None))
                continue
            profit = sum((profit for profit, _ in entries), ZERO)
            previous_value = sum((value for _, value in entries), ZERO)
            rate = profit / previous_value if previous_value else None
            result.append(CalendarDay(date=day, profit=profit, profit_rate=rate))
        return result

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _load(self, user_id: str) -> list[HoldingLedger]:
        ledgers = []
        for holding in self._holding_repo.list_by_user(user_id):
            with self._locks.hold(holding.holding_id):
                transactions = self._transaction_repo.list_by_holding(holding.holding_id)
            ledgers.append(HoldingLedger(holding=holding, transactions=transactions))
        return ledgers

    def _fan_out(
        self,
        func: Callable[[T], R],
        items: list[T],
        cancel_event: Optional[Event],
    ) -> list[R]:
        """Run func over items on the pool, keeping input order."""
        self._check_cancelled(cancel_event)
        if not items:
            return []

        def guarded(item: T) -> R:
            self._check_cancelled(cancel_event)
            return func(item)

        executor = ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(items)),
            thread_name_prefix="portfolio",
        )
        futures: list[Future] = []
        try:
            futures = [executor.submit(guarded, item) for item in items]
            return [future.result() for future in futures]
        finally:
            for future in futures:
                future.cancel()
            executor.shutdown(wait=True)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelled()

    @staticmethod
    def _bucket(
        by: str,
        holding: Holding,
        fund: Optional[Fund],
    ) -> tuple[Optional[str], Optional[str]]:
        if by == "channel":
            return holding.channel, holding.channel
        if by == "group":
            return holding.group, holding.group
        if fund is None:
            return None, None
        if by == "fund_type" and fund.fund_type is not None:
            return fund.fund_type.value, FUND_TYPE_NAMES[fund.fund_type]
        if by == "risk_level" and fund.risk_level is not None:
            return fund.risk_level.value, RISK_LEVEL_NAMES[fund.risk_level]
        return None, None

    def _ranked(
        self,
        user_id: str,
        n: int,
        descending: bool,
        cancel_event: Optional[Event],
    ) -> list[HoldingRanking]:
        results = self.valuations(user_id, cancel_event)
        n = max(0, min(n, len(results)))

        total_value = sum((r.market_value for r in results), ZERO)
        total_unrealized = sum((r.unrealized_profit for r in results), ZERO)
        sign = -1 if descending else 1
        ordered = sorted(results, key=lambda r: (sign * r.unrealized_profit, r.holding_id))[:n]

        funds = self._fund_repo.list_by_codes([r.fund_code for r in ordered])
        return [
            HoldingRanking(
                holding_id=r.holding_id,
                fund_code=r.fund_code,
                fund_name=funds[r.fund_code].name if r.fund_code in funds else None,
                unrealized_profit=r.unrealized_profit,
                profit_rate=r.profit_rate,
                market_value=r.market_value,
                percentage=_percent(r.market_value, total_value),
                contribution=_percent(r.unrealized_profit, total_unrealized),
            )
            for r in ordered
        ]

    def _holding_calendar(
        self,
        ledger: HoldingLedger,
        days: list[date],
        today: date,
    ) -> dict[date, tuple[Optional[Decimal], Optional[Decimal]]]:
        """Daily (profit, previous market value) of one holding over consecutive days."""
        fund_code = ledger.holding.fund_code
        baseline_day = days[0] - timedelta(days=1)
        snapshot = self._cache.nav_history(fund_code, baseline_day - NAV_LOOKBACK, days[-1])
        navs = nav_by_date(snapshot.payload)

        transactions = sorted(ledger.transactions, key=Transaction.sort_key)
        shares = ZERO
        index = 0
        while index < len(transactions) and transactions[index].trade_date <= baseline_day:
            shares += transactions[index].share_delta
            index += 1

        if not shares:
            last_value: Optional[Decimal] = ZERO
        else:
            earlier = [d for d in navs if d <= baseline_day]
            last_value = shares * navs[max(earlier)] if earlier else None

        profits: dict[date, tuple[Optional[Decimal], Optional[Decimal]]] = {}
        pending_flow = ZERO
        for day in days:
            while index < len(transactions) and transactions[index].trade_date == day:
                shares += transactions[index].share_delta
                pending_flow += transactions[index].net_cash_flow
                index += 1

            nav = navs.get(day)
            if nav is None and day == today and shares:
                nav = self._estimate_nav(fund_code)

            if not shares:
                value = ZERO
            elif nav is not None:
                value = shares * nav
            else:
                profits[day] = (None, last_value)
                continue

            profit = None if last_value is None else value - last_value - pending_flow
            profits[day] = (profit, last_value)
            last_value = value
            pending_flow = ZERO
        return profits

    def _estimate_nav(self, fund_code: str) -> Optional[Decimal]:
        """Today's NAV is not published until evening; value today at the live estimate."""
        try:
            return self._cache.estimate(fund_code).payload.nav
        except DataUnavailableError as exc:
            logger.warning("No estimate for %s, today left blank: %s", fund_code, exc)
            return None
