"""View models for cost basis and portfolio analytics outputs."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional


@dataclass
class CostBasisResult:
    """Weighted-average-cost valuation of one holding at a point in time."""

    holding_id: str
    fund_code: str
    shares: Decimal
    avg_cost: Decimal
    cost_basis: Decimal
    market_value: Decimal
    unrealized_profit: Decimal
    realized_profit: Decimal
    total_invested: Decimal
    profit_rate: Decimal
    price: Optional[Decimal] = None
    # Per-share move of today's estimate; None when priced from a published NAV
    day_change: Optional[Decimal] = None
    as_of: Optional[date] = None


@dataclass
class PortfolioSummary:
    """Portfolio totals across every holding of a user."""

    total_value: Decimal
    total_cost: Decimal
    total_profit: Decimal
    profit_rate: Decimal
    realized_profit: Decimal = field(default_factory=lambda: Decimal("0"))
    today_profit: Decimal = field(default_factory=lambda: Decimal("0"))
    holding_count: int = 0
    as_of: Optional[datetime] = None


@dataclass
class AllocationItem:
    """Single bucket in an allocation breakdown."""

    key: str
    name: str
    market_value: Decimal
    percentage: Decimal
    count: int = 0


@dataclass
class AllocationView:
    """Portfolio allocation breakdown along one dimension."""

    dimension: str
    items: list[AllocationItem] = field(default_factory=list)
    total_value: Decimal = field(default_factory=lambda: Decimal("0"))
    as_of: Optional[datetime] = None


@dataclass
class HoldingRanking:
    """A holding's place in the top/bottom profit ranking."""

    holding_id: str
    fund_code: str
    fund_name: Optional[str]
    unrealized_profit: Decimal
    profit_rate: Decimal
    market_value: Decimal
    percentage: Decimal
    contribution: Decimal


@dataclass
class CalendarDay:
    """Profit for one day; None means NAV data was missing, not a flat day."""

    date: date
    profit: Optional[Decimal]
    # Profit over the previous day's market value; None when that value is zero or unknown
    profit_rate: Optional[Decimal] = None
