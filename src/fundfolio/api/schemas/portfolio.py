"""Pydantic schemas for portfolio analytics endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class CostBasisResponse(BaseModel):
    """Valuation of one holding."""

    model_config = {"from_attributes": True}

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
    day_change: Optional[Decimal] = None
    as_of: Optional[date] = None


class SummaryResponse(BaseModel):
    """Portfolio totals."""

    model_config = {"from_attributes": True}

    total_value: Decimal
    total_cost: Decimal
    total_profit: Decimal
    profit_rate: Decimal
    realized_profit: Decimal
    today_profit: Decimal
    holding_count: int
    as_of: Optional[datetime] = None


class AllocationItemResponse(BaseModel):
    """Single allocation bucket."""

    model_config = {"from_attributes": True}

    key: str
    name: str
    market_value: Decimal
    percentage: Decimal
    count: int


class AllocationResponse(BaseModel):
    """Allocation breakdown along one dimension."""

    model_config = {"from_attributes": True}

    dimension: str
    items: list[AllocationItemResponse]
    total_value: Decimal
    as_of: Optional[datetime] = None


class RankingResponse(BaseModel):
    """A holding in the top/bottom ranking."""

    model_config = {"from_attributes": True}

    holding_id: str
    fund_code: str
    fund_name: Optional[str] = None
    unrealized_profit: Decimal
    profit_rate: Decimal
    market_value: Decimal
    percentage: Decimal
    contribution: Decimal


class CalendarDayResponse(BaseModel):
    """Profit of one day; null when NAV data was missing."""

    model_config = {"from_attributes": True}

    date: date
    profit: Optional[Decimal] = None
    profit_rate: Optional[Decimal] = None
