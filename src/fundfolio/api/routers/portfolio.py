"""Portfolio analytics endpoints."""

from fastapi import APIRouter, Depends, Query

from fundfolio.api.deps import get_portfolio_aggregator, get_user_id
from fundfolio.api.schemas import (
    AllocationResponse,
    CalendarDayResponse,
    Envelope,
    RankingResponse,
    SummaryResponse,
    ok,
)
from fundfolio.services import PortfolioAggregator

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


@router.get("/summary", response_model=Envelope[SummaryResponse])
def get_summary(
    user_id: str = Depends(get_user_id),
    aggregator: PortfolioAggregator = Depends(get_portfolio_aggregator),
) -> dict:
    """Portfolio totals across all holdings."""
    return ok(SummaryResponse.model_validate(aggregator.summary(user_id)))


@router.get("/allocation", response_model=Envelope[AllocationResponse])
def get_allocation(
    by: str = Query("fund_type", description="fund_type, risk_level, channel or group"),
    user_id: str = Depends(get_user_id),
    aggregator: PortfolioAggregator = Depends(get_portfolio_aggregator),
) -> dict:
    """Market value breakdown along one dimension."""
    return ok(AllocationResponse.model_validate(aggregator.allocation(user_id, by=by)))


@router.get("/top", response_model=Envelope[list[RankingResponse]])
def get_top_holdings(
    n: int = Query(5, ge=0),
    user_id: str = Depends(get_user_id),
    aggregator: PortfolioAggregator = Depends(get_portfolio_aggregator),
) -> dict:
    """Holdings with the highest unrealized profit."""
    return ok([RankingResponse.model_validate(r) for r in aggregator.top_holdings(user_id, n)])


@router.get("/bottom", response_model=Envelope[list[RankingResponse]])
def get_bottom_holdings(
    n: int = Query(5, ge=0),
    user_id: str = Depends(get_user_id),
    aggregator: PortfolioAggregator = Depends(get_portfolio_aggregator),
) -> dict:
    """Holdings with the lowest unrealized profit."""
    return ok([RankingResponse.model_validate(r) for r in aggregator.bottom_holdings(user_id, n)])


@router.get("/calendar", response_model=Envelope[list[CalendarDayResponse]])
def get_profit_calendar(
    year: int = Query(..., ge=1990, le=2100),
    month: int = Query(..., ge=1, le=12),
    user_id: str = Depends(get_user_id),
    aggregator: PortfolioAggregator = Depends(get_portfolio_aggregator),
) -> dict:
    """Daily profit for a month; days without NAV data are null."""
    days = aggregator.profit_calendar(user_id, year, month)
    return ok([CalendarDayResponse.model_validate(d) for d in days])
