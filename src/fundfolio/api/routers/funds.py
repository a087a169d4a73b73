"""Fund search and market data endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from fundfolio.api.deps import get_fund_service
from fundfolio.api.schemas import (
    Envelope,
    FundQuoteResponse,
    FundResponse,
    FundSearchResultResponse,
    NavPointResponse,
    ok,
)
from fundfolio.services import FundService

router = APIRouter(prefix="/funds", tags=["funds"])


@router.get("/search", response_model=Envelope[list[FundSearchResultResponse]])
def search_funds(
    q: str = Query(..., min_length=1, description="Fund code or name"),
    funds: FundService = Depends(get_fund_service),
) -> dict:
    """Search funds by code or name."""
    snapshot = funds.search(q)
    return ok([FundSearchResultResponse.model_validate(r) for r in snapshot.payload], snapshot)


@router.get("/{code}", response_model=Envelope[FundResponse])
def get_fund(
    code: str,
    refresh: bool = Query(False, description="Re-sync metadata from the provider"),
    funds: FundService = Depends(get_fund_service),
) -> dict:
    """Fund metadata."""
    return ok(FundResponse.model_validate(funds.get_fund(code, refresh=refresh)))


@router.get("/{code}/estimate", response_model=Envelope[FundQuoteResponse])
def get_estimate(
    code: str,
    funds: FundService = Depends(get_fund_service),
) -> dict:
    """Real-time valuation estimate."""
    snapshot = funds.estimate(code)
    return ok(FundQuoteResponse.model_validate(snapshot.payload), snapshot)


@router.get("/{code}/nav-history", response_model=Envelope[list[NavPointResponse]])
def get_nav_history(
    code: str,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    funds: FundService = Depends(get_fund_service),
) -> dict:
    """Published NAV series."""
    snapshot = funds.nav_history(code, start=start, end=end)
    return ok([NavPointResponse.model_validate(p) for p in snapshot.payload], snapshot)
