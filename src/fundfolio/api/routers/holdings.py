"""Holding management endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from fundfolio.api.deps import (
    get_cost_basis_calculator,
    get_fund_service,
    get_ledger_service,
    get_user_id,
)
from fundfolio.api.schemas import (
    CostBasisResponse,
    Envelope,
    HoldingCreateRequest,
    HoldingResponse,
    HoldingUpdateRequest,
    ok,
)
from fundfolio.core.exceptions import NotFoundError
from fundfolio.domain.models import Holding
from fundfolio.services import CostBasisCalculator, FundService, LedgerService

router = APIRouter(prefix="/holdings", tags=["holdings"])


def owned_holding(ledger: LedgerService, holding_id: str, user_id: str) -> Holding:
    """Holding by ID; other users' holdings are reported as not found."""
    holding = ledger.get_holding(holding_id)
    if holding.user_id != user_id:
        raise NotFoundError("Holding", holding_id)
    return holding


@router.post("", response_model=Envelope[HoldingResponse], status_code=201)
def create_holding(
    request: HoldingCreateRequest,
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
    funds: FundService = Depends(get_fund_service),
) -> dict:
    """Open a holding of a fund; the fund must be known to the market data source."""
    funds.get_fund(request.fund_code)
    holding = ledger.create_holding(
        user_id=user_id,
        fund_code=request.fund_code,
        channel=request.channel,
        group=request.group,
    )
    return ok(HoldingResponse.model_validate(holding))


@router.get("", response_model=Envelope[list[HoldingResponse]])
def list_holdings(
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """List the caller's holdings."""
    return ok([HoldingResponse.model_validate(h) for h in ledger.list_holdings(user_id)])


@router.get("/{holding_id}", response_model=Envelope[HoldingResponse])
def get_holding(
    holding_id: str,
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """Get a single holding."""
    return ok(HoldingResponse.model_validate(owned_holding(ledger, holding_id, user_id)))


@router.patch("/{holding_id}", response_model=Envelope[HoldingResponse])
def update_holding(
    holding_id: str,
    request: HoldingUpdateRequest,
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """Change a holding's channel or group."""
    owned_holding(ledger, holding_id, user_id)
    holding = ledger.update_holding(
        holding_id,
        channel=request.channel,
        group=request.group,
        expected_version=request.expected_version,
    )
    return ok(HoldingResponse.model_validate(holding))


@router.delete("/{holding_id}", response_model=Envelope[None])
def delete_holding(
    holding_id: str,
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """Delete a holding and its transactions."""
    owned_holding(ledger, holding_id, user_id)
    ledger.delete_holding(holding_id)
    return ok(None)


@router.get("/{holding_id}/cost-basis", response_model=Envelope[CostBasisResponse])
def get_cost_basis(
    holding_id: str,
    as_of: Optional[date] = Query(None, description="Valuation date (default today)"),
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
    calculator: CostBasisCalculator = Depends(get_cost_basis_calculator),
) -> dict:
    """Weighted-average-cost valuation of a holding."""
    owned_holding(ledger, holding_id, user_id)
    return ok(CostBasisResponse.model_validate(calculator.compute(holding_id, as_of=as_of)))
