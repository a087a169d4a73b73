"""Ledger transaction endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from fundfolio.api.deps import get_ledger_service, get_user_id
from fundfolio.api.routers.holdings import owned_holding
from fundfolio.api.schemas import (
    Envelope,
    TransactionCreateRequest,
    TransactionResponse,
    TransactionUpdateRequest,
    ok,
)
from fundfolio.services import LedgerService, TransactionCreate, TransactionUpdate

router = APIRouter(tags=["transactions"])


@router.get(
    "/holdings/{holding_id}/transactions",
    response_model=Envelope[list[TransactionResponse]],
)
def list_transactions(
    holding_id: str,
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """A holding's ledger in trade order."""
    owned_holding(ledger, holding_id, user_id)
    return ok([TransactionResponse.model_validate(t) for t in ledger.list(holding_id)])


@router.post(
    "/holdings/{holding_id}/transactions",
    response_model=Envelope[TransactionResponse],
    status_code=201,
)
def append_transaction(
    holding_id: str,
    request: TransactionCreateRequest,
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """Append a BUY, SELL or DIVIDEND to a holding."""
    owned_holding(ledger, holding_id, user_id)
    data = TransactionCreate(
        holding_id=holding_id,
        txn_type=request.txn_type,
        trade_date=request.trade_date,
        shares=request.shares,
        price=request.price,
        fee=request.fee,
        reinvest=request.reinvest,
        note=request.note,
    )
    txn = ledger.append(data, expected_version=request.expected_version)
    return ok(TransactionResponse.model_validate(txn))


@router.patch("/transactions/{txn_id}", response_model=Envelope[TransactionResponse])
def update_transaction(
    txn_id: int,
    request: TransactionUpdateRequest,
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """Edit a transaction; the whole ledger is re-validated."""
    owned_holding(ledger, ledger.get_transaction(txn_id).holding_id, user_id)
    changes = TransactionUpdate(
        txn_type=request.txn_type,
        trade_date=request.trade_date,
        shares=request.shares,
        price=request.price,
        fee=request.fee,
        reinvest=request.reinvest,
        note=request.note,
    )
    txn = ledger.update(txn_id, changes, expected_version=request.expected_version)
    return ok(TransactionResponse.model_validate(txn))


@router.delete("/transactions/{txn_id}", response_model=Envelope[None])
def remove_transaction(
    txn_id: int,
    expected_version: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(get_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """Delete a transaction."""
    owned_holding(ledger, ledger.get_transaction(txn_id).holding_id, user_id)
    ledger.remove(txn_id, expected_version=expected_version)
    return ok(None)
