"""Pydantic schemas for API request/response."""

from fundfolio.api.schemas.common import Envelope, ErrorBody, Meta, ok, error_body
from fundfolio.api.schemas.holding import (
    HoldingCreateRequest,
    HoldingUpdateRequest,
    HoldingResponse,
)
from fundfolio.api.schemas.transaction import (
    TransactionCreateRequest,
    TransactionUpdateRequest,
    TransactionResponse,
)
from fundfolio.api.schemas.portfolio import (
    CostBasisResponse,
    SummaryResponse,
    AllocationItemResponse,
    AllocationResponse,
    RankingResponse,
    CalendarDayResponse,
)
from fundfolio.api.schemas.fund import (
    FundResponse,
    FundQuoteResponse,
    FundSearchResultResponse,
    NavPointResponse,
)

__all__ = [
    "Envelope",
    "ErrorBody",
    "Meta",
    "ok",
    "error_body",
    "HoldingCreateRequest",
    "HoldingUpdateRequest",
    "HoldingResponse",
    "TransactionCreateRequest",
    "TransactionUpdateRequest",
    "TransactionResponse",
    "CostBasisResponse",
    "SummaryResponse",
    "AllocationItemResponse",
    "AllocationResponse",
    "RankingResponse",
    "CalendarDayResponse",
    "FundResponse",
    "FundQuoteResponse",
    "FundSearchResultResponse",
    "NavPointResponse",
]
