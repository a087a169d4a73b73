"""View models for service outputs."""

from fundfolio.domain.views.portfolio import (
    CostBasisResult,
    PortfolioSummary,
    AllocationItem,
    AllocationView,
    HoldingRanking,
    CalendarDay,
)

__all__ = [
    "CostBasisResult",
    "PortfolioSummary",
    "AllocationItem",
    "AllocationView",
    "HoldingRanking",
    "CalendarDay",
]
