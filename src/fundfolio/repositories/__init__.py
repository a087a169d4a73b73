"""Repository layer - data access abstractions and implementations."""

from fundfolio.repositories.protocols import (
    HoldingRepository,
    TransactionRepository,
    FundRepository,
)

__all__ = [
    "HoldingRepository",
    "TransactionRepository",
    "FundRepository",
]
