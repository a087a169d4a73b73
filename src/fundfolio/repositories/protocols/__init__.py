"""Repository protocol definitions (interfaces)."""

from fundfolio.repositories.protocols.holding_repo import HoldingRepository
from fundfolio.repositories.protocols.transaction_repo import TransactionRepository
from fundfolio.repositories.protocols.fund_repo import FundRepository

__all__ = [
    "HoldingRepository",
    "TransactionRepository",
    "FundRepository",
]
