"""Domain models package."""

from fundfolio.domain.models.enums import (
    TransactionType,
    SnapshotKind,
    CacheState,
    FundType,
    RiskLevel,
)
from fundfolio.domain.models.holding import Holding
from fundfolio.domain.models.transaction import Transaction
from fundfolio.domain.models.fund import Fund, FundQuote, FundSearchResult, NavPoint
from fundfolio.domain.models.snapshot import FundSnapshot

__all__ = [
    "TransactionType",
    "SnapshotKind",
    "CacheState",
    "FundType",
    "RiskLevel",
    "Holding",
    "Transaction",
    "Fund",
    "FundQuote",
    "FundSearchResult",
    "NavPoint",
    "FundSnapshot",
]
