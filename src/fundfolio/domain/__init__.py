"""Domain layer - pure business models with no external dependencies."""

from fundfolio.domain.models import (
    Holding,
    Transaction,
    Fund,
    FundQuote,
    FundSearchResult,
    NavPoint,
    FundSnapshot,
    TransactionType,
    SnapshotKind,
    CacheState,
    FundType,
    RiskLevel,
)

__all__ = [
    "Holding",
    "Transaction",
    "Fund",
    "FundQuote",
    "FundSearchResult",
    "NavPoint",
    "FundSnapshot",
    "TransactionType",
    "SnapshotKind",
    "CacheState",
    "FundType",
    "RiskLevel",
]
