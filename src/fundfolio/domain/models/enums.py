"""Enumerations for domain models."""

from enum import Enum


class TransactionType(str, Enum):
    """Types of ledger transactions."""

    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND = "DIVIDEND"  # cash by default; reinvest=True makes it an implicit BUY


class SnapshotKind(str, Enum):
    """Categories of externally-fetched fund data held in the valuation cache."""

    ESTIMATE = "ESTIMATE"
    SEARCH = "SEARCH"
    NAV_HISTORY = "NAV_HISTORY"


class CacheState(str, Enum):
    """Lifecycle of a single (fund_code, kind) cache entry."""

    MISSING = "MISSING"
    FETCHING = "FETCHING"
    FRESH = "FRESH"
    STALE = "STALE"


class FundType(str, Enum):
    """Fund categories used for allocation."""

    STOCK = "STOCK"
    BOND = "BOND"
    MIX = "MIX"
    INDEX = "INDEX"
    QDII = "QDII"
    FOF = "FOF"
    MONEY = "MONEY"


class RiskLevel(str, Enum):
    """Fund risk ratings."""

    LOW = "LOW"
    LOW_MEDIUM = "LOW_MEDIUM"
    MEDIUM = "MEDIUM"
    MEDIUM_HIGH = "MEDIUM_HIGH"
    HIGH = "HIGH"
