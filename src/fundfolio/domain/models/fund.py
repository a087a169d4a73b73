"""Fund metadata and normalized market data shapes."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from fundfolio.domain.models.enums import FundType, RiskLevel


@dataclass
class Fund:
    """Locally persisted fund metadata, synced from the market data fetcher."""

    code: str
    name: str
    fund_type: Optional[FundType] = None
    risk_level: Optional[RiskLevel] = None

    def __post_init__(self) -> None:
        if isinstance(self.fund_type, str):
            self.fund_type = FundType(self.fund_type)
        if isinstance(self.risk_level, str):
            self.risk_level = RiskLevel(self.risk_level)


@dataclass(frozen=True)
class FundQuote:
    """Real-time valuation estimate for a fund."""

    code: str
    nav: Decimal
    change: Decimal
    change_percent: Decimal
    date: date


@dataclass(frozen=True)
class FundSearchResult:
    """Single hit from a fund search."""

    code: str
    name: str
    fund_type: Optional[str] = None


@dataclass(frozen=True)
class NavPoint:
    """Published net asset value for one trading day."""

    date: date
    nav: Decimal
