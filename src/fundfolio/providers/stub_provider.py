"""Stub market data fetcher for offline/testing use."""

import zlib
from datetime import date, timedelta
from decimal import Decimal

from fundfolio.core.exceptions import DataUnavailableError
from fundfolio.core.timezone import today_china
from fundfolio.domain.models import (
    Fund,
    FundQuote,
    FundSearchResult,
    FundType,
    NavPoint,
    RiskLevel,
)


# Deterministic catalogue for common funds
_STUB_FUNDS: dict[str, tuple[str, FundType, RiskLevel, Decimal]] = {
    "000001": ("华夏成长混合", FundType.MIX, RiskLevel.MEDIUM_HIGH, Decimal("1.2000")),
    "110022": ("易方达消费行业股票", FundType.STOCK, RiskLevel.HIGH, Decimal("3.5000")),
    "161725": ("招商中证白酒指数", FundType.INDEX, RiskLevel.HIGH, Decimal("1.1000")),
    "000198": ("天弘余额宝货币", FundType.MONEY, RiskLevel.LOW, Decimal("1.0000")),
    "217022": ("招商产业债券", FundType.BOND, RiskLevel.LOW_MEDIUM, Decimal("1.4500")),
}


class StubMarketDataFetcher:
    """
    Offline fetcher producing a deterministic NAV path per fund.

    NAVs are published on weekdays only; the estimate for today is the
    weekday NAV formula applied to today's date.
    """

    def fetch_estimate(self, code: str) -> FundQuote:
        today = today_china()
        nav = self._nav_for(code, today)
        previous = self._nav_for(code, self._previous_weekday(today))
        change = nav - previous
        return FundQuote(
            code=code,
            nav=nav,
            change=change,
            change_percent=(change / previous * 100).quantize(Decimal("0.01")),
            date=today,
        )

    def search_funds(self, query: str) -> list[FundSearchResult]:
        needle = query.strip()
        return [
            FundSearchResult(code=code, name=name, fund_type=fund_type.value)
            for code, (name, fund_type, _, _) in sorted(_STUB_FUNDS.items())
            if needle in code or needle in name
        ]

    def fetch_nav_history(self, code: str, start: date, end: date) -> list[NavPoint]:
        points = []
        day = start
        while day <= end:
            if day.weekday() < 5:
                points.append(NavPoint(date=day, nav=self._nav_for(code, day)))
            day += timedelta(days=1)
        return points

    def fetch_fund_detail(self, code: str) -> Fund:
        if code not in _STUB_FUNDS:
            raise DataUnavailableError(f"Fund not found upstream: {code}")
        name, fund_type, risk_level, _ = _STUB_FUNDS[code]
        return Fund(code=code, name=name, fund_type=fund_type, risk_level=risk_level)

    @staticmethod
    def _base_nav(code: str) -> Decimal:
        if code in _STUB_FUNDS:
            return _STUB_FUNDS[code][3]
        return Decimal(1 + zlib.crc32(code.encode()) % 300 / 100).quantize(Decimal("0.0001"))

    def _nav_for(self, code: str, day: date) -> Decimal:
        # Small bounded oscillation around the base NAV
        wobble = Decimal((day.toordinal() % 17) - 8) / Decimal("1000")
        return (self._base_nav(code) * (1 + wobble)).quantize(Decimal("0.0001"))

    @staticmethod
    def _previous_weekday(day: date) -> date:
        day -= timedelta(days=1)
        while day.weekday() >= 5:
            day -= timedelta(days=1)
        return day
