"""Market data fetcher protocol."""

from datetime import date
from typing import Protocol

from fundfolio.domain.models import Fund, FundQuote, FundSearchResult, NavPoint


class MarketDataFetcher(Protocol):
    """
    Protocol for external fund data sources.

    Implementations return normalized shapes and raise DataUnavailableError
    for any transport, provider or parsing failure.
    """

    def fetch_estimate(self, code: str) -> FundQuote:
        """Fetch the intraday valuation estimate for a fund."""
        ...

    def search_funds(self, query: str) -> list[FundSearchResult]:
        """Search funds by code, name or pinyin abbreviation."""
        ...

    def fetch_nav_history(self, code: str, start: date, end: date) -> list[NavPoint]:
        """Fetch published NAVs between start and end (inclusive), ascending."""
        ...

    def fetch_fund_detail(self, code: str) -> Fund:
        """Fetch descriptive fund metadata (name, type, risk level)."""
        ...
