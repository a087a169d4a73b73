"""Market data fetchers module."""

from fundfolio.providers.market_data_provider import MarketDataFetcher
from fundfolio.providers.eastmoney_provider import EastmoneyFetcher
from fundfolio.providers.stub_provider import StubMarketDataFetcher

__all__ = [
    "MarketDataFetcher",
    "EastmoneyFetcher",
    "StubMarketDataFetcher",
]
