"""Fund lookup service: search, metadata sync and market data passthrough."""

import logging
from datetime import date
from typing import Optional

from fundfolio.core.exceptions import ValidationError
from fundfolio.domain.models import Fund, FundSnapshot, SnapshotKind
from fundfolio.providers.market_data_provider import MarketDataFetcher
from fundfolio.repositories.protocols import FundRepository
from fundfolio.services.valuation_cache import ValuationCache

logger = logging.getLogger(__name__)


class FundService:
    """
    Service for fund metadata and market data.

    Metadata is read from the local store and synced from the fetcher on a
    miss. Quotes, search results and NAV history always go through the
    ValuationCache.
    """

    def __init__(
        self,
        fund_repo: FundRepository,
        cache: ValuationCache,
        fetcher: MarketDataFetcher,
    ):
        self._fund_repo = fund_repo
        self._cache = cache
        self._fetcher = fetcher

    def search(self, query: str) -> FundSnapshot:
        """Search funds by code or name."""
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        return self._cache.search(query)

    def get_fund(self, code: str, refresh: bool = False) -> Fund:
        """Fund metadata; fetched and stored when unknown locally or on refresh."""
        if not refresh:
            fund = self._fund_repo.get_by_code(code)
            if fund:
                return fund

        fund = self._fetcher.fetch_fund_detail(code)
        logger.info("Synced metadata of fund %s (%s)", code, fund.name)
        return self._fund_repo.upsert(fund)

    def sync_funds(self, codes: list[str]) -> dict[str, Fund]:
        """Ensure metadata exists for every code, fetching only the missing ones."""
        known = self._fund_repo.list_by_codes(codes)
        for code in codes:
            if code not in known:
                known[code] = self.get_fund(code, refresh=True)
        return known

    def estimate(self, code: str) -> FundSnapshot:
        """Real-time valuation estimate."""
        return self._cache.estimate(code)

    def nav_history(
        self,
        code: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> FundSnapshot:
        """Published NAV series between two dates (default: the past year)."""
        if start and end and start > end:
            raise ValidationError(f"start {start} is after end {end}")
        return self._cache.get(code, kind=SnapshotKind.NAV_HISTORY, start=start, end=end)

