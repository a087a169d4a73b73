"""Dependency injection for FastAPI."""

from threading import Lock
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from fundfolio.config.settings import get_settings
from fundfolio.core.exceptions import ValidationError
from fundfolio.providers import EastmoneyFetcher, MarketDataFetcher, StubMarketDataFetcher
from fundfolio.repositories.sqlalchemy.database import get_db
from fundfolio.repositories.sqlalchemy import (
    SqlAlchemyFundRepository,
    SqlAlchemyHoldingRepository,
    SqlAlchemyTransactionRepository,
)
from fundfolio.services import (
    CostBasisCalculator,
    FreshnessPolicy,
    FundService,
    LedgerService,
    PortfolioAggregator,
    ValuationCache,
)

# Process-wide cache shared by every request
_valuation_cache: Optional[ValuationCache] = None
_cache_lock = Lock()


def build_fetcher() -> MarketDataFetcher:
    """Market data fetcher selected by settings."""
    settings = get_settings()
    if settings.market_data_provider == "stub":
        return StubMarketDataFetcher()
    return EastmoneyFetcher(timeout=settings.fetch_timeout_seconds)


def get_valuation_cache() -> ValuationCache:
    """Provide the shared ValuationCache, creating it on first use."""
    global _valuation_cache
    with _cache_lock:
        if _valuation_cache is None:
            settings = get_settings()
            _valuation_cache = ValuationCache(
                fetcher=build_fetcher(),
                policy=FreshnessPolicy.from_seconds(
                    estimate=settings.estimate_window_seconds,
                    search=settings.search_window_seconds,
                    nav_history=settings.nav_history_window_seconds,
                ),
                fetch_timeout=settings.fetch_timeout_seconds,
            )
        return _valuation_cache


def set_valuation_cache(cache: ValuationCache) -> None:
    """Replace the shared ValuationCache."""
    global _valuation_cache
    with _cache_lock:
        _valuation_cache = cache


def reset_valuation_cache() -> None:
    """Drop the shared ValuationCache; the next request builds a new one."""
    global _valuation_cache
    with _cache_lock:
        if _valuation_cache is not None:
            _valuation_cache.close()
        _valuation_cache = None


def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Caller identity, already verified upstream."""
    if not x_user_id.strip():
        raise ValidationError("X-User-Id header is empty")
    return x_user_id.strip()


def get_holding_repo(db: Session = Depends(get_db)) -> SqlAlchemyHoldingRepository:
    """Provide HoldingRepository instance."""
    return SqlAlchemyHoldingRepository(db)


def get_transaction_repo(db: Session = Depends(get_db)) -> SqlAlchemyTransactionRepository:
    """Provide TransactionRepository instance."""
    return SqlAlchemyTransactionRepository(db)


def get_fund_repo(db: Session = Depends(get_db)) -> SqlAlchemyFundRepository:
    """Provide FundRepository instance."""
    return SqlAlchemyFundRepository(db)


def get_ledger_service(
    holding_repo: SqlAlchemyHoldingRepository = Depends(get_holding_repo),
    transaction_repo: SqlAlchemyTransactionRepository = Depends(get_transaction_repo),
) -> LedgerService:
    """Provide LedgerService instance."""
    return LedgerService(
        holding_repo=holding_repo,
        transaction_repo=transaction_repo,
    )


def get_cost_basis_calculator(
    holding_repo: SqlAlchemyHoldingRepository = Depends(get_holding_repo),
    transaction_repo: SqlAlchemyTransactionRepository = Depends(get_transaction_repo),
    cache: ValuationCache = Depends(get_valuation_cache),
) -> CostBasisCalculator:
    """Provide CostBasisCalculator instance."""
    return CostBasisCalculator(
        holding_repo=holding_repo,
        transaction_repo=transaction_repo,
        cache=cache,
    )


def get_portfolio_aggregator(
    holding_repo: SqlAlchemyHoldingRepository = Depends(get_holding_repo),
    transaction_repo: SqlAlchemyTransactionRepository = Depends(get_transaction_repo),
    fund_repo: SqlAlchemyFundRepository = Depends(get_fund_repo),
    calculator: CostBasisCalculator = Depends(get_cost_basis_calculator),
    cache: ValuationCache = Depends(get_valuation_cache),
) -> PortfolioAggregator:
    """Provide PortfolioAggregator instance."""
    return PortfolioAggregator(
        holding_repo=holding_repo,
        transaction_repo=transaction_repo,
        fund_repo=fund_repo,
        calculator=calculator,
        cache=cache,
        max_workers=get_settings().aggregator_max_workers,
    )


def get_fund_service(
    fund_repo: SqlAlchemyFundRepository = Depends(get_fund_repo),
    cache: ValuationCache = Depends(get_valuation_cache),
) -> FundService:
    """Provide FundService instance."""
    return FundService(
        fund_repo=fund_repo,
        cache=cache,
        fetcher=cache.fetcher,
    )
