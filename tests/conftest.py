"""
Pytest configuration and fixtures for fund portfolio tests.

This module provides:
- In-memory SQLite database fixtures
- A controllable clock in the China market timezone
- Deterministic and failing market data fetchers
- Service and repository fixtures
- Factory helpers for holdings and transactions
"""

import threading
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

import pytest
from sqlalchemy import create_engine, StaticPool
from sqlalchemy.orm import sessionmaker, Session
from fastapi.testclient import TestClient

from fundfolio.main import app
from fundfolio.api.deps import reset_valuation_cache, set_valuation_cache
from fundfolio.config.settings import Settings, reset_settings, set_settings
from fundfolio.core.exceptions import DataUnavailableError
from fundfolio.core.locks import HoldingLockRegistry
from fundfolio.core.timezone import CHINA_TZ
from fundfolio.repositories.sqlalchemy.database import Base, get_db, reset_database
# Import ORM models to register them with Base before creating tables
from fundfolio.repositories.sqlalchemy import orm_models  # noqa: F401
from fundfolio.repositories.sqlalchemy import (
    SqlAlchemyFundRepository,
    SqlAlchemyHoldingRepository,
    SqlAlchemyTransactionRepository,
)
from fundfolio.domain.models import (
    Fund,
    FundQuote,
    FundSearchResult,
    FundType,
    Holding,
    NavPoint,
    RiskLevel,
    Transaction,
    TransactionType,
)
from fundfolio.services import (
    CostBasisCalculator,
    FreshnessPolicy,
    FundService,
    LedgerService,
    PortfolioAggregator,
    TransactionCreate,
    ValuationCache,
)


# =============================================================================
# TIME HELPERS
# =============================================================================


def china_datetime(
    year: int,
    month: int,
    day: int,
    hour: int = 10,
    minute: int = 0,
    second: int = 0,
) -> datetime:
    """Create a localized datetime in Asia/Shanghai."""
    return CHINA_TZ.localize(datetime(year, month, day, hour, minute, second))


class FakeClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, days: int = 0) -> None:
        self.now = self.now + timedelta(seconds=seconds, days=days)


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed 'now' for deterministic tests: Friday 2024-06-14, 14:30 Beijing time."""
    return china_datetime(2024, 6, 14, 14, 30, 0)


@pytest.fixture
def clock(fixed_now) -> FakeClock:
    """Controllable clock starting at fixed_now."""
    return FakeClock(fixed_now)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="function")
def test_engine():
    """Create test database engine with shared in-memory SQLite."""
    reset_settings()

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_session(test_engine) -> Session:
    """Create test database session."""
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# REPOSITORY FIXTURES
# =============================================================================


@pytest.fixture
def holding_repo(test_session) -> SqlAlchemyHoldingRepository:
    """Provide test HoldingRepository."""
    return SqlAlchemyHoldingRepository(test_session)


@pytest.fixture
def transaction_repo(test_session) -> SqlAlchemyTransactionRepository:
    """Provide test TransactionRepository."""
    return SqlAlchemyTransactionRepository(test_session)


@pytest.fixture
def fund_repo(test_session) -> SqlAlchemyFundRepository:
    """Provide test FundRepository."""
    return SqlAlchemyFundRepository(test_session)


# =============================================================================
# MARKET DATA FIXTURES
# =============================================================================


DEFAULT_ESTIMATES = {
    "000001": (Decimal("1.30"), Decimal("0.01")),
    "110022": (Decimal("3.60"), Decimal("-0.02")),
    "161725": (Decimal("1.00"), Decimal("0")),
}

DEFAULT_FUNDS = {
    "000001": Fund("000001", "华夏成长混合", FundType.MIX, RiskLevel.MEDIUM_HIGH),
    "110022": Fund("110022", "易方达消费行业股票", FundType.STOCK, RiskLevel.HIGH),
    "161725": Fund("161725", "招商中证白酒指数", FundType.INDEX, RiskLevel.HIGH),
}


class DeterministicFetcher:
    """
    Market data fetcher with fixed answers and a call log.

    - estimates: code -> (nav, change)
    - navs: code -> {date: nav}, explicit NAV series
    - flat_navs: code -> nav published on every calendar day
    - gate: when set, every call blocks until the event is set
    """

    def __init__(
        self,
        estimates: Optional[dict[str, tuple[Decimal, Decimal]]] = None,
        navs: Optional[dict[str, dict[date, Decimal]]] = None,
        flat_navs: Optional[dict[str, Decimal]] = None,
        funds: Optional[dict[str, Fund]] = None,
        gate: Optional[threading.Event] = None,
        quote_date: date = date(2024, 6, 14),
    ):
        self.estimates = dict(DEFAULT_ESTIMATES if estimates is None else estimates)
        self.navs = navs or {}
        self.flat_navs = flat_navs or {}
        self.funds = dict(DEFAULT_FUNDS if funds is None else funds)
        self.gate = gate
        self.quote_date = quote_date
        self.fail = False
        self.calls: list[tuple] = []
        self._lock = threading.Lock()

    def call_count(self, method: str) -> int:
        with self._lock:
            return sum(1 for call in self.calls if call[0] == method)

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail:
            raise ConnectionError("Network unavailable")

    def fetch_estimate(self, code: str) -> FundQuote:
        self._record("fetch_estimate", code)
        if code not in self.estimates:
            raise DataUnavailableError(f"No estimate for {code}")
        nav, change = self.estimates[code]
        previous = nav - change
        return FundQuote(
            code=code,
            nav=nav,
            change=change,
            change_percent=change / previous * 100 if previous else Decimal("0"),
            date=self.quote_date,
        )

    def search_funds(self, query: str) -> list[FundSearchResult]:
        self._record("search_funds", query)
        return [
            FundSearchResult(code=f.code, name=f.name, fund_type=f.fund_type.value)
            for f in self.funds.values()
            if query in f.code or query in f.name
        ]

    def fetch_nav_history(self, code: str, start: date, end: date) -> list[NavPoint]:
        self._record("fetch_nav_history", code, start, end)
        if code in self.navs:
            return [
                NavPoint(date=d, nav=nav)
                for d, nav in sorted(self.navs[code].items())
                if start <= d <= end
            ]
        if code in self.flat_navs:
            days = (end - start).days + 1
            return [
                NavPoint(date=start + timedelta(days=i), nav=self.flat_navs[code])
                for i in range(days)
            ]
        return []

    def fetch_fund_detail(self, code: str) -> Fund:
        self._record("fetch_fund_detail", code)
        if code not in self.funds:
            raise DataUnavailableError(f"Unknown fund {code}")
        return self.funds[code]


class FailingFetcher:
    """Market data fetcher whose every call fails at the transport level."""

    def __init__(self):
        self.calls = 0

    def _fail(self):
        self.calls += 1
        raise ConnectionError("Network unavailable")

    def fetch_estimate(self, code: str) -> FundQuote:
        self._fail()

    def search_funds(self, query: str) -> list[FundSearchResult]:
        self._fail()

    def fetch_nav_history(self, code: str, start: date, end: date) -> list[NavPoint]:
        self._fail()

    def fetch_fund_detail(self, code: str) -> Fund:
        self._fail()


@pytest.fixture
def fetcher() -> DeterministicFetcher:
    """Provide deterministic market data fetcher."""
    return DeterministicFetcher()


@pytest.fixture
def failing_fetcher() -> FailingFetcher:
    """Provide a market data fetcher that always fails."""
    return FailingFetcher()


@pytest.fixture
def valuation_cache(fetcher, clock) -> ValuationCache:
    """Provide ValuationCache over the deterministic fetcher and fake clock."""
    cache = ValuationCache(
        fetcher=fetcher,
        policy=FreshnessPolicy(),
        fetch_timeout=2.0,
        clock=clock,
    )
    yield cache
    cache.close()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def locks() -> HoldingLockRegistry:
    """Per-test lock registry."""
    return HoldingLockRegistry()


@pytest.fixture
def ledger_service(holding_repo, transaction_repo, locks, clock) -> LedgerService:
    """Provide test LedgerService."""
    return LedgerService(
        holding_repo=holding_repo,
        transaction_repo=transaction_repo,
        locks=locks,
        clock=clock,
    )


@pytest.fixture
def calculator(holding_repo, transaction_repo, valuation_cache, locks, clock) -> CostBasisCalculator:
    """Provide test CostBasisCalculator."""
    return CostBasisCalculator(
        holding_repo=holding_repo,
        transaction_repo=transaction_repo,
        cache=valuation_cache,
        locks=locks,
        clock=clock,
    )


@pytest.fixture
def aggregator(
    holding_repo,
    transaction_repo,
    fund_repo,
    calculator,
    valuation_cache,
    locks,
    clock,
) -> PortfolioAggregator:
    """Provide test PortfolioAggregator."""
    return PortfolioAggregator(
        holding_repo=holding_repo,
        transaction_repo=transaction_repo,
        fund_repo=fund_repo,
        calculator=calculator,
        cache=valuation_cache,
        locks=locks,
        clock=clock,
        max_workers=4,
    )


@pytest.fixture
def fund_service(fund_repo, valuation_cache, fetcher) -> FundService:
    """Provide test FundService."""
    return FundService(fund_repo=fund_repo, cache=valuation_cache, fetcher=fetcher)


# =============================================================================
# FACTORY FIXTURES
# =============================================================================


@pytest.fixture
def holding_factory(ledger_service) -> Callable[..., Holding]:
    """Factory for creating test holdings."""

    def _create_holding(
        fund_code: str = "000001",
        user_id: str = "user-1",
        channel: Optional[str] = None,
        group: Optional[str] = None,
    ) -> Holding:
        return ledger_service.create_holding(
            user_id=user_id,
            fund_code=fund_code,
            channel=channel,
            group=group,
        )

    return _create_holding


@pytest.fixture
def txn_factory(ledger_service) -> Callable[..., Transaction]:
    """Factory for appending test transactions."""

    def _append(
        holding_id: str,
        txn_type: TransactionType,
        shares: str,
        price: str,
        trade_date: date = date(2024, 6, 3),
        fee: str = "0",
        reinvest: bool = False,
    ) -> Transaction:
        return ledger_service.append(
            TransactionCreate(
                holding_id=holding_id,
                txn_type=txn_type,
                trade_date=trade_date,
                shares=Decimal(shares),
                price=Decimal(price),
                fee=Decimal(fee),
                reinvest=reinvest,
            )
        )

    return _append


# =============================================================================
# API TEST CLIENT FIXTURE
# =============================================================================


@pytest.fixture
def api_fetcher() -> DeterministicFetcher:
    """Fetcher behind the API's shared cache; NAV published every day."""
    return DeterministicFetcher(
        flat_navs={
            "000001": Decimal("1.25"),
            "110022": Decimal("3.50"),
            "161725": Decimal("1.00"),
        },
    )


@pytest.fixture
def client(test_engine, api_fetcher) -> TestClient:
    """Provide FastAPI test client with test database and deterministic market data."""
    set_settings(Settings(database_url="sqlite://", market_data_provider="stub"))
    reset_database()
    cache = ValuationCache(fetcher=api_fetcher, fetch_timeout=2.0)
    set_valuation_cache(cache)

    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    reset_valuation_cache()
    reset_database()
    reset_settings()


# =============================================================================
# HELPER FUNCTIONS (exported for use in tests)
# =============================================================================


def make_transaction(
    txn_type: TransactionType,
    shares: str,
    price: str,
    trade_date: date = date(2024, 6, 3),
    fee: str = "0",
    reinvest: bool = False,
    txn_id: Optional[int] = None,
    holding_id: str = "h-1",
) -> Transaction:
    """Build an unsaved Transaction for pure replay tests."""
    return Transaction(
        holding_id=holding_id,
        txn_type=txn_type,
        trade_date=trade_date,
        shares=Decimal(shares),
        price=Decimal(price),
        fee=Decimal(fee),
        reinvest=reinvest,
        txn_id=txn_id,
    )


def assert_decimal_equal(
    actual: Decimal,
    expected: Decimal,
    tolerance: Decimal = Decimal("0.000001"),
) -> None:
    """Assert two Decimals are equal within tolerance."""
    diff = abs(actual - expected)
    assert diff <= tolerance, f"Expected {expected}, got {actual} (diff={diff})"
