"""Time-bounded cache over external fund data with single-flight refresh."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from threading import Lock
from typing import Any, Callable, Hashable, Mapping, Optional

from fundfolio.core.exceptions import DataUnavailableError, ValidationError
from fundfolio.core.timezone import now_china
from fundfolio.domain.models import (
    CacheState,
    FundSnapshot,
    NavPoint,
    SnapshotKind,
)
from fundfolio.providers.market_data_provider import MarketDataFetcher

logger = logging.getLogger(__name__)

DEFAULT_WINDOWS: dict[SnapshotKind, timedelta] = {
    SnapshotKind.ESTIMATE: timedelta(seconds=30),
    SnapshotKind.SEARCH: timedelta(minutes=5),
    SnapshotKind.NAV_HISTORY: timedelta(minutes=60),
}
DEFAULT_NAV_RANGE = timedelta(days=365)
NAV_LOOKBACK = timedelta(days=31)
_MAX_NAV_ROUNDS = 3
_ONE_DAY = timedelta(days=1)


class FreshnessPolicy:
    """Staleness windows per snapshot kind and the state derived from them."""

    def __init__(self, windows: Optional[Mapping[SnapshotKind, timedelta]] = None):
        self._windows = dict(DEFAULT_WINDOWS)
        if windows:
            self._windows.update(windows)

    @classmethod
    def from_seconds(
        cls,
        estimate: float,
        search: float,
        nav_history: float,
    ) -> "FreshnessPolicy":
        return cls({
            SnapshotKind.ESTIMATE: timedelta(seconds=estimate),
            SnapshotKind.SEARCH: timedelta(seconds=search),
            SnapshotKind.NAV_HISTORY: timedelta(seconds=nav_history),
        })

    def window(self, kind: SnapshotKind) -> timedelta:
        return self._windows[kind]

    def is_fresh(self, kind: SnapshotKind, fetched_at: datetime, now: datetime) -> bool:
        return now - fetched_at <= self._windows[kind]

    def state(
        self,
        kind: SnapshotKind,
        fetched_at: Optional[datetime],
        now: datetime,
        fetching: bool = False,
    ) -> CacheState:
        if fetching:
            return CacheState.FETCHING
        if fetched_at is None:
            return CacheState.MISSING
        if self.is_fresh(kind, fetched_at, now):
            return CacheState.FRESH
        return CacheState.STALE


@dataclass
class _NavHistory:
    """Immutable NAV points of one fund plus the contiguous date range already requested."""

    covered_from: date
    covered_to: date
    fetched_at: datetime
    points: dict[date, NavPoint] = field(default_factory=dict)

    @property
    def last_point_date(self) -> Optional[date]:
        return max(self.points) if self.points else None


@dataclass(frozen=True)
class _NavGap:
    start: date
    end: date
    is_tail: bool


class ValuationCache:
    """
    Cache of fund estimates, search results and NAV history.

    Each (fund_code, kind) key moves MISSING -> FETCHING -> FRESH -> STALE ->
    FETCHING -> FRESH. At most one fetch per key is in flight; concurrent
    callers wait on the same future. Callers wait at most `fetch_timeout`
    seconds; a fetch that outlives the wait still completes and populates
    the cache. On failure the previous snapshot is served with `stale=True`
    and a warning, or DataUnavailableError is raised when there is none.

    NAV history is cached per fund as immutable points over a covered date
    range; only the missing head and the tail after the last known point are
    ever requested.
    """

    def __init__(
        self,
        fetcher: MarketDataFetcher,
        policy: Optional[FreshnessPolicy] = None,
        fetch_timeout: float = 10.0,
        clock: Callable[[], datetime] = now_china,
        max_fetch_workers: int = 8,
    ):
        self._fetcher = fetcher
        self._policy = policy or FreshnessPolicy()
        self._fetch_timeout = fetch_timeout
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[tuple[str, SnapshotKind], FundSnapshot] = {}
        self._nav: dict[str, _NavHistory] = {}
        self._inflight: dict[Hashable, Future] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=max_fetch_workers,
            thread_name_prefix="valuation-fetch",
        )

    @property
    def policy(self) -> FreshnessPolicy:
        return self._policy

    @property
    def fetcher(self) -> MarketDataFetcher:
        return self._fetcher

    def get(
        self,
        fund_code: str,
        kind: SnapshotKind,
        start: Optional[date] = None,
        end: Optional[date] = None,
        allow_stale: bool = False,
    ) -> FundSnapshot:
        """
        Return the snapshot for (fund_code, kind), refreshing it if needed.

        With allow_stale, an expired ESTIMATE/SEARCH snapshot is returned
        immediately while the refresh runs in the background. `start`/`end`
        only apply to NAV_HISTORY.
        """
        if kind == SnapshotKind.NAV_HISTORY:
            return self._get_nav_history(fund_code, start, end)

        key = (fund_code, kind)
        now = self._clock()
        with self._lock:
            prior = self._entries.get(key)
        if prior is not None and self._policy.is_fresh(kind, prior.fetched_at, now):
            return prior

        loader = self._loader_for(fund_code, kind)

        def store(payload: Any, fetched_at: datetime) -> FundSnapshot:
            snapshot = FundSnapshot(
                fund_code=fund_code,
                kind=kind,
                payload=payload,
                fetched_at=fetched_at,
            )
            if kind == SnapshotKind.SEARCH:
                self._prune_searches(fetched_at)
            self._entries[key] = snapshot
            return snapshot

        def cached() -> Optional[FundSnapshot]:
            entry = self._entries.get(key)
            if entry is not None and self._policy.is_fresh(kind, entry.fetched_at, self._clock()):
                return entry
            return None

        if allow_stale and prior is not None:
            self._start_fetch(key, loader, store, cached)
            return replace(prior, stale=True, warning="Refresh in progress")

        try:
            return self._single_flight(key, loader, store, cached)
        except Exception as exc:
            with self._lock:
                fallback = self._entries.get(key)
            return self._degrade(fund_code, kind, fallback, exc)

    def state(self, fund_code: str, kind: SnapshotKind) -> CacheState:
        """Current lifecycle state of a cache key."""
        now = self._clock()
        with self._lock:
            fetching = (fund_code, kind) in self._inflight
            if kind == SnapshotKind.NAV_HISTORY:
                history = self._nav.get(fund_code)
                fetched_at = history.fetched_at if history else None
            else:
                entry = self._entries.get((fund_code, kind))
                fetched_at = entry.fetched_at if entry else None
        return self._policy.state(kind, fetched_at, now, fetching=fetching)

    def estimate(self, fund_code: str) -> FundSnapshot:
        return self.get(fund_code, SnapshotKind.ESTIMATE)

    def search(self, query: str) -> FundSnapshot:
        return self.get(query.strip(), SnapshotKind.SEARCH)

    def nav_history(self, fund_code: str, start: date, end: date) -> FundSnapshot:
        return self.get(fund_code, SnapshotKind.NAV_HISTORY, start=start, end=end)

    def nav_on(
        self,
        fund_code: str,
        day: date,
        exact: bool = True,
        lookback: timedelta = NAV_LOOKBACK,
    ) -> Optional[NavPoint]:
        """
        NAV published for `day`.

        With exact=False, the most recent NAV on or before `day` within
        `lookback`; DataUnavailableError when there is none. With exact=True,
        None when nothing was published that day.
        """
        start = day if exact else day - lookback
        snapshot = self.nav_history(fund_code, start, day)
        if snapshot.payload:
            return snapshot.payload[-1]
        if exact:
            return None
        raise DataUnavailableError(f"No NAV for fund {fund_code} between {start} and {day}")

    def invalidate(self, fund_code: Optional[str] = None) -> None:
        """Drop estimate/search entries (all, or one fund's). NAV history is kept."""
        with self._lock:
            if fund_code is None:
                self._entries.clear()
            else:
                for key in [k for k in self._entries if k[0] == fund_code]:
                    del self._entries[key]

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _prune_searches(self, now: datetime) -> None:
        # Search keys are free-form queries; expired ones are dropped, not kept for stale-serve
        expired = [
            key
            for key, entry in self._entries.items()
            if key[1] == SnapshotKind.SEARCH
            and not self._policy.is_fresh(SnapshotKind.SEARCH, entry.fetched_at, now)
        ]
        for key in expired:
            del self._entries[key]

    # Single-flight machinery

    def _start_fetch(
        self,
        key: Hashable,
        loader: Callable[[], Any],
        store: Callable[[Any, datetime], Any],
        cached: Callable[[], Optional[Any]],
    ) -> Future:
        with self._lock:
            future = self._inflight.get(key)
            if future is not None:
                return future
            hit = cached()
            if hit is not None:
                done: Future = Future()
                done.set_result(hit)
                return done
            future = self._executor.submit(self._run_fetch, key, loader, store)
            self._inflight[key] = future
            logger.debug("Fetching %s", key)
            return future

    def _single_flight(
        self,
        key: Hashable,
        loader: Callable[[], Any],
        store: Callable[[Any, datetime], Any],
        cached: Callable[[], Optional[Any]],
    ) -> Any:
        future = self._start_fetch(key, loader, store, cached)
        try:
            return future.result(timeout=self._fetch_timeout)
        except FuturesTimeoutError as exc:
            raise DataUnavailableError(
                f"Fetch of {key} timed out after {self._fetch_timeout}s"
            ) from exc

    def _run_fetch(
        self,
        key: Hashable,
        loader: Callable[[], Any],
        store: Callable[[Any, datetime], Any],
    ) -> Any:
        try:
            payload = loader()
            with self._lock:
                return store(payload, self._clock())
        finally:
            with self._lock:
                self._inflight.pop(key, None)

    def _loader_for(self, fund_code: str, kind: SnapshotKind) -> Callable[[], Any]:
        if kind == SnapshotKind.ESTIMATE:
            return lambda: self._fetcher.fetch_estimate(fund_code)
        if kind == SnapshotKind.SEARCH:
            return lambda: self._fetcher.search_funds(fund_code)
        raise ValueError(f"No direct loader for {kind}")

    def _degrade(
        self,
        fund_code: str,
        kind: SnapshotKind,
        fallback: Optional[FundSnapshot],
        exc: Exception,
    ) -> FundSnapshot:
        if fallback is None:
            logger.warning("No %s data for %s: %s", kind.value, fund_code, exc)
            if isinstance(exc, DataUnavailableError):
                raise exc
            raise DataUnavailableError(f"No {kind.value} data for {fund_code}: {exc}") from exc
        logger.warning("Serving stale %s for %s: %s", kind.value, fund_code, exc)
        return replace(fallback, stale=True, warning=f"Refresh failed: {exc}")

    # NAV history

    def _get_nav_history(
        self,
        fund_code: str,
        start: Optional[date],
        end: Optional[date],
    ) -> FundSnapshot:
        end = end or self._clock().date()
        start = start or end - DEFAULT_NAV_RANGE
        if start > end:
            raise ValidationError(f"start {start} is after end {end}")

        key = (fund_code, SnapshotKind.NAV_HISTORY)
        for _ in range(_MAX_NAV_ROUNDS):
            with self._lock:
                gaps = self._nav_gaps(fund_code, start, end, self._clock())
            if not gaps:
                break

            def load(gaps: list[_NavGap] = gaps) -> list[tuple[_NavGap, list[NavPoint]]]:
                return [
                    (gap, self._fetcher.fetch_nav_history(fund_code, gap.start, gap.end))
                    for gap in gaps
                ]

            def store(fetched: list[tuple[_NavGap, list[NavPoint]]], fetched_at: datetime) -> None:
                self._merge_nav(fund_code, fetched, fetched_at)

            def cached() -> Optional[bool]:
                return None if self._nav_gaps(fund_code, start, end, self._clock()) else True

            try:
                self._single_flight(key, load, store, cached)
            except Exception as exc:
                with self._lock:
                    history = self._nav.get(fund_code)
                    covered = bool(history and history.points)
                    snapshot = self._nav_snapshot(fund_code, history, start, end) if covered else None
                return self._degrade(fund_code, SnapshotKind.NAV_HISTORY, snapshot, exc)

        with self._lock:
            return self._nav_snapshot(fund_code, self._nav.get(fund_code), start, end)

    def _nav_gaps(self, fund_code: str, start: date, end: date, now: datetime) -> list[_NavGap]:
        history = self._nav.get(fund_code)
        if history is None:
            return [_NavGap(start, end, is_tail=True)]

        gaps = []
        if start < history.covered_from:
            gaps.append(_NavGap(start, history.covered_from - _ONE_DAY, is_tail=False))

        # Points up to the last known one never change; only the tail can grow
        last = history.last_point_date
        tail_start = max(last + _ONE_DAY, history.covered_from) if last else history.covered_from
        fresh = self._policy.is_fresh(SnapshotKind.NAV_HISTORY, history.fetched_at, now)
        if fresh:
            tail_start = max(tail_start, history.covered_to + _ONE_DAY)
        # The tail starts at the covered edge even when the request starts
        # later, so the covered range never has holes
        if tail_start <= end and (end > history.covered_to or not fresh):
            gaps.append(_NavGap(tail_start, end, is_tail=True))
        return gaps

    def _merge_nav(
        self,
        fund_code: str,
        fetched: list[tuple[_NavGap, list[NavPoint]]],
        fetched_at: datetime,
    ) -> None:
        history = self._nav.get(fund_code)
        for gap, points in fetched:
            if history is None:
                history = _NavHistory(
                    covered_from=gap.start,
                    covered_to=gap.end,
                    fetched_at=fetched_at,
                )
                self._nav[fund_code] = history
            else:
                history.covered_from = min(history.covered_from, gap.start)
                history.covered_to = max(history.covered_to, gap.end)
                if gap.is_tail:
                    history.fetched_at = fetched_at
            for point in points:
                history.points.setdefault(point.date, point)

    @staticmethod
    def _nav_snapshot(
        fund_code: str,
        history: Optional[_NavHistory],
        start: date,
        end: date,
    ) -> FundSnapshot:
        if history is None:
            raise DataUnavailableError(f"No NAV history for {fund_code}")
        payload = [history.points[d] for d in sorted(history.points) if start <= d <= end]
        return FundSnapshot(
            fund_code=fund_code,
            kind=SnapshotKind.NAV_HISTORY,
            payload=payload,
            fetched_at=history.fetched_at,
        )


def nav_by_date(points: list[NavPoint]) -> dict[date, Decimal]:
    """Index NAV points by trading date."""
    return {p.date: p.nav for p in points}
