"""Valuation cache entry model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from fundfolio.domain.models.enums import SnapshotKind


@dataclass(frozen=True)
class FundSnapshot:
    """
    Cached external fund data.

    Payload shape depends on kind: FundQuote (ESTIMATE), list of
    FundSearchResult (SEARCH), ascending list of NavPoint (NAV_HISTORY).
    `stale` is set when a refresh failed and older data is served instead;
    `warning` then carries the failure.
    """

    fund_code: str
    kind: SnapshotKind
    payload: Any
    fetched_at: datetime
    stale: bool = False
    warning: Optional[str] = None
