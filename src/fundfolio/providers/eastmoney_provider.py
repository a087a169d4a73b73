"""Eastmoney (天天基金) market data fetcher."""

import json
import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import requests
from requests.exceptions import RequestException

from fundfolio.core.exceptions import DataUnavailableError
from fundfolio.core.timezone import parse_trade_date
from fundfolio.domain.models import (
    Fund,
    FundQuote,
    FundSearchResult,
    FundType,
    NavPoint,
    RiskLevel,
)

logger = logging.getLogger(__name__)

ESTIMATE_URL = "https://fundgz.1234567.com.cn/js/{code}.js"
SEARCH_URL = "https://fundsuggest.eastmoney.com/FundSearch/api/FundSearchAPI.ashx"
NAV_HISTORY_URL = "https://api.fund.eastmoney.com/f10/lsjz"
DETAIL_URL = "https://fundmobapi.eastmoney.com/FundMApi/FundBaseTypeInformation.ashx"

NAV_PAGE_SIZE = 100
_JSONP_RE = re.compile(r"^\s*\w+\((.*)\)\s*;?\s*$", re.DOTALL)

_FUND_TYPE_PREFIXES = [
    ("股票", FundType.STOCK),
    ("债券", FundType.BOND),
    ("混合", FundType.MIX),
    ("指数", FundType.INDEX),
    ("QDII", FundType.QDII),
    ("FOF", FundType.FOF),
    ("货币", FundType.MONEY),
]

_RISK_LEVELS = {
    "1": RiskLevel.LOW,
    "2": RiskLevel.LOW_MEDIUM,
    "3": RiskLevel.MEDIUM,
    "4": RiskLevel.MEDIUM_HIGH,
    "5": RiskLevel.HIGH,
    "低风险": RiskLevel.LOW,
    "中低风险": RiskLevel.LOW_MEDIUM,
    "中风险": RiskLevel.MEDIUM,
    "中等风险": RiskLevel.MEDIUM,
    "中高风险": RiskLevel.MEDIUM_HIGH,
    "高风险": RiskLevel.HIGH,
}


def map_fund_type(raw: Optional[str]) -> Optional[FundType]:
    """Map an Eastmoney type label such as '混合型-偏股' to a FundType."""
    if not raw:
        return None
    for prefix, fund_type in _FUND_TYPE_PREFIXES:
        if raw.startswith(prefix):
            return fund_type
    return None


def map_risk_level(raw: Optional[str]) -> Optional[RiskLevel]:
    if raw is None:
        return None
    return _RISK_LEVELS.get(str(raw).strip())


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        raise ValueError("empty numeric field")
    return Decimal(str(value))


class EastmoneyFetcher:
    """
    Fetches fund estimates, search results, NAV history and metadata over HTTP.

    Every request carries `timeout`; transport and parsing failures surface as
    DataUnavailableError so the valuation cache can fall back to stale data.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", "Mozilla/5.0 (fundfolio)")

    def fetch_estimate(self, code: str) -> FundQuote:
        text = self._get_text(ESTIMATE_URL.format(code=code), params=None, what=f"estimate {code}")
        match = _JSONP_RE.match(text)
        if not match or not match.group(1).strip():
            raise DataUnavailableError(f"No estimate published for fund {code}")
        try:
            data = json.loads(match.group(1))
            last_nav = _decimal(data["dwjz"])
            nav = _decimal(data["gsz"])
            return FundQuote(
                code=data.get("fundcode") or code,
                nav=nav,
                change=nav - last_nav,
                change_percent=_decimal(data["gszzl"]),
                date=parse_trade_date(data["gztime"]),
            )
        except (ValueError, KeyError, TypeError, InvalidOperation) as exc:
            raise DataUnavailableError(f"Malformed estimate for fund {code}: {exc}") from exc

    def search_funds(self, query: str) -> list[FundSearchResult]:
        data = self._get_json(SEARCH_URL, params={"m": 1, "key": query}, what=f"search '{query}'")
        results = []
        for item in data.get("Datas") or []:
            base_info = item.get("FundBaseInfo") or {}
            code = item.get("CODE")
            if not code:
                continue
            results.append(
                FundSearchResult(
                    code=code,
                    name=item.get("NAME") or code,
                    fund_type=base_info.get("FTYPE"),
                )
            )
        return results

    def fetch_nav_history(self, code: str, start: date, end: date) -> list[NavPoint]:
        points: dict[date, NavPoint] = {}
        page = 1
        while True:
            data = self._get_json(
                NAV_HISTORY_URL,
                params={
                    "fundCode": code,
                    "pageIndex": page,
                    "pageSize": NAV_PAGE_SIZE,
                    "startDate": start.isoformat(),
                    "endDate": end.isoformat(),
                },
                what=f"NAV history {code}",
                headers={"Referer": "https://fundf10.eastmoney.com/"},
            )
            try:
                rows = (data.get("Data") or {}).get("LSJZList") or []
                total = int(data.get("TotalCount") or 0)
                for row in rows:
                    if not row.get("DWJZ"):
                        continue  # suspended or not yet published
                    day = parse_trade_date(row["FSRQ"])
                    points[day] = NavPoint(date=day, nav=_decimal(row["DWJZ"]))
            except (ValueError, KeyError, TypeError, InvalidOperation) as exc:
                raise DataUnavailableError(f"Malformed NAV history for fund {code}: {exc}") from exc

            if not rows or page * NAV_PAGE_SIZE >= total:
                break
            page += 1

        logger.debug("Fetched %d NAV points for %s (%s..%s)", len(points), code, start, end)
        return [points[d] for d in sorted(points)]

    def fetch_fund_detail(self, code: str) -> Fund:
        data = self._get_json(
            DETAIL_URL,
            params={"FCODE": code, "deviceid": "Wap", "plat": "Wap", "product": "EFund", "version": "2.0.0"},
            what=f"detail {code}",
        )
        info = data.get("Datas")
        if not info:
            raise DataUnavailableError(f"Fund not found upstream: {code}")
        return Fund(
            code=info.get("FCODE") or code,
            name=info.get("SHORTNAME") or code,
            fund_type=map_fund_type(info.get("FTYPE")),
            risk_level=map_risk_level(info.get("RISKLEVEL")),
        )

    def _get_text(
        self,
        url: str,
        params: Optional[dict],
        what: str,
        headers: Optional[dict] = None,
    ) -> str:
        try:
            response = self._session.get(url, params=params, headers=headers, timeout=self._timeout)
            response.raise_for_status()
        except RequestException as exc:
            logger.warning("Eastmoney request for %s failed: %s", what, exc)
            raise DataUnavailableError(f"Failed to fetch {what}: {exc}") from exc
        return response.text

    def _get_json(
        self,
        url: str,
        params: Optional[dict],
        what: str,
        headers: Optional[dict] = None,
    ) -> dict:
        text = self._get_text(url, params=params, what=what, headers=headers)
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise DataUnavailableError(f"Malformed response for {what}") from exc
        if not isinstance(data, dict):
            raise DataUnavailableError(f"Unexpected response for {what}")
        return data
