"""Timezone utilities for China market time (Asia/Shanghai)."""

from datetime import date, datetime
from typing import Union

import pytz
from dateutil import parser as date_parser

CHINA_TZ = pytz.timezone("Asia/Shanghai")


def now_china() -> datetime:
    """Return current time in Asia/Shanghai timezone."""
    return datetime.now(CHINA_TZ)


def today_china() -> date:
    """Return today's calendar date in the China market."""
    return now_china().date()


def to_china(dt: datetime) -> datetime:
    """Convert a datetime to Asia/Shanghai timezone."""
    if dt.tzinfo is None:
        # Naive datetimes are taken to be market-local already
        return CHINA_TZ.localize(dt)
    return dt.astimezone(CHINA_TZ)


def parse_trade_date(value: Union[str, date, datetime]) -> date:
    """Coerce a string, date or datetime into a market-local calendar date."""
    if isinstance(value, datetime):
        return to_china(value).date()
    if isinstance(value, date):
        return value
    return date_parser.parse(value).date()
