"""Core utilities and shared functionality."""

from fundfolio.core.timezone import (
    now_china,
    today_china,
    to_china,
    parse_trade_date,
    CHINA_TZ,
)
from fundfolio.core.exceptions import (
    AppError,
    ValidationError,
    NotFoundError,
    DataUnavailableError,
    ConcurrencyConflict,
    OperationCancelled,
)
from fundfolio.core.locks import HoldingLockRegistry, get_holding_locks

__all__ = [
    "now_china",
    "today_china",
    "to_china",
    "parse_trade_date",
    "CHINA_TZ",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "DataUnavailableError",
    "ConcurrencyConflict",
    "OperationCancelled",
    "HoldingLockRegistry",
    "get_holding_locks",
]
