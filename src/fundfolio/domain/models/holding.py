"""Holding domain model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Holding:
    """
    A user's position in one fund; owns its ledger transactions.

    `version` increments on every mutation of the holding or its
    transactions and guards optimistic-concurrency updates.
    """

    holding_id: str
    user_id: str
    fund_code: str
    channel: Optional[str] = None
    group: Optional[str] = None
    version: int = 1
    created_at: Optional[datetime] = field(default=None)
    updated_at: Optional[datetime] = field(default=None)
