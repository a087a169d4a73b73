"""Pydantic schemas for fund endpoints."""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from fundfolio.domain.models.enums import FundType, RiskLevel


class FundResponse(BaseModel):
    """Fund metadata."""

    model_config = {"from_attributes": True}

    code: str
    name: str
    fund_type: Optional[FundType] = None
    risk_level: Optional[RiskLevel] = None


class FundQuoteResponse(BaseModel):
    """Real-time valuation estimate."""

    model_config = {"from_attributes": True}

    code: str
    nav: Decimal
    change: Decimal
    change_percent: Decimal
    date: date


class FundSearchResultResponse(BaseModel):
    """Single search hit."""

    model_config = {"from_attributes": True}

    code: str
    name: str
    fund_type: Optional[str] = None


class NavPointResponse(BaseModel):
    """Published NAV of one trading day."""

    model_config = {"from_attributes": True}

    date: date
    nav: Decimal
