"""Pydantic schemas for transaction endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from fundfolio.domain.models.enums import TransactionType


class TransactionCreateRequest(BaseModel):
    """Request schema for appending a transaction."""

    txn_type: TransactionType = Field(..., description="BUY, SELL or DIVIDEND")
    trade_date: date = Field(..., description="Trade date (China market calendar)")
    shares: Decimal = Field(..., gt=0, description="Shares traded, or entitled for a dividend")
    price: Decimal = Field(..., ge=0, description="Price per share, or dividend per share")
    fee: Decimal = Field(default=Decimal("0"), ge=0, description="Transaction fee")
    reinvest: bool = Field(default=False, description="Dividend paid as new shares")
    note: Optional[str] = Field(default=None, max_length=500)
    expected_version: Optional[int] = Field(default=None, ge=1)


class TransactionUpdateRequest(BaseModel):
    """Request schema for updating a transaction (partial update)."""

    txn_type: Optional[TransactionType] = None
    trade_date: Optional[date] = None
    shares: Optional[Decimal] = Field(default=None, gt=0)
    price: Optional[Decimal] = Field(default=None, ge=0)
    fee: Optional[Decimal] = Field(default=None, ge=0)
    reinvest: Optional[bool] = None
    note: Optional[str] = Field(default=None, max_length=500)
    expected_version: Optional[int] = Field(default=None, ge=1)


class TransactionResponse(BaseModel):
    """Response schema for a single transaction."""

    model_config = {"from_attributes": True}

    txn_id: int
    holding_id: str
    txn_type: TransactionType
    trade_date: date
    shares: Decimal
    price: Decimal
    fee: Decimal
    reinvest: bool
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
