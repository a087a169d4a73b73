"""Pydantic schemas for holding endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class HoldingCreateRequest(BaseModel):
    """Request schema for opening a holding."""

    fund_code: str = Field(..., min_length=1, max_length=12, description="Fund code, e.g. 000001")
    channel: Optional[str] = Field(default=None, max_length=50, description="Purchase platform")
    group: Optional[str] = Field(default=None, max_length=50, description="User-defined bucket")

    @field_validator("fund_code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()


class HoldingUpdateRequest(BaseModel):
    """Request schema for changing a holding's channel/group."""

    channel: Optional[str] = Field(default=None, max_length=50)
    group: Optional[str] = Field(default=None, max_length=50)
    expected_version: Optional[int] = Field(default=None, ge=1)


class HoldingResponse(BaseModel):
    """Response schema for a single holding."""

    model_config = {"from_attributes": True}

    holding_id: str
    user_id: str
    fund_code: str
    channel: Optional[str] = None
    group: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
