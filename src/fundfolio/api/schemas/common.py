"""Response envelope shared by every endpoint."""

from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

from fundfolio.core.timezone import now_china
from fundfolio.domain.models import FundSnapshot

T = TypeVar("T")


class Meta(BaseModel):
    """Response metadata."""

    timestamp: datetime
    stale: Optional[bool] = None
    warning: Optional[str] = None
    fetched_at: Optional[datetime] = None


class ErrorBody(BaseModel):
    """Error details of a failed request."""

    code: str
    message: str


class Envelope(BaseModel, Generic[T]):
    """`{success, data | error, meta}` wrapper."""

    success: bool = True
    data: Optional[T] = None
    error: Optional[ErrorBody] = None
    meta: Meta


def ok(data: Any, snapshot: Optional[FundSnapshot] = None) -> dict:
    """Successful envelope; market data responses carry their freshness in meta."""
    meta = Meta(timestamp=now_china())
    if snapshot is not None:
        meta.stale = snapshot.stale
        meta.warning = snapshot.warning
        meta.fetched_at = snapshot.fetched_at
    return {"success": True, "data": data, "meta": meta}


def error_body(code: str, message: str) -> dict:
    """JSON-ready envelope of a failed request."""
    return Envelope[Any](
        success=False,
        error=ErrorBody(code=code, message=message),
        meta=Meta(timestamp=now_china()),
    ).model_dump(mode="json")
