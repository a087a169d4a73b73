"""API routers package."""

from fundfolio.api.routers.holdings import router as holdings_router
from fundfolio.api.routers.transactions import router as transactions_router
from fundfolio.api.routers.portfolio import router as portfolio_router
from fundfolio.api.routers.funds import router as funds_router

__all__ = [
    "holdings_router",
    "transactions_router",
    "portfolio_router",
    "funds_router",
]
