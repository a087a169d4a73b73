"""Service layer - business logic orchestration."""

from fundfolio.services.valuation_cache import FreshnessPolicy, ValuationCache
from fundfolio.services.ledger_service import LedgerService, TransactionCreate, TransactionUpdate
from fundfolio.services.cost_basis import CostBasisCalculator, LedgerState, replay_ledger
from fundfolio.services.portfolio_aggregator import PortfolioAggregator
from fundfolio.services.fund_service import FundService

__all__ = [
    "FreshnessPolicy",
    "ValuationCache",
    "LedgerService",
    "TransactionCreate",
    "TransactionUpdate",
    "CostBasisCalculator",
    "LedgerState",
    "replay_ledger",
    "PortfolioAggregator",
    "FundService",
]
