"""SQLAlchemy repository implementations."""

from fundfolio.repositories.sqlalchemy.database import (
    get_engine,
    get_session_factory,
    get_db,
    init_db,
    reset_database,
    Base,
)
from fundfolio.repositories.sqlalchemy.holding_repo import SqlAlchemyHoldingRepository
from fundfolio.repositories.sqlalchemy.transaction_repo import SqlAlchemyTransactionRepository
from fundfolio.repositories.sqlalchemy.fund_repo import SqlAlchemyFundRepository

__all__ = [
    "get_engine",
    "get_session_factory",
    "get_db",
    "init_db",
    "reset_database",
    "Base",
    "SqlAlchemyHoldingRepository",
    "SqlAlchemyTransactionRepository",
    "SqlAlchemyFundRepository",
]
