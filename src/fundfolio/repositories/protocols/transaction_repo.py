"""Transaction repository protocol."""

from datetime import date
from typing import Protocol, Optional

from fundfolio.domain.models import Transaction


class TransactionRepository(Protocol):
    """Interface for transaction (ledger) data access."""

    def create(self, transaction: Transaction) -> Transaction:
        """Persist a new transaction, assigning its txn_id."""
        ...

    def get_by_id(self, txn_id: int) -> Optional[Transaction]:
        """Retrieve transaction by ID."""
        ...

    def update(self, transaction: Transaction) -> Transaction:
        """Update an existing transaction."""
        ...

    def delete(self, txn_id: int) -> None:
        """Hard delete a transaction."""
        ...

    def list_by_holding(
        self,
        holding_id: str,
        until: Optional[date] = None,
    ) -> list[Transaction]:
        """List a holding's transactions ordered by (trade_date, txn_id)."""
        ...
