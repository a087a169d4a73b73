"""Fund metadata repository protocol."""

from typing import Protocol, Optional

from fundfolio.domain.models import Fund


class FundRepository(Protocol):
    """Interface for fund metadata access."""

    def get_by_code(self, code: str) -> Optional[Fund]:
        """Retrieve fund metadata by code."""
        ...

    def list_by_codes(self, codes: list[str]) -> dict[str, Fund]:
        """Retrieve metadata for several funds, keyed by code."""
        ...

    def upsert(self, fund: Fund) -> Fund:
        """Insert or update fund metadata."""
        ...
