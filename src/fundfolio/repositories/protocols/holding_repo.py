"""Holding repository protocol."""

from datetime import datetime
from typing import Protocol, Optional

from fundfolio.domain.models import Holding


class HoldingRepository(Protocol):
    """Interface for holding data access."""

    def create(self, holding: Holding) -> Holding:
        """Persist a new holding."""
        ...

    def get_by_id(self, holding_id: str) -> Optional[Holding]:
        """Retrieve holding by ID."""
        ...

    def get_by_user_and_fund(self, user_id: str, fund_code: str) -> Optional[Holding]:
        """Retrieve a user's holding of a fund."""
        ...

    def list_by_user(self, user_id: str) -> list[Holding]:
        """List a user's holdings, ordered by holding_id."""
        ...

    def update(self, holding: Holding) -> Holding:
        """Update descriptive fields (channel, group) of a holding."""
        ...

    def bump_version(
        self,
        holding_id: str,
        expected_version: int,
        touched_at: datetime,
    ) -> Optional[Holding]:
        """
        Compare-and-set the version: increment it only if it still equals
        expected_version. Returns the updated holding, or None on mismatch.
        """
        ...

    def restore_version(self, holding: Holding, bumped_version: int) -> None:
        """Undo a bump to bumped_version, setting holding's version and updated_at back."""
        ...

    def delete(self, holding_id: str) -> None:
        """Delete a holding and all of its transactions."""
        ...
