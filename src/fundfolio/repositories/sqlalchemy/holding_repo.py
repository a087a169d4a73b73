"""SQLAlchemy implementation of HoldingRepository."""

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from fundfolio.domain.models import Holding
from fundfolio.repositories.sqlalchemy.orm_models import HoldingORM


class SqlAlchemyHoldingRepository:
    """SQLAlchemy-backed holding repository."""

    def __init__(self, db: Session):
        self._db = db

    def create(self, holding: Holding) -> Holding:
        """Persist a new holding."""
        orm_holding = HoldingORM(
            holding_id=holding.holding_id,
            user_id=holding.user_id,
            fund_code=holding.fund_code,
            channel=holding.channel,
            group=holding.group,
            version=holding.version,
            created_at=holding.created_at,
            updated_at=holding.updated_at,
        )
        self._db.add(orm_holding)
        self._db.commit()
        self._db.refresh(orm_holding)
        return self._to_domain(orm_holding)

    def get_by_id(self, holding_id: str) -> Optional[Holding]:
        """Retrieve holding by ID."""
        orm_holding = self._db.query(HoldingORM).filter(
            HoldingORM.holding_id == holding_id
        ).first()
        return self._to_domain(orm_holding) if orm_holding else None

    def get_by_user_and_fund(self, user_id: str, fund_code: str) -> Optional[Holding]:
        """Retrieve a user's holding of a fund."""
        orm_holding = self._db.query(HoldingORM).filter(
            HoldingORM.user_id == user_id,
            HoldingORM.fund_code == fund_code,
        ).first()
        return self._to_domain(orm_holding) if orm_holding else None

    def list_by_user(self, user_id: str) -> list[Holding]:
        """List a user's holdings, ordered by holding_id."""
        orm_holdings = (
            self._db.query(HoldingORM)
            .filter(HoldingORM.user_id == user_id)
            .order_by(HoldingORM.holding_id)
            .all()
        )
        return [self._to_domain(h) for h in orm_holdings]

    def update(self, holding: Holding) -> Holding:
        """Update descriptive fields of a holding."""
        orm_holding = self._db.query(HoldingORM).filter(
            HoldingORM.holding_id == holding.holding_id
        ).first()
        if not orm_holding:
            raise ValueError(f"Holding not found: {holding.holding_id}")

        orm_holding.channel = holding.channel
        orm_holding.group = holding.group
        self._db.commit()
        self._db.refresh(orm_holding)
        return self._to_domain(orm_holding)

    def bump_version(
        self,
        holding_id: str,
        expected_version: int,
        touched_at: datetime,
    ) -> Optional[Holding]:
        """Increment version only if it still equals expected_version."""
        result = self._db.execute(
            update(HoldingORM)
            .where(
                HoldingORM.holding_id == holding_id,
                HoldingORM.version == expected_version,
            )
            .values(version=HoldingORM.version + 1, updated_at=touched_at)
            .execution_options(synchronize_session=False)
        )
        self._db.commit()
        if result.rowcount == 0:
            return None
        self._db.expire_all()
        return self.get_by_id(holding_id)

    def restore_version(self, holding: Holding, bumped_version: int) -> None:
        """Put back version and updated_at, unless another writer moved past bumped_version."""
        # The failed write may have left the session mid-transaction
        self._db.rollback()
        self._db.execute(
            update(HoldingORM)
            .where(
                HoldingORM.holding_id == holding.holding_id,
                HoldingORM.version == bumped_version,
            )
            .values(version=holding.version, updated_at=holding.updated_at)
            .execution_options(synchronize_session=False)
        )
        self._db.commit()
        self._db.expire_all()

    def delete(self, holding_id: str) -> None:
        """Delete a holding; transactions go with it via ORM cascade."""
        orm_holding = self._db.query(HoldingORM).filter(
            HoldingORM.holding_id == holding_id
        ).first()
        if orm_holding:
            self._db.delete(orm_holding)
            self._db.commit()

    @staticmethod
    def _to_domain(orm: HoldingORM) -> Holding:
        """Convert ORM model to domain model."""
        return Holding(
            holding_id=orm.holding_id,
            user_id=orm.user_id,
            fund_code=orm.fund_code,
            channel=orm.channel,
            group=orm.group,
            version=orm.version,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )
