"""SQLAlchemy implementation of FundRepository."""

from typing import Optional

from sqlalchemy.orm import Session

from fundfolio.domain.models import Fund
from fundfolio.repositories.sqlalchemy.orm_models import FundORM


class SqlAlchemyFundRepository:
    """SQLAlchemy-backed fund metadata repository."""

    def __init__(self, db: Session):
        self._db = db

    def get_by_code(self, code: str) -> Optional[Fund]:
        """Retrieve fund metadata by code."""
        orm_fund = self._db.query(FundORM).filter(FundORM.code == code).first()
        return self._to_domain(orm_fund) if orm_fund else None

    def list_by_codes(self, codes: list[str]) -> dict[str, Fund]:
        """Retrieve metadata for several funds, keyed by code."""
        if not codes:
            return {}
        orm_funds = self._db.query(FundORM).filter(FundORM.code.in_(codes)).all()
        return {f.code: self._to_domain(f) for f in orm_funds}

    def upsert(self, fund: Fund) -> Fund:
        """Insert or update fund metadata."""
        orm_fund = self._db.query(FundORM).filter(FundORM.code == fund.code).first()

        if orm_fund:
            orm_fund.name = fund.name
            orm_fund.fund_type = fund.fund_type
            orm_fund.risk_level = fund.risk_level
        else:
            orm_fund = FundORM(
                code=fund.code,
                name=fund.name,
                fund_type=fund.fund_type,
                risk_level=fund.risk_level,
            )
            self._db.add(orm_fund)

        self._db.commit()
        self._db.refresh(orm_fund)
        return self._to_domain(orm_fund)

    @staticmethod
    def _to_domain(orm: FundORM) -> Fund:
        """Convert ORM model to domain model."""
        return Fund(
            code=orm.code,
            name=orm.name,
            fund_type=orm.fund_type,
            risk_level=orm.risk_level,
        )
