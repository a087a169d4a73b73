"""SQLAlchemy implementation of TransactionRepository."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from fundfolio.domain.models import Transaction
from fundfolio.repositories.sqlalchemy.orm_models import TransactionORM


class SqlAlchemyTransactionRepository:
    """SQLAlchemy-backed transaction repository."""

    def __init__(self, db: Session):
        self._db = db

    def create(self, transaction: Transaction) -> Transaction:
        """Persist a new transaction; the database assigns txn_id."""
        orm_txn = TransactionORM(
            holding_id=transaction.holding_id,
            txn_type=transaction.txn_type,
            trade_date=transaction.trade_date,
            shares=transaction.shares,
            price=transaction.price,
            fee=transaction.fee,
            reinvest=transaction.reinvest,
            note=transaction.note,
            created_at=transaction.created_at or datetime.utcnow(),
        )
        self._db.add(orm_txn)
        self._db.commit()
        self._db.refresh(orm_txn)
        return self._to_domain(orm_txn)

    def get_by_id(self, txn_id: int) -> Optional[Transaction]:
        """Retrieve transaction by ID."""
        orm_txn = self._db.query(TransactionORM).filter(
            TransactionORM.txn_id == txn_id
        ).first()
        return self._to_domain(orm_txn) if orm_txn else None

    def update(self, transaction: Transaction) -> Transaction:
        """Update an existing transaction."""
        orm_txn = self._db.query(TransactionORM).filter(
            TransactionORM.txn_id == transaction.txn_id
        ).first()
        if not orm_txn:
            raise ValueError(f"Transaction not found: {transaction.txn_id}")

        orm_txn.txn_type = transaction.txn_type
        orm_txn.trade_date = transaction.trade_date
        orm_txn.shares = transaction.shares
        orm_txn.price = transaction.price
        orm_txn.fee = transaction.fee
        orm_txn.reinvest = transaction.reinvest
        orm_txn.note = transaction.note
        orm_txn.updated_at = transaction.updated_at or datetime.utcnow()

        self._db.commit()
        self._db.refresh(orm_txn)
        return self._to_domain(orm_txn)

    def delete(self, txn_id: int) -> None:
        """Hard delete a transaction."""
        self._db.query(TransactionORM).filter(
            TransactionORM.txn_id == txn_id
        ).delete()
        self._db.commit()

    def list_by_holding(
        self,
        holding_id: str,
        until: Optional[date] = None,
    ) -> list[Transaction]:
        """List a holding's transactions ordered by (trade_date, txn_id)."""
        query = self._db.query(TransactionORM).filter(
            TransactionORM.holding_id == holding_id
        )
        if until is not None:
            query = query.filter(TransactionORM.trade_date <= until)
        query = query.order_by(TransactionORM.trade_date, TransactionORM.txn_id)
        return [self._to_domain(t) for t in query.all()]

    @staticmethod
    def _to_domain(orm: TransactionORM) -> Transaction:
        """Convert ORM model to domain model."""
        return Transaction(
            txn_id=orm.txn_id,
            holding_id=orm.holding_id,
            txn_type=orm.txn_type,
            trade_date=orm.trade_date,
            shares=Decimal(str(orm.shares)),
            price=Decimal(str(orm.price)),
            fee=Decimal(str(orm.fee)) if orm.fee else Decimal("0"),
            reinvest=bool(orm.reinvest),
            note=orm.note,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )
