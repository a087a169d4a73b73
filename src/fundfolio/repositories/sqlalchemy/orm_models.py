"""SQLAlchemy ORM model definitions."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    Boolean,
    Integer,
    Text,
    ForeignKey,
    Numeric,
    UniqueConstraint,
    Enum as SqlEnum,
)
from sqlalchemy.orm import relationship

from fundfolio.repositories.sqlalchemy.database import Base
from fundfolio.domain.models.enums import TransactionType, FundType, RiskLevel


class HoldingORM(Base):
    """SQLAlchemy model for Holding."""

    __tablename__ = "holdings"
    __table_args__ = (UniqueConstraint("user_id", "fund_code", name="uq_holding_user_fund"),)

    holding_id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    fund_code = Column(String(16), nullable=False)
    channel = Column(String(64), nullable=True)
    group = Column("group_name", String(64), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True)

    transactions = relationship(
        "TransactionORM",
        back_populates="holding",
        cascade="all, delete-orphan",
    )


class TransactionORM(Base):
    """SQLAlchemy model for Transaction (ledger entry)."""

    __tablename__ = "transactions"

    txn_id = Column(Integer, primary_key=True, autoincrement=True)
    holding_id = Column(
        String(36),
        ForeignKey("holdings.holding_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    txn_type = Column(SqlEnum(TransactionType), nullable=False)
    trade_date = Column(Date, nullable=False)
    shares = Column(Numeric(precision=18, scale=4), nullable=False)
    price = Column(Numeric(precision=18, scale=4), nullable=False)
    fee = Column(Numeric(precision=18, scale=2), default=Decimal("0"))
    reinvest = Column(Boolean, default=False, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True)

    holding = relationship("HoldingORM", back_populates="transactions")


class FundORM(Base):
    """SQLAlchemy model for Fund metadata."""

    __tablename__ = "funds"

    code = Column(String(16), primary_key=True)
    name = Column(String(255), nullable=False)
    fund_type = Column(SqlEnum(FundType), nullable=True)
    risk_level = Column(SqlEnum(RiskLevel), nullable=True)
    updated_at = Column(DateTime, nullable=True, default=datetime.utcnow, onupdate=datetime.utcnow)
