"""Transaction domain model."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from fundfolio.domain.models.enums import TransactionType

ZERO = Decimal("0")


@dataclass
class Transaction:
    """
    Ledger transaction entry (source of truth).

    - BUY: `shares` bought at `price`, `fee` paid on top
    - SELL: `shares` sold at `price`, `fee` deducted from proceeds
    - DIVIDEND: `shares` entitled times `price` (dividend per share) paid in
      cash, unless `reinvest` is set, in which case `shares` are new shares
      issued at the ex-dividend NAV `price`

    `txn_id` is assigned by the store on insert and grows monotonically;
    it breaks ties between transactions on the same trade date.
    """

    holding_id: str
    txn_type: TransactionType
    trade_date: date
    shares: Decimal
    price: Decimal
    fee: Decimal = field(default_factory=lambda: Decimal("0"))
    reinvest: bool = False
    note: Optional[str] = None
    txn_id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None)
    updated_at: Optional[datetime] = field(default=None)

    def __post_init__(self) -> None:
        if isinstance(self.txn_type, str):
            self.txn_type = TransactionType(self.txn_type)

    @property
    def gross_amount(self) -> Decimal:
        return self.shares * self.price

    @property
    def is_cash_dividend(self) -> bool:
        return self.txn_type == TransactionType.DIVIDEND and not self.reinvest

    @property
    def share_delta(self) -> Decimal:
        """Change in shares held caused by this transaction."""
        if self.txn_type == TransactionType.BUY:
            return self.shares
        if self.txn_type == TransactionType.SELL:
            return -self.shares
        if self.reinvest:
            return self.shares
        return ZERO

    @property
    def net_cash_flow(self) -> Decimal:
        """
        Cash moved into (+) or out of (-) the position.

        Purchases are contributions, sale proceeds and cash dividends are
        withdrawals, reinvested dividends never leave the position.
        """
        if self.txn_type == TransactionType.BUY:
            return self.gross_amount + self.fee
        if self.txn_type == TransactionType.SELL:
            return -(self.gross_amount - self.fee)
        if self.reinvest:
            return ZERO
        return -(self.gross_amount - self.fee)

    def sort_key(self) -> tuple[date, float]:
        # Unsaved transactions sort after every stored one on the same day
        return (self.trade_date, self.txn_id if self.txn_id is not None else float("inf"))
