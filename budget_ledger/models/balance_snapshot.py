"""
Balance snapshot model.

One row per (account, transaction) pair, written when the
transaction is posted. The newest snapshot of an account is
its current balance. Snapshots are append-only: the chain is
only ever replaced wholesale by a rebuild.
"""

from datetime import datetime

from sqlalchemy import (
    String, DateTime, BigInteger, ForeignKey,
    CheckConstraint, Enum as SAEnum, Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from budget_ledger.models.base import Base
from budget_ledger.models.enums import OperationType


class BalanceSnapshot(Base):
    __tablename__ = "balance_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "transaction_id",
            name="balance_snapshots_account_transaction_unique",
        ),
        CheckConstraint(
            "balance = previous_balance + delta",
            name="balance_snapshots_balance_check",
        ),
        Index(
            "idx_balance_snapshots_account_transaction",
            "account_id", "transaction_id",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    previous_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    delta: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    operation_type: Mapped[OperationType] = mapped_column(
        SAEnum(OperationType, name="operation_type_enum", create_constraint=True),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<BalanceSnapshot account={self.account_id} "
            f"txn={self.transaction_id} {self.previous_balance}"
            f"{self.delta:+d}={self.balance}>"
        )
