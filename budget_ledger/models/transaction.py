"""
Transaction model.

A transaction moves an amount from its credit account to its
debit account. Amounts are integers in minor currency units.

Transactions are immutable. "Editing" or "deleting" one
appends a reversal that points back at it through
reversal_of_id, and stamps the original's deleted_at. No
other column is ever updated after insert.
"""

import datetime as dt

from sqlalchemy import (
    String, Date, DateTime, BigInteger, ForeignKey, JSON,
    CheckConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_ledger.models.base import Base
from budget_ledger.models.enums import TransactionStatus


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="transactions_amount_positive"),
        CheckConstraint(
            "debit_account_id <> credit_account_id",
            name="transactions_different_accounts",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    ledger_id: Mapped[int] = mapped_column(
        ForeignKey("ledgers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(
        String(500), nullable=False, default=""
    )
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            name="transaction_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=TransactionStatus.POSTED,
    )
    debit_account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    credit_account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    reversal_of_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True
    )
    deleted_at: Mapped[dt.datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime, nullable=False, default=dt.datetime.utcnow
    )

    # Relationships
    debit_account: Mapped["Account"] = relationship(
        foreign_keys=[debit_account_id]
    )
    credit_account: Mapped["Account"] = relationship(
        foreign_keys=[credit_account_id]
    )
    reversal_of: Mapped["Transaction"] = relationship(
        remote_side=[id]
    )

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.id} {self.amount} "
            f"D:{self.debit_account_id} C:{self.credit_account_id} "
            f"({self.status.value})>"
        )
