"""
Transaction log model.

Audit trail of every correction and deletion. Like the
snapshots, log rows are append-only: never updated or
deleted except when the whole ledger is deleted.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from budget_ledger.models.base import Base
from budget_ledger.models.enums import MutationType


class TransactionLog(Base):
    __tablename__ = "transaction_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    original_transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reversal_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"), nullable=True
    )
    correction_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"), nullable=True
    )
    owner: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    mutation_type: Mapped[MutationType] = mapped_column(
        SAEnum(MutationType, name="mutation_type_enum", create_constraint=True),
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<TransactionLog {self.mutation_type.value} "
            f"original={self.original_transaction_id}>"
        )
