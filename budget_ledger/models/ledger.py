"""
Ledger model.

A ledger is the top-level container of accounts for one
financial domain ("Personal", "Business"). Ledger names are
unique per owner.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_ledger.models.base import Base


class Ledger(Base):
    __tablename__ = "ledgers"
    __table_args__ = (
        UniqueConstraint("owner", "name", name="ledgers_owner_name_unique"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    owner: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    accounts: Mapped[list["Account"]] = relationship(
        back_populates="ledger", order_by="Account.id"
    )

    def __repr__(self) -> str:
        return f"<Ledger {self.id} {self.name!r} owner={self.owner}>"
