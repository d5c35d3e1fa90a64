"""
Account model.

Every bucket of value in a ledger is an account: bank
accounts, credit cards, budget categories and the three
special accounts created with every ledger.

The account stores both its semantic type and the derived
internal_type. internal_type decides whether debits or
credits increase the balance and is always computed by the
classifier, never supplied by callers.
"""

from datetime import datetime

from sqlalchemy import (
    String, DateTime, ForeignKey, JSON,
    Enum as SAEnum, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_ledger.models.base import Base
from budget_ledger.models.enums import AccountType, InternalType


INCOME_ACCOUNT = "Income"
OFF_BUDGET_ACCOUNT = "Off-budget"
UNASSIGNED_ACCOUNT = "Unassigned"

# Created with every ledger, never deleted, never duplicated.
SPECIAL_ACCOUNT_NAMES = (INCOME_ACCOUNT, OFF_BUDGET_ACCOUNT, UNASSIGNED_ACCOUNT)


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint(
            "ledger_id", "owner", "name", name="accounts_ledger_owner_name_unique"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    ledger_id: Mapped[int] = mapped_column(
        ForeignKey("ledgers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    account_type: Mapped[AccountType] = mapped_column(
        "type",
        SAEnum(AccountType, name="account_type_enum", create_constraint=True),
        nullable=False,
    )
    internal_type: Mapped[InternalType] = mapped_column(
        SAEnum(InternalType, name="internal_type_enum", create_constraint=True),
        nullable=False,
    )
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    ledger: Mapped["Ledger"] = relationship(back_populates="accounts")

    @property
    def is_special(self) -> bool:
        return (
            self.account_type == AccountType.EQUITY
            and self.name in SPECIAL_ACCOUNT_NAMES
        )

    @property
    def is_category(self) -> bool:
        """Budget categories are the user-created equity accounts."""
        return self.account_type == AccountType.EQUITY and not self.is_special

    def __repr__(self) -> str:
        return (
            f"<Account {self.id} {self.name!r} "
            f"{self.account_type.value}/{self.internal_type.value}>"
        )
