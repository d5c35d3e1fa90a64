"""
Account classifier.

Maps an account's semantic type to its behavioral polarity:
asset and expense accounts grow with debits (asset_like);
liability, equity and revenue accounts grow with credits
(liability_like).
"""

from budget_ledger.exceptions import InvalidInputError
from budget_ledger.models.enums import AccountType, InternalType


INTERNAL_TYPE_BY_ACCOUNT_TYPE = {
    AccountType.ASSET: InternalType.ASSET_LIKE,
    AccountType.EXPENSE: InternalType.ASSET_LIKE,
    AccountType.LIABILITY: InternalType.LIABILITY_LIKE,
    AccountType.EQUITY: InternalType.LIABILITY_LIKE,
    AccountType.REVENUE: InternalType.LIABILITY_LIKE,
}


def parse_account_type(value: AccountType | str) -> AccountType:
    """Coerce a type name ("asset", "ASSET", AccountType.ASSET) to the enum."""
    if isinstance(value, AccountType):
        return value
    try:
        return AccountType(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in AccountType)
        raise InvalidInputError(
            f"Invalid account type: {value!r}. Must be one of: {allowed}",
            details={"field": "account_type", "value": str(value)},
        )


def classify(account_type: AccountType | str) -> InternalType:
    """Return the internal_type for an account type."""
    return INTERNAL_TYPE_BY_ACCOUNT_TYPE[parse_account_type(account_type)]
