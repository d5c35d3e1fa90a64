"""
Shared route dependencies.
"""

from fastapi import Header

from budget_ledger.exceptions import InvalidInputError


def get_owner(x_owner_id: str = Header(alias="X-Owner-Id")) -> str:
    """
    The acting owner, taken from the X-Owner-Id header.

    Authentication happens upstream; the engine only scopes
    every read and write to this value.
    """
    owner = x_owner_id.strip()
    if not owner:
        raise InvalidInputError(
            "X-Owner-Id header must not be empty", details={"field": "owner"}
        )
    return owner
