"""Domain models and rules of the investment ledger.

Pydantic models for users, accounts, assets and transactions, plus the
validation and access rules applied to them. They are independent from the
persistence models so business rules can be tested without a database.
"""

__all__ = [
    "access",
    "account",
    "asset",
    "asset_id",
    "base_types",
    "errors",
    "pricing",
    "transaction",
    "user",
    "validation",
]
