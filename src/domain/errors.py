from __future__ import annotations


class LedgerError(Exception):
    """Base class for every error raised by the ledger core.

    `user_facing` errors are reported back verbatim as a rejection reason.
    The rest are surfaced as an opaque failure.
    """

    user_facing: bool = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ParseError(LedgerError, ValueError):
    """Malformed AssetId or action document."""


class ReferentialError(LedgerError):
    """Operation references a User/Account/Asset that does not exist."""


class ForeignKeyViolation(LedgerError):
    def __init__(self, *, table: str, column: str, value: object) -> None:
        self.table = table
        self.column = column
        self.value = value
        super().__init__(f"{table}.{column} references missing row {value}")


class DuplicateEntry(LedgerError):
    def __init__(self, *, table: str, key: str) -> None:
        self.table = table
        self.key = key
        super().__init__(f"{table} already contains {key}")


class InvalidEntity(LedgerError):
    pass


class PolicyViolation(LedgerError):
    pass


class AuthorizationDenied(LedgerError):
    def __init__(self, message: str = "permission denied") -> None:
        super().__init__(message)


class StoreFailure(LedgerError):
    user_facing = False

    def __init__(self, message: str = "store operation failed") -> None:
        super().__init__(message)


__all__ = [
    "AuthorizationDenied",
    "DuplicateEntry",
    "ForeignKeyViolation",
    "InvalidEntity",
    "LedgerError",
    "ParseError",
    "PolicyViolation",
    "ReferentialError",
    "StoreFailure",
]
