from __future__ import annotations

from enum import StrEnum

from .base_types import NIL_ID, AccountId, IdentifiedModel, UserId


class AccountKind(StrEnum):
    NRA = "NRA"  # non-registered, taxable
    TFSA = "TFSA"
    RRSP = "RRSP"
    FHSA = "FHSA"

    @property
    def is_registered(self) -> bool:
        return self in REGISTERED_KINDS


REGISTERED_KINDS = frozenset({AccountKind.TFSA, AccountKind.RRSP, AccountKind.FHSA})


class Account(IdentifiedModel):
    id: AccountId = AccountId(NIL_ID)
    name: str
    alias: str
    owner: UserId
    kind: AccountKind


__all__ = ["Account", "AccountKind", "REGISTERED_KINDS"]
