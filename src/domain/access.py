from __future__ import annotations

import logging
from typing import Protocol
from uuid import UUID

from .account import Account
from .asset import Asset
from .errors import AuthorizationDenied
from .transaction import Transaction

logger = logging.getLogger(__name__)


class Authenticator(Protocol):
    """External collaborator resolving a bearer token to a user id."""

    def authenticate(self, token: str) -> UUID | None: ...


def resolve_principal(authenticator: Authenticator, token: str | None) -> UUID | None:
    if not token:
        return None
    return authenticator.authenticate(token)


class AccessPolicy:
    """Ownership predicates. Any unresolved reference authorizes to False."""

    def authorize(self, principal: UUID | None, account: Account | None) -> bool:
        if principal is None or account is None:
            return False
        return account.owner == principal

    def authorize_transaction(
        self, principal: UUID | None, transaction: Transaction | None, account: Account | None
    ) -> bool:
        if transaction is None or account is None or transaction.account != account.id:
            return False
        return self.authorize(principal, account)

    def authorize_asset(self, principal: UUID | None, asset: Asset | None) -> bool:
        # Global assets (no owner) are shared and cannot be mutated by any principal.
        if principal is None or asset is None or asset.owner is None:
            return False
        return asset.owner == principal

    def can_view_asset(self, principal: UUID | None, asset: Asset | None) -> bool:
        if principal is None or asset is None:
            return False
        return asset.owner is None or asset.owner == principal

    def require(self, allowed: bool, *, action: str) -> None:
        if not allowed:
            logger.warning("Denied %s", action)
            raise AuthorizationDenied()


__all__ = ["AccessPolicy", "Authenticator", "resolve_principal"]
