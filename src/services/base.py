from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from config import AppSettings, config
from domain.access import AccessPolicy
from domain.errors import AuthorizationDenied
from domain.validation import ValidationEngine


class LedgerServiceBase:
    """Shared wiring for services: one fresh session per call, no cached ledger state."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        settings: AppSettings | None = None,
        access: AccessPolicy | None = None,
        validation: ValidationEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or config()
        self._access = access or AccessPolicy()
        self._validation = validation or ValidationEngine(home_currency=self._settings.home_currency_id)

    @staticmethod
    def _require_principal(principal: UUID | None) -> UUID:
        if principal is None:
            raise AuthorizationDenied("authentication required")
        return principal


__all__ = ["LedgerServiceBase"]
