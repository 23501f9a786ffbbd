from __future__ import annotations

import hmac
import logging
from datetime import datetime, timezone
from uuid import UUID

from db.db import atomic
from db.repositories import UserRepository
from domain.base_types import UserId
from domain.errors import AuthorizationDenied, ReferentialError
from domain.user import User

from .base import LedgerServiceBase

logger = logging.getLogger(__name__)


class UserService(LedgerServiceBase):
    """User lifecycle and credential checks.

    Passwords arrive as opaque verifier bytes produced by the password
    collaborator; this service only compares them.
    """

    def register(self, username: str, password: bytes) -> User:
        self._validation.validate_username(username)
        with self._session_factory() as session, atomic(session):
            user = UserRepository(session).create(User(username=username, password=password))
        logger.info("Registered user %s", user.id)
        return user

    def verify_credentials(self, username: str, password: bytes, now: datetime | None = None) -> UserId:
        """Return the user id for matching credentials.

        Each mismatch counts against the user; once `max_login_attempts`
        failures fall within the throttle window, checks are refused until
        the window passes.
        """
        now = now or datetime.now(timezone.utc)
        window = self._settings.login_attempt_window

        with self._session_factory() as session:
            repository = UserRepository(session)
            user = repository.get_by_username(username)
            if user is None:
                raise ReferentialError("unknown username")

            if repository.login_attempts(user.id, now, window) >= self._settings.max_login_attempts:
                logger.warning("Login throttled for user %s", user.id)
                raise AuthorizationDenied("too many failed attempts, try again later")

            if not hmac.compare_digest(user.password, password):
                attempts = repository.record_failed_login(user.id, now, window)
                logger.warning("Incorrect password for user %s (attempt %d)", user.id, attempts)
                raise AuthorizationDenied("incorrect password")

            repository.reset_login_attempts(user.id)
        return user.id

    def update_user(
        self,
        principal: UUID | None,
        *,
        username: str | None = None,
        password: tuple[bytes, bytes] | None = None,
    ) -> User:
        """Rename the user and/or replace its verifier; `password` is (current, new)."""
        principal = self._require_principal(principal)
        with self._session_factory() as session, atomic(session):
            repository = UserRepository(session)
            user = repository.get(principal)
            if user is None:
                raise ReferentialError("user does not exist")

            changes: dict[str, object] = {}
            if username is not None:
                self._validation.validate_username(username)
                changes["username"] = username
            if password is not None:
                current, new = password
                if not hmac.compare_digest(user.password, current):
                    raise AuthorizationDenied("incorrect password")
                changes["password"] = new

            updated = user.model_copy(update=changes)
            repository.update(updated)
        return updated

    def delete_user(self, principal: UUID | None, user_id: UUID) -> None:
        principal = self._require_principal(principal)
        self._access.require(principal == user_id, action=f"deletion of user {user_id}")
        with self._session_factory() as session, atomic(session):
            UserRepository(session).delete(user_id)


__all__ = ["UserService"]
