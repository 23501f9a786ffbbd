from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import Field

from .base_types import NIL_ID, IdentifiedModel, UserId


class User(IdentifiedModel):
    id: UserId = UserId(NIL_ID)
    username: str
    # Opaque verifier produced by the password collaborator; never serialized.
    password: bytes = Field(repr=False, exclude=True)
    attempts: int = 0
    login_at: datetime | None = None


def effective_attempts(attempts: int, last_attempt: datetime | None, now: datetime, window: timedelta) -> int:
    """Failed login attempts still counting against the user at `now`.

    The counter resets once `window` has elapsed since the last attempt.
    """
    if last_attempt is None or last_attempt <= now - window:
        return 0
    return attempts


__all__ = ["User", "effective_attempts"]
