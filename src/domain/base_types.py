from __future__ import annotations

from typing import Any, NewType
from uuid import UUID, uuid4

from pydantic import BaseModel

UserId = NewType("UserId", UUID)
AccountId = NewType("AccountId", UUID)
TransactionId = NewType("TransactionId", UUID)
AssetRowId = NewType("AssetRowId", UUID)

# An entity carrying the nil id has not been persisted yet.
NIL_ID = UUID(int=0)


def is_nil(value: UUID) -> bool:
    return value == NIL_ID


def new_id() -> UUID:
    return uuid4()


class IdentifiedModel(BaseModel):
    """Persisted entity whose identity is its id alone.

    Two instances with identical fields but different ids are distinct, and
    an instance edited in place still equals its stored version.
    """

    id: UUID

    def __eq__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))
