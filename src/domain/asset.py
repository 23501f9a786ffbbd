from __future__ import annotations

from .asset_id import AssetId
from .base_types import NIL_ID, AssetRowId, IdentifiedModel, UserId


class Asset(IdentifiedModel):
    """A named instrument. Assets without an owner are visible to every user."""

    id: AssetRowId = AssetRowId(NIL_ID)
    asset_id: AssetId
    name: str
    owner: UserId | None = None


__all__ = ["Asset"]
