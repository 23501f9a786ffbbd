from __future__ import annotations

import datetime as dt
import json
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Any, Literal, NamedTuple

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .asset_id import AssetId
from .base_types import NIL_ID, AccountId, IdentifiedModel, TransactionId
from .errors import ParseError

# A monetary leg: amount of an asset, serialized as ``["100.00", "CURRENCY:CAD"]``.
Money = tuple[Decimal, AssetId]

# Bumped whenever the stored action document changes shape.
ACTION_FORMAT_VERSION = 1


class LegRole(StrEnum):
    VALUE = "value"
    FEE = "fee"
    ASSET = "asset"
    CASH = "cash"
    SOURCE = "source"
    TARGET = "target"


class Leg(NamedTuple):
    """One component of an action. `amount` is None for identity-only legs."""

    amount: Decimal | None
    asset_id: AssetId
    role: LegRole


def _money_leg(money: Money, role: LegRole) -> Leg:
    amount, asset_id = money
    return Leg(amount, asset_id, role)


class _CashMovement(BaseModel):
    """External cash movement into or out of the account."""

    value: Money
    fee: Money

    def legs(self) -> list[Leg]:
        return [_money_leg(self.value, LegRole.VALUE), _money_leg(self.fee, LegRole.FEE)]


class Deposit(_CashMovement):
    type: Literal["Deposit"] = "Deposit"


class Withdrawal(_CashMovement):
    type: Literal["Withdrawal"] = "Withdrawal"


class _LedgerEntry(BaseModel):
    value: Money
    reason: str

    def legs(self) -> list[Leg]:
        return [_money_leg(self.value, LegRole.VALUE)]


class Income(_LedgerEntry):
    type: Literal["Income"] = "Income"


class Fee(_LedgerEntry):
    type: Literal["Fee"] = "Fee"


class _Exchange(BaseModel):
    """Asset-for-cash exchange; both legs carry their own asset id."""

    asset: Money
    cash: Money
    fee: Money

    def legs(self) -> list[Leg]:
        return [
            _money_leg(self.asset, LegRole.ASSET),
            _money_leg(self.cash, LegRole.CASH),
            _money_leg(self.fee, LegRole.FEE),
        ]


class Buy(_Exchange):
    type: Literal["Buy"] = "Buy"


class Sell(_Exchange):
    type: Literal["Sell"] = "Sell"


class Dividend(BaseModel):
    type: Literal["Dividend"] = "Dividend"
    source: AssetId
    value: Money
    fee: Money

    def legs(self) -> list[Leg]:
        return [
            Leg(None, self.source, LegRole.SOURCE),
            _money_leg(self.value, LegRole.VALUE),
            _money_leg(self.fee, LegRole.FEE),
        ]


class Journal(BaseModel):
    """Reclassification between two asset identities; only the fee moves value."""

    type: Literal["Journal"] = "Journal"
    source: AssetId
    target: AssetId
    fee: Money

    def legs(self) -> list[Leg]:
        return [
            Leg(None, self.source, LegRole.SOURCE),
            Leg(None, self.target, LegRole.TARGET),
            _money_leg(self.fee, LegRole.FEE),
        ]


ActionUnion = Deposit | Withdrawal | Income | Fee | Buy | Sell | Dividend | Journal
TxnAction = Annotated[ActionUnion, Field(discriminator="type")]

_action_adapter: TypeAdapter[TxnAction] = TypeAdapter(TxnAction)


def legs(action: TxnAction) -> list[Leg]:
    return action.legs()


def parse_action(data: Any) -> TxnAction:
    """Validate a JSON-compatible action document; unknown tags are rejected."""
    try:
        return _action_adapter.validate_python(data)
    except ValidationError as exc:
        raise ParseError(f"invalid transaction action: {exc}") from exc


def dump_action(action: TxnAction) -> dict[str, Any]:
    return _action_adapter.dump_python(action, mode="json")


def encode_action(action: TxnAction) -> str:
    return json.dumps({"version": ACTION_FORMAT_VERSION, "action": dump_action(action)})


def decode_action(raw: str) -> TxnAction:
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ParseError(f"stored action is not valid JSON: {exc}") from exc

    if not isinstance(document, dict) or "action" not in document:
        raise ParseError("stored action is missing its envelope")
    version = document.get("version")
    if version != ACTION_FORMAT_VERSION:
        raise ParseError(f"unsupported action format version {version!r}")
    return parse_action(document["action"])


class Transaction(IdentifiedModel):
    id: TransactionId = TransactionId(NIL_ID)
    account: AccountId
    date: dt.date
    action: TxnAction


__all__ = [
    "ACTION_FORMAT_VERSION",
    "ActionUnion",
    "Buy",
    "Deposit",
    "Dividend",
    "Fee",
    "Income",
    "Journal",
    "Leg",
    "LegRole",
    "Money",
    "Sell",
    "Transaction",
    "TxnAction",
    "Withdrawal",
    "decode_action",
    "dump_action",
    "encode_action",
    "legs",
    "parse_action",
]
