from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import GetCoreSchemaHandler, GetJsonSchemaHandler
from pydantic.json_schema import JsonSchemaValue
from pydantic_core import core_schema

from .errors import ParseError

SEPARATOR = ":"
STOCK_TAG_PREFIX = "X"


class AssetKind(StrEnum):
    STOCK = "STOCK"
    CURRENCY = "CURRENCY"
    CRYPTO = "CRYPTO"
    UNKNOWN = "UNKNOWN"


# Kinds whose tag is the kind name itself; stocks are tagged with their exchange.
_NAMED_TAGS = {kind.value: kind for kind in (AssetKind.CURRENCY, AssetKind.CRYPTO, AssetKind.UNKNOWN)}


@dataclass(frozen=True)
class AssetId:
    """Tagged identifier of a tradable or monetary instrument.

    The string form is ``<TAG>:<symbol>``. TAG is ``CURRENCY``, ``CRYPTO``,
    ``UNKNOWN``, or ``X<exchange>`` for anything traded on a stock exchange:

    - ``XTSE:DLR``  stock/ETF ``DLR`` on exchange ``TSE``
    - ``CURRENCY:CAD``  fiat currency
    - ``CRYPTO:BTC``  crypto currency
    - ``UNKNOWN:TDB627``  anything else (mutual funds, private instruments)

    Equality is structural. Components may not contain ``:`` so that every
    constructible value survives ``AssetId.parse(str(value))``.
    """

    kind: AssetKind
    symbol: str
    exchange: str | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "kind", AssetKind(self.kind))
        except ValueError as exc:
            raise ParseError(f"unknown asset kind {self.kind!r}") from exc
        if self.kind == AssetKind.STOCK:
            if not self.exchange:
                raise ParseError("stock asset id requires a non-empty exchange")
        elif self.exchange is not None:
            raise ParseError(f"{self.kind} asset id cannot carry an exchange")

        for part in (self.symbol, self.exchange or ""):
            if SEPARATOR in part:
                raise ParseError(f"asset id component {part!r} cannot contain {SEPARATOR!r}")

    @classmethod
    def stock(cls, exchange: str, ticker: str) -> AssetId:
        return cls(AssetKind.STOCK, ticker, exchange=exchange)

    @classmethod
    def currency(cls, symbol: str) -> AssetId:
        return cls(AssetKind.CURRENCY, symbol)

    @classmethod
    def crypto(cls, symbol: str) -> AssetId:
        return cls(AssetKind.CRYPTO, symbol)

    @classmethod
    def unknown(cls, symbol: str) -> AssetId:
        return cls(AssetKind.UNKNOWN, symbol)

    @property
    def ticker(self) -> str:
        return self.symbol

    @property
    def tag(self) -> str:
        if self.kind == AssetKind.STOCK:
            return f"{STOCK_TAG_PREFIX}{self.exchange}"
        return self.kind.value

    @classmethod
    def parse(cls, value: str) -> AssetId:
        if not isinstance(value, str):
            raise ParseError(f"asset id must be a string, got {type(value).__name__}")

        tag, separator, symbol = value.partition(SEPARATOR)
        if not separator:
            raise ParseError(f"asset id {value!r} is missing the {SEPARATOR!r} separator")

        kind = _NAMED_TAGS.get(tag)
        if kind is not None:
            return cls(kind, symbol)
        if tag.startswith(STOCK_TAG_PREFIX) and len(tag) > len(STOCK_TAG_PREFIX):
            return cls.stock(tag[len(STOCK_TAG_PREFIX) :], symbol)
        raise ParseError(f"unknown asset id tag {tag!r}")

    def __str__(self) -> str:
        return f"{self.tag}{SEPARATOR}{self.symbol}"

    @classmethod
    def _coerce(cls, value: Any) -> AssetId:
        if isinstance(value, AssetId):
            return value
        return cls.parse(value)

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def __get_pydantic_json_schema__(
        cls, schema: core_schema.CoreSchema, handler: GetJsonSchemaHandler
    ) -> JsonSchemaValue:
        return {"type": "string", "examples": ["XTSE:DLR", "CURRENCY:CAD"]}


__all__ = ["AssetId", "AssetKind"]
