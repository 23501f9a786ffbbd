from __future__ import annotations

import argparse
import csv
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterator, Sequence

from sqlalchemy.orm import Session, sessionmaker

from config import AppSettings, config
from db.db import atomic, init_db
from db.repositories import AssetDividendRepository, AssetPriceRepository, AssetRepository
from domain.asset import Asset
from domain.asset_id import AssetId
from domain.errors import LedgerError, ParseError
from domain.pricing import PriceHistory, PriceQuote

logger = logging.getLogger(__name__)


def read_quotes(csv_path: Path) -> Iterator[PriceQuote]:
    """Yield quotes from a CSV with ``date``, ``amount`` and ``currency`` columns."""
    with csv_path.open(newline="", encoding="utf-8") as handle:
        for line_no, row in enumerate(csv.DictReader(handle), start=2):
            try:
                yield PriceQuote(
                    date=date.fromisoformat(row["date"].strip()),
                    amount=Decimal(row["amount"].strip()),
                    currency=AssetId.parse(row["currency"].strip()),
                )
            except (KeyError, AttributeError, ValueError, InvalidOperation) as exc:
                raise ParseError(f"{csv_path}:{line_no}: invalid row {row}") from exc


def load_history(
    session_factory: sessionmaker[Session],
    asset_id: AssetId,
    name: str,
    csv_path: Path,
    *,
    dividends: bool = False,
) -> int:
    """Create the shared asset if missing and merge the CSV observations into its history."""
    quotes = list(read_quotes(csv_path))
    with session_factory() as session, atomic(session):
        assets = AssetRepository(session)
        asset = assets.get_by_asset_id(asset_id, None)
        if asset is None:
            asset = assets.create(Asset(asset_id=asset_id, name=name))
            logger.info("Created shared asset %s (%s)", asset.asset_id, asset.name)
        history: PriceHistory = AssetDividendRepository(session) if dividends else AssetPriceRepository(session)
        written = history.upsert_many(asset.id, quotes)
    return written


def price_as_of(session_factory: sessionmaker[Session], asset_id: AssetId, day: date) -> PriceQuote | None:
    with session_factory() as session:
        asset = AssetRepository(session).get_by_asset_id(asset_id, None)
        if asset is None:
            return None
        return AssetPriceRepository(session).as_of(asset.id, day)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Investment ledger maintenance.")
    parser.add_argument("--db-url", default=None, help="overrides LEDGER_DATABASE_URL")
    parser.add_argument("-v", "--verbose", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    init = commands.add_parser("init-db", help="create the schema")
    init.add_argument("--reset", action="store_true", help="delete the database file first")

    load = commands.add_parser("load-prices", help="load a price or dividend CSV for a shared asset")
    load.add_argument("--asset-id", type=AssetId.parse, required=True)
    load.add_argument("--name", required=True)
    load.add_argument("--csv", type=Path, required=True)
    load.add_argument("--dividends", action="store_true")

    lookup = commands.add_parser("price-as-of", help="latest price of a shared asset on or before a date")
    lookup.add_argument("--asset-id", type=AssetId.parse, required=True)
    lookup.add_argument("--date", type=date.fromisoformat, required=True)
    return parser


def run(args: argparse.Namespace, settings: AppSettings) -> int:
    db_url = args.db_url or settings.database_url
    reset = args.command == "init-db" and args.reset
    session_factory = init_db(db_url, echo=settings.echo_sql, reset=reset)

    if args.command == "init-db":
        print(f"Database ready at {db_url}")
    elif args.command == "load-prices":
        written = load_history(session_factory, args.asset_id, args.name, args.csv, dividends=args.dividends)
        print(f"Loaded {written} rows for {args.asset_id}")
    elif args.command == "price-as-of":
        quote = price_as_of(session_factory, args.asset_id, args.date)
        if quote is None:
            print(f"No price for {args.asset_id} on or before {args.date}")
            return 1
        print(f"{args.asset_id} {quote.date} {quote.amount} {quote.currency}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        return run(args, config())
    except LedgerError as exc:
        logger.error("%s", exc.message if exc.user_facing else "operation failed")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
