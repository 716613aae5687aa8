from __future__ import annotations

import argparse
import json
import logging
from typing import Sequence

import uvicorn
from sqlalchemy.orm import Session, sessionmaker

from api.api import create_app
from config import AppSettings, config
from db.db import init_engine
from db.repositories import RateSnapshotRepository, StoreError
from domain.cross_rates import derive
from domain.currencies import Presentation, Symbol
from domain.historical import reconstruct_series
from services.coinbase_source import CoinbaseQuoteFetcher
from services.scheduler import FetchScheduler

logger = logging.getLogger(__name__)


def build_session_factory(settings: AppSettings) -> sessionmaker[Session]:
    logger.info("Using rates DB at %s", settings.db_file)
    return sessionmaker(init_engine(settings.db_echo, db_file=settings.db_file))


def serve(settings: AppSettings, *, host: str, port: int, scheduler: bool) -> int:
    app = create_app(settings, start_scheduler=scheduler)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
    return 0


def fetch_once(settings: AppSettings) -> int:
    scheduler = FetchScheduler(
        fetcher=CoinbaseQuoteFetcher.from_settings(settings),
        session_factory=build_session_factory(settings),
        interval_seconds=settings.fetch_interval_seconds,
        retention_days=settings.retention_days,
    )
    return 0 if scheduler.tick() else 1


def print_latest(settings: AppSettings, *, base: str) -> int:
    presentation = Presentation.CRYPTO_AS_BASE if base == "crypto" else Presentation.FIAT_AS_BASE
    with build_session_factory(settings)() as session:
        try:
            quote = RateSnapshotRepository(session).read_latest()
        except StoreError:
            logger.exception("Reading latest rates failed")
            return 1
    if quote is None:
        logger.error("No rates stored yet, run fetch-once first")
        return 1
    print(json.dumps(derive(quote, presentation).to_payload(), indent=2))
    return 0


def print_history(settings: AppSettings, *, base: Symbol, target: Symbol, start: int, end: int | None) -> int:
    with build_session_factory(settings)() as session:
        try:
            rows = RateSnapshotRepository(session).read_range(base, target, start, end)
        except StoreError:
            logger.exception("Reading historical rates failed")
            return 1
    results = [
        {"Timestamp": point.timestamp, "Value": point.display}
        for point in reconstruct_series(rows)
        if not point.is_degenerate
    ]
    print(json.dumps({"Results": results}, indent=2))
    return 0


def build_parser(settings: AppSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch, store and serve currency and crypto exchange rates.")
    commands = parser.add_subparsers(dest="command", required=True)

    serve_parser = commands.add_parser("serve", help="Run the HTTP API and the fetch scheduler.")
    serve_parser.add_argument("--host", default=settings.host)
    serve_parser.add_argument("--port", type=int, default=settings.port)
    serve_parser.add_argument("--no-scheduler", action="store_true", help="Serve stored data without fetching.")

    commands.add_parser("fetch-once", help="Run a single fetch-and-store tick.")

    latest_parser = commands.add_parser("latest", help="Print the cross rates of the latest stored tick.")
    latest_parser.add_argument("--base", choices=("fiat", "crypto"), default="fiat")

    history_parser = commands.add_parser("history", help="Print a stored target/base series.")
    history_parser.add_argument("base", type=Symbol, choices=list(Symbol))
    history_parser.add_argument("target", type=Symbol, choices=list(Symbol))
    history_parser.add_argument("--start", type=int, required=True, help="Unix timestamp, inclusive.")
    history_parser.add_argument("--end", type=int, help="Unix timestamp, inclusive (default: now).")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    settings = config()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    args = build_parser(settings).parse_args(argv)

    if args.command == "serve":
        return serve(settings, host=args.host, port=args.port, scheduler=not args.no_scheduler)
    if args.command == "fetch-once":
        return fetch_once(settings)
    if args.command == "latest":
        return print_latest(settings, base=args.base)
    return print_history(settings, base=args.base, target=args.target, start=args.start, end=args.end)


if __name__ == "__main__":
    raise SystemExit(main())
