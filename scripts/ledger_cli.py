#!/usr/bin/env python3
"""
Operator command line for the ledger engine.

Usage:
    python3 scripts/ledger_cli.py init-db
    python3 scripts/ledger_cli.py submit --file lines.json --actor <uuid>
    python3 scripts/ledger_cli.py post --date 2024-03-31 --actor <uuid>
    python3 scripts/ledger_cli.py unpost --date 2024-03-31 --actor <uuid>
    python3 scripts/ledger_cli.py apply-balances --date 2024-03-31 --actor <uuid>
    python3 scripts/ledger_cli.py revert-balances --date 2024-03-31 --actor <uuid>
    python3 scripts/ledger_cli.py net-result --year 2024
    python3 scripts/ledger_cli.py close-period --year 2024 --actor <uuid>
    python3 scripts/ledger_cli.py lock-period --year 2024 --actor <uuid>

Every command accepts --config PATH (YAML) and --database-url URL.
Results are printed as JSON.  Kernel errors print {"error": {...}} and exit 1.
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

SYSTEM_ACTOR = UUID(int=0)


def _date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger_cli",
        description="Post, unpost and close ledger periods.",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--database-url", default=None, help="Override the configured database URL")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables")

    def with_actor(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("--actor", type=UUID, default=SYSTEM_ACTOR, help="Acting user id")
        return p

    submit = with_actor(sub.add_parser("submit", help="Submit a batch of ledger lines"))
    submit.add_argument("--file", type=Path, required=True, help="JSON list of ledger lines")

    for name, help_text in (
        ("post", "Aggregate a day's pending lines into journal entries"),
        ("unpost", "Return a day's posted lines to pending"),
        ("apply-balances", "Apply pending journal entries up to a date to balances"),
        ("revert-balances", "Revert the balances applied for one date"),
    ):
        p = with_actor(sub.add_parser(name, help=help_text))
        p.add_argument("--date", type=_date, required=True)

    net = sub.add_parser("net-result", help="Preview the net result of a year")
    net.add_argument("--year", type=int, required=True)

    for name, help_text in (
        ("close-period", "Save the net result of a year"),
        ("lock-period", "Lock a year's net result (one way)"),
    ):
        p = with_actor(sub.add_parser(name, help=help_text))
        p.add_argument("--year", type=int, required=True)

    return parser


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    from ledger_config import get_active_config
    from ledger_config.loader import log_level
    from ledger_config.schema import DatabaseConfig
    from ledger_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_config,
    )
    from ledger_kernel.exceptions import LedgerKernelError
    from ledger_kernel.logging_config import configure_logging
    from ledger_kernel.services.ledger_engine import LedgerEngine

    config = get_active_config(args.config)
    configure_logging(level=log_level(config))

    db_config = config.database
    if args.database_url:
        db_config = DatabaseConfig(
            url=args.database_url,
            echo=db_config.echo,
            pool_size=db_config.pool_size,
            max_overflow=db_config.max_overflow,
        )
    init_engine_from_config(db_config)

    if args.command == "init-db":
        create_tables()
        _emit({"status": "ok"})
        return 0

    engine = LedgerEngine.from_config(config, get_session_factory())

    try:
        if args.command == "submit":
            with open(args.file) as f:
                lines = json.load(f)
            result = engine.submit_batch(lines, args.actor)
        elif args.command == "post":
            result = engine.post_for_date(args.date, args.actor)
        elif args.command == "unpost":
            result = engine.unpost_for_date(args.date, args.actor)
        elif args.command == "apply-balances":
            result = engine.apply_balances_up_to(args.date, args.actor)
        elif args.command == "revert-balances":
            result = engine.revert_balances_for(args.date, args.actor)
        elif args.command == "net-result":
            result = engine.calculate_net_result(args.year)
        elif args.command == "close-period":
            result = engine.close_period(args.year, args.actor)
        elif args.command == "lock-period":
            result = engine.lock_period(args.year, args.actor)
        else:
            raise AssertionError(f"unhandled command {args.command}")
    except LedgerKernelError as exc:
        _emit({"error": exc.to_dict()})
        return 1

    _emit(result.to_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
