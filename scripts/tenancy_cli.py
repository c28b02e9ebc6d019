#!/usr/bin/env python3
"""
Reservation schedule preview and expiry sweep.

Usage:
  python3 scripts/tenancy_cli.py preview \\
    --start 2024-01-01 --end 2024-07-01 --schedule quarterly --total 1200 \\
    [--deposit 500] [--locale ar]

  python3 scripts/tenancy_cli.py expire --actor <uuid> [--config path.yaml] [--today 2024-12-31]

preview needs no database.  expire uses the configured database URL
(``TENANCY_DATABASE_URL`` overrides the config file).
"""

from __future__ import annotations

import argparse
import sys
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 60


def _date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date (use YYYY-MM-DD): {value}") from None


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value}") from None


def _fmt(v: Decimal, currency: str) -> str:
    return f"{v:,.2f} {currency}"


def _config(args: argparse.Namespace):
    """The file named by --config, else the process-wide active config."""
    from tenancy_config import get_active_config, load_config

    if args.config is not None:
        return load_config(args.config)
    return get_active_config()


def run_preview(args: argparse.Namespace) -> int:
    from tenancy_kernel.domain.calendar import human_period
    from tenancy_kernel.exceptions import ValidationError
    from tenancy_modules.reservation.calculations import generate_schedule

    config = _config(args)
    try:
        schedule = generate_schedule(
            args.start,
            args.end,
            args.schedule,
            args.total,
            args.deposit,
            quantum=config.amount_quantum,
        )
        period = human_period(args.start, args.end, args.locale)
    except (ValidationError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print("=" * W)
    print("PAYMENT SCHEDULE".center(W))
    print("=" * W)
    print(f"  Period:   {args.start} .. {args.end} ({period})")
    print(f"  Cadence:  {schedule.schedule_type.value}")
    print()
    print(f"  {'#':>3}  {'Due':<12} {'Amount':>20}")
    print(f"  {'-'*3}  {'-'*12} {'-'*20}")
    for item in schedule.installments:
        print(f"  {item.sequence:>3}  {item.due_date.isoformat():<12} "
              f"{_fmt(item.amount, config.currency):>20}")
    print(f"  {'':>3}  {'Total':<12} {_fmt(schedule.total, config.currency):>20}")
    if schedule.deposit is not None:
        print()
        print(f"  Deposit due {schedule.deposit.due_date.isoformat()}: "
              f"{_fmt(schedule.deposit.amount, config.currency)}")
    return 0


def run_expire(args: argparse.Namespace) -> int:
    from tenancy_kernel.db.engine import init_engine_from_url, session_scope
    from tenancy_kernel.domain.clock import DeterministicClock, SystemClock
    from tenancy_kernel.exceptions import TenancyError
    from tenancy_kernel.logging_config import configure_logging
    from tenancy_modules._orm_registry import create_all_tables
    from tenancy_modules.reservation.config import ReservationConfig
    from tenancy_modules.reservation.service import ReservationService

    config = _config(args)
    configure_logging(level=config.log_level)
    if not config.expiry_sweep_enabled:
        print("Expiry sweep is disabled in configuration.")
        return 0

    clock = (
        DeterministicClock(datetime(args.today.year, args.today.month, args.today.day,
                                    tzinfo=timezone.utc))
        if args.today is not None
        else SystemClock()
    )

    try:
        init_engine_from_url(config.database_url)
        create_all_tables()
        with session_scope() as session:
            service = ReservationService(session, clock, ReservationConfig.from_config(config))
            expired = service.expire_overdue(args.actor)
    except TenancyError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print(f"Expired {len(expired)} reservation(s) as of {clock.today().isoformat()}")
    for reservation in expired:
        print(f"  {reservation.id}  unit={reservation.unit_id}  ended {reservation.end_date}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reservation schedule preview and expiry sweep.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    sub = parser.add_subparsers(dest="command", required=True)

    preview = sub.add_parser("preview", help="Print the installment schedule of a contract")
    preview.add_argument("--start", type=_date, required=True, help="Start date YYYY-MM-DD")
    preview.add_argument("--end", type=_date, required=True, help="End date YYYY-MM-DD")
    preview.add_argument("--schedule", required=True,
                         help="monthly, quarterly, triannual, biannual or annual")
    preview.add_argument("--total", type=_decimal, required=True, help="Contract total")
    preview.add_argument("--deposit", type=_decimal, default=None, help="Deposit amount")
    preview.add_argument("--locale", default="en", help="Period phrase locale (en, ar)")
    preview.set_defaults(func=run_preview)

    expire = sub.add_parser("expire", help="Expire reservations whose end date is reached")
    expire.add_argument("--actor", type=UUID, required=True, help="Actor id recorded on changes")
    expire.add_argument("--today", type=_date, default=None,
                        help="Run as of this date instead of the system date")
    expire.set_defaults(func=run_expire)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
