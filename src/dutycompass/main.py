# src/dutycompass/main.py

import argparse
import logging
from datetime import date, timedelta
from typing import List, Optional

from .availability import AvailabilityResolver
from .config import load_config, load_policy
from .data import Database
from .models import PERIOD_HOME, Period
from .statistics import summarize_periods
from .timeline import TimelineCompressor


def format_period(period: Period) -> str:
    span = f"{period.start_date.isoformat()} – {period.end_date.isoformat()}"
    days = f"{period.duration_days} {'day' if period.duration_days == 1 else 'days'}"
    if period.type == PERIOD_HOME:
        kind = f"home ({period.home_status_type})" if period.home_status_type else "home"
        leave = f"leaves {period.departure_date.isoformat()} {period.departure_time}"
        return f"🏠 {span}  {days} {kind}, {leave}"
    back = f"back {period.return_date.isoformat()} {period.return_time}"
    return f"🪖 {span}  {days} at base, {back}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dutycompass", description="Leave forecast for one person.")
    parser.add_argument("--db", help="SQLite database (default: from config)")
    parser.add_argument("--person", required=True, help="person id")
    parser.add_argument("--days", type=int, default=30, help="forecast length in days")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="YYYY-MM-DD [default: today]")
    parser.add_argument("--verbose", action="store_true")
    return parser


def run_forecast(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(message)s")

    cfg = load_config()
    policy = load_policy(cfg)
    db = Database(args.db or cfg.get('database'))
    try:
        person = db.get_person(args.person)
        if person is None:
            print(f"❌ Unknown person: {args.person}")
            return 1
        records = db.load_all()
    finally:
        db.close()

    today = args.today or date.today()
    end = today + timedelta(days=max(args.days, 1) - 1)
    resolver = AvailabilityResolver(policy=policy, **records)
    periods = TimelineCompressor(resolver).compress(person, today, end, today=today)

    print(f"\n✅ Forecast for {person.id}, {today.isoformat()} – {end.isoformat()}:")
    for period in periods:
        print(" ", format_period(period))
    totals = summarize_periods(periods)
    print(f"\n  {totals['home_days']} days home, {totals['base_days']} days at base")
    return 0


if __name__ == "__main__":
    raise SystemExit(run_forecast())
