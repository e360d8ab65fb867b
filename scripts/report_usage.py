"""Summarise the persistent usage ledger for one UTC day."""

from __future__ import annotations

import argparse
import json
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Dict, List, Optional

from app.db.session import SessionLocal
from app.services.usage import SqlUsageLedger, UsageCounters


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Report per-user provider usage and cost")
    parser.add_argument(
        "--day",
        type=date.fromisoformat,
        default=None,
        help="UTC day to report (YYYY-MM-DD); defaults to today",
    )
    parser.add_argument("--user", help="Only report this user id")
    parser.add_argument("--output", type=Path, help="Optional path to persist the report as JSON")
    return parser.parse_args(argv)


def build_report(
    usage: Dict[str, Dict[str, UsageCounters]], user: Optional[str] = None
) -> Dict[str, dict]:
    report: Dict[str, dict] = {}
    for user_id, providers in usage.items():
        if user and user_id != user:
            continue
        report[user_id] = {
            "total_requests": sum(c.requests for c in providers.values()),
            "total_tokens": sum(c.tokens for c in providers.values()),
            "total_cost": round(sum(c.cost for c in providers.values()), 6),
            "providers": {
                name: {"requests": c.requests, "tokens": c.tokens, "cost": round(c.cost, 6)}
                for name, c in providers.items()
            },
        }
    return report


def main(argv: Optional[List[str]] = None, ledger: Optional[SqlUsageLedger] = None) -> None:
    args = parse_args(argv)
    day = args.day or datetime.now(UTC).date()
    ledger = ledger or SqlUsageLedger(SessionLocal)
    report = build_report(ledger.day_report(day), args.user)

    print("Usage for", day.isoformat())
    if not report:
        print("No usage recorded.")
    for user_id, entry in report.items():
        print(
            f"{user_id}: {entry['total_requests']} requests, "
            f"{entry['total_tokens']} tokens, ${entry['total_cost']:.4f}"
        )
        for provider, counters in entry["providers"].items():
            print(f" - {provider}: {counters['requests']} requests, ${counters['cost']:.4f}")

    if args.output:
        payload = {"day": day.isoformat(), "users": report}
        args.output.write_text(json.dumps(payload, indent=2), encoding="utf-8")


if __name__ == "__main__":
    main()
