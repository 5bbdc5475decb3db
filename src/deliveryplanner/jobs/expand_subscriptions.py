#!/usr/bin/env python3
"""Nightly subscription expansion job.

Meant to be invoked by cron or an orchestrator timer once per day, e.g.::

    0 23 * * *  python -m deliveryplanner.jobs.expand_subscriptions

Re-running for the same date is harmless: existing deliveries are skipped.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date

from ..config import settings
from ..db.supabase import get_supabase_client
from ..persistence.repository import get_repository
from ..services.subscriptions.service import resolve_target_date, run_expansion


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Materialize subscription deliveries for a date.")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Target date (YYYY-MM-DD). Defaults to today plus the configured lead days.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = _parse_args(argv)
    target = args.date or resolve_target_date()

    if get_supabase_client() is None:
        logging.error("Supabase is not configured, refusing to expand subscriptions into a throwaway in-memory store")
        return 1

    try:
        report = run_expansion(target, repository=get_repository())
    except Exception as exc:
        logging.exception(f"Subscription expansion for {target} failed: {exc}")
        return 1

    print(
        f"{target.isoformat()} ({report.weekday}): created={len(report.created)} "
        f"duplicates={len(report.duplicates)} malformed={len(report.malformed)} failed={len(report.failed)}"
    )
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
