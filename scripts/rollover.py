#!/usr/bin/env python3
"""
Carry yesterday's night stock into today's morning stock.

Inserts a placeholder balance row for every unit that had a row yesterday
and has none today.  Safe to run any number of times per day (cron,
systemd timer, or by hand).

Usage:
    python3 scripts/rollover.py
    python3 scripts/rollover.py --today 2024-03-02 --db-url sqlite:///stock.db
"""

import argparse
import sys
from datetime import date
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from stock_config import get_active_config
from stock_kernel.db.engine import init_engine_from_url
from stock_kernel.exceptions import StockKernelError
from stock_services import operations


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed today's balances from yesterday's closings")
    parser.add_argument("--today", type=date.fromisoformat,
                        help="Business day to seed (default: today in the business timezone)")
    parser.add_argument("--db-url", help="Database URL (default: from settings)")
    parser.add_argument("--config", type=Path, help="Settings YAML (default: packaged defaults)")
    args = parser.parse_args()

    try:
        settings = get_active_config(args.config)
        init_engine_from_url(args.db_url or settings.database.url, echo=settings.database.echo)
        rolled = operations.rollover_if_needed(args.today, settings=settings)
    except StockKernelError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print(f"Rolled over {rolled} unit(s).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
