#!/usr/bin/env python3
"""
Recalculate daily stock balances for a date range.

Replays every stock event in [--from, --to] and rewrites the affected
units' daily balances.  Units that succeed are committed even when others
fail; failures are listed and the exit code is 1.

Usage:
    python3 scripts/recalculate.py --from 2024-03-01                  # through today
    python3 scripts/recalculate.py --from 2024-03-01 --to 2024-03-31 --location TOKO-01
    python3 scripts/recalculate.py --from 2024-03-01 --serial 356789012345678
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
from stock_kernel.exceptions import RecalculationFailedError, StockKernelError
from stock_services import operations


def main() -> int:
    parser = argparse.ArgumentParser(description="Recalculate daily stock balances")
    parser.add_argument("--from", dest="from_date", type=date.fromisoformat, required=True,
                        help="First day to recalculate (YYYY-MM-DD)")
    parser.add_argument("--to", dest="to_date", type=date.fromisoformat,
                        help="Last day to recalculate (default: today)")
    parser.add_argument("--location", help="Only this location")
    parser.add_argument("--model", help="Only this model")
    parser.add_argument("--serial", help="Only this serial (IMEI)")
    parser.add_argument("--db-url", help="Database URL (default: from settings)")
    parser.add_argument("--config", type=Path, help="Settings YAML (default: packaged defaults)")
    args = parser.parse_args()

    try:
        settings = get_active_config(args.config)
        init_engine_from_url(
            args.db_url or settings.database.url,
            echo=settings.database.echo,
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
        )
        days, entries = operations.recalculate(
            args.from_date,
            args.to_date,
            location_id=args.location,
            model_id=args.model,
            serial=args.serial,
            settings=settings,
        )
    except RecalculationFailedError as exc:
        result = exc.result
        print(
            f"Committed {result.entries_written} balance row(s) for {len(result.units)} unit(s); "
            f"{len(exc.failures)} unit(s) FAILED:",
            file=sys.stderr,
        )
        for failure in exc.failures:
            print(f"  {failure.unit} on {failure.failed_date}: [{failure.error.code}] {failure.error}",
                  file=sys.stderr)
        return 1
    except StockKernelError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print(f"Recalculated {days} unit-day(s), wrote {entries} balance row(s).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
