#!/usr/bin/env python3
"""
Reconcile batches.total_amount with the donations table.

Each batch's stored total should equal the sum of its SUCCESS donations.
The ledger keeps them in step; this script finds and repairs drift left by
manual database edits or historical bugs.

Usage:
    # Report drift only
    uv run python scripts/reconcile_batch_totals.py

    # Overwrite drifted totals with the donation sums
    uv run python scripts/reconcile_batch_totals.py --apply
"""

import argparse
import asyncio

from app.core.database import get_async_session
from app.core.logging import bind_context, configure_logging
from app.services.ledger import reconcile_batch_totals


async def main(apply: bool) -> int:
    async with get_async_session() as db:
        drift = await reconcile_batch_totals(db, apply=apply)

    if not drift:
        print("All batch totals match their SUCCESS donations.")
        return 0

    print(f"{'ID':>6}  {'Batch':<30} {'Stored':>14} {'Actual':>14} {'Diff':>14}")
    for item in drift:
        print(
            f"{item.batch_id:>6}  {item.name[:30]:<30} {item.stored:>14} "
            f"{item.actual:>14} {item.actual - item.stored:>14}"
        )

    if apply:
        print(f"\nRepaired {len(drift)} batch total(s).")
        return 0

    print(f"\n{len(drift)} batch total(s) drifted. Re-run with --apply to repair.")
    return 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reconcile batch totals with donations")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write the recomputed totals (default: report only)",
    )
    args = parser.parse_args()

    configure_logging()
    bind_context(script="reconcile_batch_totals", apply=args.apply)
    raise SystemExit(asyncio.run(main(args.apply)))
