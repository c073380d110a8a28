"""
Counter reconciliation script

Recomputes every resource's scan/download counters from the tracking log
and corrects the ones that drifted.

    python scripts/reconcile_counters.py            # fix drifted counters
    python scripts/reconcile_counters.py --dry-run  # only report drift
    python scripts/reconcile_counters.py --backend memory  # in-process storage

Exit status is 1 when any counter could not be written.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

from app.core.logging import setup_logging, get_logger, LogContext
from app.db.mongo import connect_to_mongo, close_mongo_connection
from app.repositories.dependencies import build_repository
from app.schemas.tracking import ReconciliationStatus
from app.services.reconciliation_service import CounterReconciler
from utils.time_utils import format_timestamp

setup_logging()
logger = get_logger("scripts.reconcile_counters")


async def reconcile(dry_run: bool, verbose: bool, backend: str = "mongo") -> int:
    if backend == "mongo":
        await connect_to_mongo()
    else:
        logger.warning("Using in-memory storage; only resources created in this process are reconciled")

    try:
        reconciler = CounterReconciler(build_repository(backend))

        with LogContext(dry_run=dry_run):
            summary, results = await reconciler.run(dry_run=dry_run)

        for result in results:
            if not verbose and result.status == ReconciliationStatus.UNCHANGED:
                continue
            line = (
                f"{result.status.value:<14} {result.resource_id}: "
                f"scans {result.previous_scan_count} -> {result.scan_count}, "
                f"downloads {result.previous_download_count} -> {result.download_count}"
            )
            if result.error:
                line += f" ({result.error})"
            print(line)

        print("")
        print("=" * 60)
        print(f"  Resources scanned:  {summary.resources_scanned}")
        print(f"  Drifted:            {summary.resources_drifted}")
        print(f"  Updated:            {summary.resources_updated}")
        print(f"  Failed:             {summary.resources_failed}")
        print(f"  Total scans:        {summary.total_scans}")
        print(f"  Total downloads:    {summary.total_downloads}")
        print(f"  Orphan events:      {summary.orphan_events}")
        print(f"  Finished:           {format_timestamp(summary.finished_at)} UTC")
        if dry_run:
            print("  (dry run - nothing was written)")
        print("=" * 60)

        return 1 if summary.resources_failed else 0

    finally:
        if backend == "mongo":
            await close_mongo_connection()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reconcile resource counters with the tracking log")
    parser.add_argument("--dry-run", action="store_true", help="Report drift without writing")
    parser.add_argument("--verbose", action="store_true", help="Also list resources that are already in sync")
    parser.add_argument("--backend", choices=["mongo", "memory"], default="mongo", help="Storage backend to reconcile")
    args = parser.parse_args()

    sys.exit(asyncio.run(reconcile(args.dry_run, args.verbose, args.backend)))
