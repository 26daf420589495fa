#!/usr/bin/env python3
"""
Record purchases for completed Stripe checkouts whose webhook never arrived.

Safe to run repeatedly: sessions that already have a purchase are reported as
already recorded and left untouched.

Usage:
    # Check the last 24 hours (default)
    python reconcile_purchases.py

    # Check the last 3 days
    python reconcile_purchases.py --hours 72
"""

import argparse
import sys
import os

# Add parent directory to path to import backend modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from trackstore.core.exceptions import ProviderUnavailable
from trackstore.core.logging import setup_logging
from trackstore.db.session import SessionLocal
from trackstore.services.reconciliation_service import reconcile_recent_purchases


def reconcile(hours: int) -> bool:
    """Run reconciliation over the last `hours` hours"""
    db = SessionLocal()
    try:
        counts = reconcile_recent_purchases(hours, db)
    except ProviderUnavailable:
        print("❌ Stripe is unavailable, try again later")
        return False
    finally:
        db.close()

    print(f"✅ Scanned {counts['scanned']} completed checkout sessions from the last {hours}h")
    print(f"   Recorded:         {counts['recorded']}")
    print(f"   Already recorded: {counts['already_recorded']}")
    print(f"   Ignored (unpaid): {counts['ignored']}")
    print(f"   Malformed:        {counts['malformed']}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Reconcile Stripe checkouts with recorded purchases")
    parser.add_argument("--hours", type=int, default=24, help="How far back to look (default: 24)")
    args = parser.parse_args()

    if args.hours <= 0:
        parser.error("--hours must be positive")

    setup_logging()
    sys.exit(0 if reconcile(args.hours) else 1)


if __name__ == "__main__":
    main()
