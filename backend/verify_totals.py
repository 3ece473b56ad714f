#!/usr/bin/env python3
"""
Check that every user's stored totals match the hours logged per date.
Run with --fix to rebuild mismatched totals from the logged entries.
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlmodel import Session

from db import create_db_and_tables, engine
from reconcile import find_inconsistencies, recompute_totals

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def check_totals(session: Session, fix: bool = False) -> int:
    """Log a report of mismatched totals and return how many remain."""
    found = find_inconsistencies(session)

    if not found:
        logger.info("✅ All stored totals match the logged hours")
        return 0

    logger.warning(f"⚠️  Found {len(found)} mismatched totals:")
    for item in found:
        logger.warning(
            f"   - user: {item.user_id}, type: {item.category.value}, "
            f"stored: {item.stored}, expected: {item.expected}"
        )

    if not fix:
        logger.info("Run with --fix to rebuild these totals from the logged hours")
        return len(found)

    for user_id in sorted({item.user_id for item in found}):
        recompute_totals(session, user_id)
        logger.info(f"🔧 Rebuilt totals for {user_id}")

    remaining = find_inconsistencies(session)
    if remaining:
        logger.error(f"❌ {len(remaining)} totals still mismatched after rebuild")
    else:
        logger.info("✅ Totals rebuilt")
    return len(remaining)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--fix", action="store_true", help="rebuild mismatched totals")
    args = parser.parse_args(argv)

    create_db_and_tables()
    with Session(engine) as session:
        remaining = check_totals(session, fix=args.fix)
    return 1 if remaining else 0


if __name__ == "__main__":
    sys.exit(main())
