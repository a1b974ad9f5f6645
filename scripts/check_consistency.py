#!/usr/bin/env python3
"""
Check that every recorded merge is reflected in the merchant and pair tables.

Usage:
    python scripts/check_consistency.py --db data/merchants.db
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from merchant_dedupe.audit import find_inconsistencies
from merchant_dedupe.database import get_session_factory


def main():
    parser = argparse.ArgumentParser(description="Audit merge consistency")
    parser.add_argument("--db", type=Path, default=Path("data/merchants.db"),
                       help="Path to SQLite database file")

    args = parser.parse_args()

    if not args.db.exists():
        print(f"❌ Database file not found: {args.db}")
        sys.exit(1)

    print(f"Auditing {args.db}...")
    findings = find_inconsistencies(get_session_factory(args.db))

    if findings:
        print(f"\n❌ {len(findings)} problems found")
        for finding in findings[:20]:
            print(f"   - {finding}")
        if len(findings) > 20:
            print(f"   ... and {len(findings) - 20} more")
        sys.exit(1)

    print("✅ All merges are consistent")
    sys.exit(0)


if __name__ == "__main__":
    main()
