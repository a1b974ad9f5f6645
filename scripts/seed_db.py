#!/usr/bin/env python3
"""
Seed the database with merchants and candidate pairs from a JSON export.

Usage:
    python scripts/seed_db.py --json data/seed.json --db data/merchants.db
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from merchant_dedupe.database import get_session_factory, init_database
from merchant_dedupe.storage import ingest_seed, load_seed_file


def seed(json_path: Path, db_path: Path, dry_run: bool = False) -> bool:
    """
    Load a seed file into the database.

    Args:
        json_path: Path to seed JSON file
        db_path: Path to SQLite database file
        dry_run: If True, don't write to database
    """
    print(f"Loading seed data from {json_path}...")
    try:
        data = load_seed_file(json_path)
    except ValueError as e:
        print(f"❌ {e}")
        return False

    merchants, pairs = data["merchants"], data["pairs"]
    print(f"Found {len(merchants)} merchants and {len(pairs)} candidate pairs")

    if dry_run:
        print("\n[DRY RUN] Would load the following pairs:")
        for i, pair in enumerate(pairs[:5], 1):
            print(f"  {i}. {pair.get('merchant_id_1')} <-> {pair.get('merchant_id_2')}: {pair.get('cosine_distance')}")
        if len(pairs) > 5:
            print(f"  ... and {len(pairs) - 5} more")
        return True

    print(f"\nInitializing database at {db_path}...")
    stats = ingest_seed(get_session_factory(init_database(db_path)), data)

    print("\n✅ Seed complete!")
    print(f"   Merchants inserted: {stats['merchants']['inserted']}")
    print(f"   Merchants skipped:  {stats['merchants']['skipped']}")
    print(f"   Pairs inserted:     {stats['pairs']['inserted']}")
    print(f"   Invalid rows:       {stats['merchants']['invalid'] + stats['pairs']['invalid']}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Seed merchants and candidate pairs from JSON")
    parser.add_argument("--json", type=Path, default=Path("data/seed.json"),
                       help="Path to seed JSON file")
    parser.add_argument("--db", type=Path, default=Path("data/merchants.db"),
                       help="Path to SQLite database file")
    parser.add_argument("--dry-run", action="store_true",
                       help="Show what would be loaded without writing")

    args = parser.parse_args()

    if not args.json.exists():
        print(f"❌ JSON file not found: {args.json}")
        sys.exit(1)

    sys.exit(0 if seed(args.json, args.db, dry_run=args.dry_run) else 1)


if __name__ == "__main__":
    main()
