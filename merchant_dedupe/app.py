import argparse
import json
from pathlib import Path

from . import __version__
from .audit import find_inconsistencies
from .database import get_session_factory, init_database
from .env import get_settings, load_env
from .logger import get_logger
from .merge import MergeService
from .queries import PairQueryService, similarity_label
from .storage import ingest_seed, load_seed_file


def _session_factory(args: argparse.Namespace):
    return get_session_factory(init_database(args.db))


def cmd_init_db(args: argparse.Namespace) -> None:
    init_database(args.db)
    print(f"Database ready: {args.db}")


def cmd_load(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    try:
        data = load_seed_file(input_path)
    except ValueError as e:
        raise SystemExit(str(e))

    stats = ingest_seed(_session_factory(args), data)
    m, p = stats["merchants"], stats["pairs"]
    print(f"Merchants: {m['inserted']} inserted, {m['skipped']} already stored, {m['invalid']} invalid")
    print(f"Pairs: {p['inserted']} inserted, {p['invalid']} invalid")


def cmd_pairs(args: argparse.Namespace) -> None:
    pairs = PairQueryService(_session_factory(args)).list_unresolved_pairs()
    if args.merchant:
        pairs = [p for p in pairs if p.involves(args.merchant)]
    if args.json:
        print(json.dumps([p.to_dict() for p in pairs], indent=2))
        return
    if not pairs:
        print("No unresolved pairs.")
        return
    print(f"Found {len(pairs)} unresolved pairs:\n")
    for pair in pairs:
        label = similarity_label(pair.cosine_distance)
        print(f"Pair {pair.pair_id}: {label} (distance {pair.cosine_distance:.8f})")
        print(f"  1: {pair.merchant_id_1}  {pair.merchant_name_1}  created {pair.creation_date_1:%Y-%m-%d}")
        print(f"  2: {pair.merchant_id_2}  {pair.merchant_name_2}  created {pair.creation_date_2:%Y-%m-%d}")
        print()


def cmd_merge(args: argparse.Namespace) -> None:
    outcome = MergeService(_session_factory(args)).merge_merchants(args.keep, args.discard)
    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2))
    else:
        print(outcome.message)
        print(f"  Kept: {outcome.kept_merchant_id}")
        print(f"  Discarded: {outcome.discarded_merchant_id}")
    get_logger().log_metrics_summary()
    if not outcome.success:
        raise SystemExit(1)


def cmd_history(args: argparse.Namespace) -> None:
    entries = PairQueryService(_session_factory(args)).list_merge_history(limit=args.limit)
    if args.json:
        print(json.dumps([e.to_dict() for e in entries], indent=2))
        return
    if not entries:
        print("No merges recorded.")
        return
    for entry in entries:
        print(f"{entry.merged_at:%Y-%m-%d %H:%M:%S}  kept {entry.kept_merchant_id}  discarded {entry.discarded_merchant_id}")


def cmd_audit(args: argparse.Namespace) -> None:
    findings = find_inconsistencies(_session_factory(args))
    if not findings:
        print("Consistent")
        return
    print("Inconsistent:")
    for f in findings:
        print(f" - {f}")
    raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="merchant-dedupe", description="Resolve duplicate merchant records")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", default=settings.db, help=f"Database path or SQLAlchemy URL (default: {settings.db})")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init-db", help="Create the database tables")
    ini.set_defaults(func=cmd_init_db)

    lod = subparsers.add_parser("load", help="Load merchants and candidate pairs from a seed JSON file")
    lod.add_argument("--input", required=True, help="Path to seed JSON ({\"merchants\": [...], \"pairs\": [...]})")
    lod.set_defaults(func=cmd_load)

    prs = subparsers.add_parser("pairs", help="List unresolved duplicate candidates")
    prs.add_argument("--merchant", help="Only show pairs that include this merchant ID")
    prs.add_argument("--json", action="store_true", help="Print JSON instead of text")
    prs.set_defaults(func=cmd_pairs)

    mrg = subparsers.add_parser("merge", help="Keep one merchant and deactivate the other")
    mrg.add_argument("--keep", required=True, help="ID of the merchant to keep")
    mrg.add_argument("--discard", required=True, help="ID of the merchant to deactivate")
    mrg.add_argument("--json", action="store_true", help="Print the outcome as JSON")
    mrg.set_defaults(func=cmd_merge)

    his = subparsers.add_parser("history", help="Show completed merges, newest first")
    his.add_argument("--limit", type=int, help="Only show the most recent N merges")
    his.add_argument("--json", action="store_true", help="Print JSON instead of text")
    his.set_defaults(func=cmd_history)

    aud = subparsers.add_parser("audit", help="Check that merges are reflected in all tables")
    aud.set_defaults(func=cmd_audit)

    return parser


def main(argv=None):
    # Load .env if present (MERCHANT_DEDUPE_DB, MERCHANT_DEDUPE_LOG_LEVEL, ...)
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
