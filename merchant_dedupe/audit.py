"""
Consistency checks across the merchant, pair and history tables.

Read-only. Each finding is a human-readable string; an empty list means
every merge in the history is fully reflected in the other two tables.
"""

from collections import Counter
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from .database import Merchant, MerchantPair, MergeHistory
from .logger import get_logger
from .queries import to_pair_view

logger = get_logger()


def find_inconsistencies(session_factory: sessionmaker) -> List[str]:
    findings: List[str] = []

    with session_factory() as session:
        active_by_id = dict(session.execute(select(Merchant.id, Merchant.is_active)).all())
        history = session.scalars(select(MergeHistory).order_by(MergeHistory.id)).all()
        open_pairs = [
            to_pair_view(pair)
            for pair in session.scalars(
                select(MerchantPair).where(MerchantPair.is_processed.is_(False)).order_by(MerchantPair.id)
            )
        ]

    merged_pairs = set()
    for entry in history:
        kept, discarded = entry.kept_merchant_id, entry.discarded_merchant_id
        merged_pairs.add(frozenset((kept, discarded)))

        for role, merchant_id in (("kept", kept), ("discarded", discarded)):
            if merchant_id not in active_by_id:
                findings.append(f"History entry {entry.id} references unknown {role} merchant '{merchant_id}'")

        if active_by_id.get(discarded):
            findings.append(f"History entry {entry.id}: discarded merchant '{discarded}' is still active")

    discard_counts = Counter(entry.discarded_merchant_id for entry in history)
    for merchant_id, count in sorted(discard_counts.items()):
        if count > 1:
            findings.append(f"Merchant '{merchant_id}' was discarded {count} times")

    for pair in open_pairs:
        if pair.merchant_ids in merged_pairs:
            findings.append(
                f"Pair {pair.pair_id} ({pair.merchant_id_1}, {pair.merchant_id_2}) "
                "is unprocessed although the merchants were merged"
            )

    if findings:
        logger.warning("Consistency audit found problems", count=len(findings))
    else:
        logger.info("Consistency audit passed", history_entries=len(history))
    return findings
