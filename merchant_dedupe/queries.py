"""
Read-only queries over the candidate pair and merge history tables.

Storage errors are logged and re-raised unchanged; there is no retry and
no fallback data at this layer.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from .database import MerchantPair, MergeHistory
from .logger import get_logger
from .models import MergeHistoryView, MerchantPairView

logger = get_logger()

VERY_SIMILAR_BELOW = 0.1
SIMILAR_BELOW = 0.3


def similarity_label(distance: float) -> str:
    """Human label for a cosine distance (lower is more similar)."""
    if distance < VERY_SIMILAR_BELOW:
        return "very similar"
    if distance < SIMILAR_BELOW:
        return "similar"
    return "possibly similar"


def to_pair_view(pair: MerchantPair) -> MerchantPairView:
    return MerchantPairView(
        pair_id=pair.id,
        merchant_id_1=pair.merchant_id_1,
        merchant_name_1=pair.merchant_name_1,
        creation_date_1=pair.creation_date_1,
        merchant_id_2=pair.merchant_id_2,
        merchant_name_2=pair.merchant_name_2,
        creation_date_2=pair.creation_date_2,
        # Stored as NUMERIC(10, 8) and loaded as Decimal
        cosine_distance=float(pair.cosine_distance),
        is_processed=bool(pair.is_processed),
    )


class PairQueryService:
    """Lists what the operator still has to decide on."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list_unresolved_pairs(self) -> List[MerchantPairView]:
        """
        Return every candidate pair that has not been processed yet.

        Pairs come back in storage order.
        """
        try:
            with self.session_factory() as session:
                pairs = session.scalars(
                    select(MerchantPair)
                    .where(MerchantPair.is_processed.is_(False))
                    .order_by(MerchantPair.id)
                ).all()
                return [to_pair_view(p) for p in pairs]
        except Exception as e:
            logger.error("Failed to list merchant pairs", error=str(e), error_type=type(e).__name__)
            raise

    def list_merge_history(self, limit: Optional[int] = None) -> List[MergeHistoryView]:
        """Return merge history entries, newest first."""
        query = select(MergeHistory).order_by(MergeHistory.merged_at.desc(), MergeHistory.id.desc())
        if limit is not None:
            query = query.limit(limit)
        try:
            with self.session_factory() as session:
                return [
                    MergeHistoryView(
                        entry_id=entry.id,
                        kept_merchant_id=entry.kept_merchant_id,
                        discarded_merchant_id=entry.discarded_merchant_id,
                        merged_at=entry.merged_at,
                        merged_by=entry.merged_by,
                    )
                    for entry in session.scalars(query)
                ]
        except Exception as e:
            logger.error("Failed to list merge history", error=str(e), error_type=type(e).__name__)
            raise
