"""
Merge service.

Responsibilities:
- Validate a keep/discard decision against the current merchant state.
- Deactivate the discarded merchant, append to the merge history and mark
  every matching candidate pair processed, all in one transaction.

Non-Responsibilities:
- No similarity computation.
- No retries. A failed merge is reported back and the caller decides.

Invariant:
Either the whole effect commits or nothing does, and a merchant is
discarded at most once.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import sessionmaker

from .database import Merchant, MerchantPair, MergeHistory
from .logger import get_logger
from .models import MergeOutcome
from .schema import validate_merge_request

logger = get_logger()

MSG_SUCCESS = "Merchants merged successfully"
MSG_SELF_MERGE = "Cannot merge a merchant with itself"
MSG_KEEP_NOT_FOUND = "Merchant to keep with ID '{id}' not found"
MSG_DISCARD_NOT_FOUND = "Merchant to discard with ID '{id}' not found"
MSG_ALREADY_INACTIVE = "Merchant to discard is already inactive"
MSG_OPERATION_FAILED = "Database operation failed during merchant merge"


class MergeRejected(Exception):
    """Raised inside the merge transaction to abandon it with a validation failure."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


def pair_matches(keep_merchant_id: str, discard_merchant_id: str):
    """SQL condition matching a candidate pair stored in either slot order."""
    return or_(
        and_(
            MerchantPair.merchant_id_1 == keep_merchant_id,
            MerchantPair.merchant_id_2 == discard_merchant_id,
        ),
        and_(
            MerchantPair.merchant_id_1 == discard_merchant_id,
            MerchantPair.merchant_id_2 == keep_merchant_id,
        ),
    )


class MergeService:
    """Applies operator merge decisions to the merchant, pair and history tables."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def merge_request(self, data: Dict[str, Any]) -> MergeOutcome:
        """Merge from a request payload with keep_merchant_id / discard_merchant_id keys."""
        errors = validate_merge_request(data)
        if errors:
            payload = data if isinstance(data, dict) else {}
            logger.record_merge_attempt()
            return self._reject(
                "invalid_request",
                "; ".join(errors),
                str(payload.get("keep_merchant_id") or ""),
                str(payload.get("discard_merchant_id") or ""),
            )
        return self.merge_merchants(data["keep_merchant_id"], data["discard_merchant_id"])

    def merge_merchants(self, keep_merchant_id: str, discard_merchant_id: str) -> MergeOutcome:
        """
        Keep one merchant and deactivate the other.

        Args:
            keep_merchant_id: Merchant that survives the merge
            discard_merchant_id: Merchant to deactivate

        Returns:
            MergeOutcome; failures are reported with success=False, never raised
        """
        logger.record_merge_attempt()

        if keep_merchant_id == discard_merchant_id:
            return self._reject("self_merge", MSG_SELF_MERGE, keep_merchant_id, discard_merchant_id)

        try:
            with self.session_factory() as session, session.begin():
                self._apply(session, keep_merchant_id, discard_merchant_id)
        except MergeRejected as e:
            return self._reject(e.reason, e.message, keep_merchant_id, discard_merchant_id)
        except Exception as e:
            logger.record_storage_failure()
            logger.error(
                "Merchant merge failed",
                keep_merchant_id=keep_merchant_id,
                discard_merchant_id=discard_merchant_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return MergeOutcome(False, MSG_OPERATION_FAILED, keep_merchant_id, discard_merchant_id)

        logger.record_merge_success()
        logger.info(
            "Merchants merged",
            keep_merchant_id=keep_merchant_id,
            discard_merchant_id=discard_merchant_id,
        )
        return MergeOutcome(True, MSG_SUCCESS, keep_merchant_id, discard_merchant_id)

    def _apply(self, session, keep_merchant_id: str, discard_merchant_id: str) -> None:
        # FOR UPDATE is ignored by SQLite and takes row locks elsewhere
        merchants = {
            m.id: m
            for m in session.scalars(
                select(Merchant)
                .where(Merchant.id.in_([keep_merchant_id, discard_merchant_id]))
                .with_for_update()
            )
        }

        if keep_merchant_id not in merchants:
            raise MergeRejected("keep_not_found", MSG_KEEP_NOT_FOUND.format(id=keep_merchant_id))
        if discard_merchant_id not in merchants:
            raise MergeRejected("discard_not_found", MSG_DISCARD_NOT_FOUND.format(id=discard_merchant_id))
        if not merchants[discard_merchant_id].is_active:
            raise MergeRejected("already_inactive", MSG_ALREADY_INACTIVE)

        now = datetime.now()

        # Guarded on is_active so a concurrent merge that committed first wins
        deactivated = session.execute(
            update(Merchant)
            .where(Merchant.id == discard_merchant_id, Merchant.is_active.is_(True))
            .values(is_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if deactivated.rowcount != 1:
            raise MergeRejected("already_inactive", MSG_ALREADY_INACTIVE)

        session.add(
            MergeHistory(
                kept_merchant_id=keep_merchant_id,
                discarded_merchant_id=discard_merchant_id,
                merged_at=now,
            )
        )

        processed = session.execute(
            update(MerchantPair)
            .where(pair_matches(keep_merchant_id, discard_merchant_id))
            .values(is_processed=True)
            .execution_options(synchronize_session=False)
        )
        logger.debug(
            "Candidate pairs marked processed",
            keep_merchant_id=keep_merchant_id,
            discard_merchant_id=discard_merchant_id,
            pairs=processed.rowcount,
        )

    def _reject(self, reason: str, message: str, keep_merchant_id: str, discard_merchant_id: str) -> MergeOutcome:
        logger.record_merge_rejection(reason)
        logger.warning(
            "Merge rejected",
            reason=reason,
            keep_merchant_id=keep_merchant_id,
            discard_merchant_id=discard_merchant_id,
        )
        return MergeOutcome(False, message, keep_merchant_id, discard_merchant_id)
