"""
Seed loading for the merchant and candidate pair tables.

Rows arrive from the upstream similarity job as a JSON document:

    {"merchants": [{"id": ..., "name": ..., "creation_date": ...}, ...],
     "pairs": [{"merchant_id_1": ..., ..., "cosine_distance": 0.12345678}, ...]}

Pair slots are stored exactly as delivered.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from .database import Merchant, MerchantPair
from .logger import get_logger
from .retry import exponential_backoff, is_transient_error
from .schema import parse_distance, parse_timestamp, validate_merchant, validate_pair

logger = get_logger()


def load_seed_file(path: Path) -> Dict[str, Any]:
    """Read a seed document. Missing or empty files yield an empty document."""
    if not path.exists():
        return {"merchants": [], "pairs": []}
    with path.open("r", encoding="utf-8") as f:
        content = f.read().strip()
    if not content:
        return {"merchants": [], "pairs": []}
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"Seed file is not valid JSON: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Seed file must contain a JSON object: {path}")
    data.setdefault("merchants", [])
    data.setdefault("pairs", [])
    return data


def _log_retry(attempt: int, error: Exception, delay: float) -> None:
    logger.warning("Store busy, retrying batch", attempt=attempt, delay=delay, error=str(error))


_retry_on_lock = exponential_backoff(
    max_retries=3,
    base_delay=0.5,
    exceptions=(OperationalError,),
    retry_if=is_transient_error,
    on_retry=_log_retry,
)


def ingest_merchants(session_factory: sessionmaker, records: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """
    Insert merchants that are not stored yet.

    Args:
        session_factory: Session factory for the target database
        records: Merchant rows (id, name, creation_date, optional is_active)

    Returns:
        Counts of inserted, skipped (already stored) and invalid rows
    """
    # Materialized once so a retried batch sees every row again
    return _insert_merchants(session_factory, list(records))


@_retry_on_lock
def _insert_merchants(session_factory: sessionmaker, records: List[Any]) -> Dict[str, int]:
    stats = {"inserted": 0, "skipped": 0, "invalid": 0}

    with session_factory() as session, session.begin():
        existing = set(session.scalars(select(Merchant.id)))
        for record in records:
            errors = validate_merchant(record)
            if errors:
                merchant_id = record.get("id") if isinstance(record, dict) else None
                logger.warning("Skipping invalid merchant", merchant_id=merchant_id, errors=errors)
                stats["invalid"] += 1
                continue
            if record["id"] in existing:
                stats["skipped"] += 1
                continue
            session.add(
                Merchant(
                    id=record["id"],
                    name=record["name"],
                    creation_date=parse_timestamp(record["creation_date"]),
                    is_active=record.get("is_active", True),
                )
            )
            existing.add(record["id"])
            stats["inserted"] += 1

    logger.info("Merchants ingested", **stats)
    return stats


def ingest_pairs(session_factory: sessionmaker, records: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """
    Insert candidate pairs as delivered by the similarity job.

    Returns:
        Counts of inserted and invalid rows
    """
    return _insert_pairs(session_factory, list(records))


@_retry_on_lock
def _insert_pairs(session_factory: sessionmaker, records: List[Any]) -> Dict[str, int]:
    stats = {"inserted": 0, "invalid": 0}

    with session_factory() as session, session.begin():
        for record in records:
            errors = validate_pair(record)
            if errors:
                row = record if isinstance(record, dict) else {}
                logger.warning(
                    "Skipping invalid pair",
                    merchant_id_1=row.get("merchant_id_1"),
                    merchant_id_2=row.get("merchant_id_2"),
                    errors=errors,
                )
                stats["invalid"] += 1
                continue
            session.add(
                MerchantPair(
                    merchant_id_1=record["merchant_id_1"],
                    merchant_name_1=record["merchant_name_1"],
                    creation_date_1=parse_timestamp(record["creation_date_1"]),
                    merchant_id_2=record["merchant_id_2"],
                    merchant_name_2=record["merchant_name_2"],
                    creation_date_2=parse_timestamp(record["creation_date_2"]),
                    cosine_distance=parse_distance(record["cosine_distance"]),
                    is_processed=record.get("is_processed", False),
                )
            )
            stats["inserted"] += 1

    logger.info("Merchant pairs ingested", **stats)
    return stats


def ingest_seed(session_factory: sessionmaker, data: Dict[str, Any]) -> Dict[str, Dict[str, int]]:
    """Load merchants first, then the pairs that reference them."""
    return {
        "merchants": ingest_merchants(session_factory, data.get("merchants", [])),
        "pairs": ingest_pairs(session_factory, data.get("pairs", [])),
    }
