from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

MERGE_REQUEST_FIELDS = ["keep_merchant_id", "discard_merchant_id"]
PAIR_SLOT_FIELDS = ["merchant_id_{n}", "merchant_name_{n}", "creation_date_{n}"]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Accept datetimes or ISO 8601 strings; anything else is None.

    Values carrying an offset are converted to naive UTC, since the store
    keeps no zone information.
    """
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def parse_distance(value: Any) -> Optional[Decimal]:
    """Parse a cosine distance without going through binary floating point."""
    if isinstance(value, bool):
        return None
    try:
        distance = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not distance.is_finite():
        return None
    return distance


def validate_merge_request(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    Only checks the shape of the request; existence and state checks
    happen inside the merge transaction.
    """
    if not isinstance(data, dict):
        return ["Merge request must be an object"]

    errors: List[str] = []
    for f in MERGE_REQUEST_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")
    return errors


def validate_merchant(data: Dict[str, Any]) -> List[str]:
    """Validate a merchant row coming from the ingestion feed."""
    if not isinstance(data, dict):
        return ["Row must be an object"]

    errors: List[str] = []

    for f in ["id", "name"]:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    if "creation_date" not in data:
        errors.append("Missing required field: creation_date")
    elif parse_timestamp(data["creation_date"]) is None:
        errors.append("Field 'creation_date' must be an ISO 8601 timestamp")

    if "is_active" in data and not isinstance(data["is_active"], bool):
        errors.append("Field 'is_active' must be a boolean if provided")

    return errors


def validate_pair(data: Dict[str, Any]) -> List[str]:
    """Validate a candidate pair row coming from the upstream similarity job."""
    if not isinstance(data, dict):
        return ["Row must be an object"]

    errors: List[str] = []

    for n in (1, 2):
        id_field, name_field, date_field = (f.format(n=n) for f in PAIR_SLOT_FIELDS)
        for f in (id_field, name_field):
            if f not in data:
                errors.append(f"Missing required field: {f}")
            elif not _is_non_empty_str(data[f]):
                errors.append(f"Field '{f}' must be a non-empty string")
        if date_field not in data:
            errors.append(f"Missing required field: {date_field}")
        elif parse_timestamp(data[date_field]) is None:
            errors.append(f"Field '{date_field}' must be an ISO 8601 timestamp")

    if data.get("merchant_id_1") is not None and data.get("merchant_id_1") == data.get("merchant_id_2"):
        errors.append("A pair must reference two different merchants")

    if "cosine_distance" not in data:
        errors.append("Missing required field: cosine_distance")
    else:
        distance = parse_distance(data["cosine_distance"])
        if distance is None:
            errors.append("Field 'cosine_distance' must be a number")
        elif not Decimal(0) <= distance <= Decimal(1):
            errors.append("Field 'cosine_distance' must be between 0 and 1")

    if "is_processed" in data and not isinstance(data["is_processed"], bool):
        errors.append("Field 'is_processed' must be a boolean if provided")

    return errors
