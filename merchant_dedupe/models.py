"""Plain result types handed back to callers of the query and merge services."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional


@dataclass(frozen=True)
class MerchantPairView:
    """Unresolved duplicate candidate as seen by the operator."""

    pair_id: int
    merchant_id_1: str
    merchant_name_1: str
    creation_date_1: datetime
    merchant_id_2: str
    merchant_name_2: str
    creation_date_2: datetime
    cosine_distance: float
    is_processed: bool = False

    @property
    def merchant_ids(self) -> FrozenSet[str]:
        return frozenset((self.merchant_id_1, self.merchant_id_2))

    def involves(self, merchant_id: str) -> bool:
        return merchant_id in self.merchant_ids

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["creation_date_1"] = self.creation_date_1.isoformat()
        data["creation_date_2"] = self.creation_date_2.isoformat()
        return data


@dataclass(frozen=True)
class MergeOutcome:
    """Result of a merge attempt. Failures are values, never exceptions."""

    success: bool
    message: str
    kept_merchant_id: str
    discarded_merchant_id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MergeHistoryView:
    entry_id: int
    kept_merchant_id: str
    discarded_merchant_id: str
    merged_at: datetime
    merged_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["merged_at"] = self.merged_at.isoformat()
        return data
