"""
Pytest configuration and shared fixtures.
"""

import os
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict

import pytest

# Keep log files out of the working tree; must run before the package is imported
os.environ.setdefault("MERCHANT_DEDUPE_LOG_DIR", tempfile.mkdtemp(prefix="merchant_dedupe_logs_"))

from merchant_dedupe.database import Merchant, MerchantPair, get_session_factory, init_database  # noqa: E402

OLD_TIMESTAMP = datetime(2023, 1, 1, 12, 0, 0)


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "merchants.db"


@pytest.fixture
def engine(db_path):
    engine = init_database(db_path)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory bound to a fresh database for each test."""
    return get_session_factory(engine)


@pytest.fixture
def merchants(session_factory):
    """Two active merchants and one that was already discarded."""
    rows = [
        Merchant(id="merchant_1", name="Test Merchant 1", creation_date=datetime(2023, 1, 1), is_active=True),
        Merchant(id="merchant_2", name="Test Merchant 2", creation_date=datetime(2023, 1, 2), is_active=True),
        Merchant(id="merchant_3", name="Inactive Merchant", creation_date=datetime(2023, 1, 3), is_active=False),
        Merchant(id="merchant_4", name="Unrelated Merchant", creation_date=datetime(2023, 1, 4), is_active=True),
    ]
    for row in rows:
        row.created_at = OLD_TIMESTAMP
        row.updated_at = OLD_TIMESTAMP
    with session_factory() as session, session.begin():
        session.add_all(rows)
    return [row.id for row in rows]


@pytest.fixture
def add_pair(session_factory):
    """Insert a candidate pair with slots in the given order; returns its id."""

    def _add(id_1: str, id_2: str, distance: str = "0.85000000", processed: bool = False) -> int:
        pair = MerchantPair(
            merchant_id_1=id_1,
            merchant_name_1=f"Name of {id_1}",
            creation_date_1=datetime(2023, 1, 1),
            merchant_id_2=id_2,
            merchant_name_2=f"Name of {id_2}",
            creation_date_2=datetime(2023, 1, 2),
            cosine_distance=Decimal(distance),
            is_processed=processed,
        )
        with session_factory() as session, session.begin():
            session.add(pair)
        return pair.id

    return _add


@pytest.fixture
def seed_document() -> Dict[str, Any]:
    """Seed data in the shape delivered by the similarity job."""
    return {
        "merchants": [
            {"id": "m1", "name": "Corner Coffee", "creation_date": "2023-01-01T00:00:00"},
            {"id": "m2", "name": "Corner Coffee Ltd", "creation_date": "2023-01-02T00:00:00"},
            {"id": "m3", "name": "Harbor Books", "creation_date": "2023-02-10T09:30:00"},
        ],
        "pairs": [
            {
                "merchant_id_1": "m2",
                "merchant_name_1": "Corner Coffee Ltd",
                "creation_date_1": "2023-01-02T00:00:00",
                "merchant_id_2": "m1",
                "merchant_name_2": "Corner Coffee",
                "creation_date_2": "2023-01-01T00:00:00",
                "cosine_distance": 0.04,
            },
            {
                "merchant_id_1": "m1",
                "merchant_name_1": "Corner Coffee",
                "creation_date_1": "2023-01-01T00:00:00",
                "merchant_id_2": "m3",
                "merchant_name_2": "Harbor Books",
                "creation_date_2": "2023-02-10T09:30:00",
                "cosine_distance": "0.71234567",
            },
        ],
    }
