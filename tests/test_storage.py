"""
Tests for storage.py - seed file loading and ingestion.
"""

import json
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from merchant_dedupe.database import Merchant, MerchantPair
from merchant_dedupe.queries import PairQueryService
from merchant_dedupe.retry import RetryError
from merchant_dedupe.storage import (
    ingest_merchants,
    ingest_pairs,
    ingest_seed,
    load_seed_file,
)


class TestLoadSeedFile:
    """Test reading seed documents."""

    def test_missing_file_is_empty(self, tmp_path):
        assert load_seed_file(tmp_path / "missing.json") == {"merchants": [], "pairs": []}

    def test_empty_file_is_empty(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text("   \n")
        assert load_seed_file(path) == {"merchants": [], "pairs": []}

    def test_reads_document(self, tmp_path, seed_document):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps(seed_document))

        data = load_seed_file(path)

        assert len(data["merchants"]) == 3
        assert len(data["pairs"]) == 2

    def test_fills_missing_sections(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps({"merchants": []}))

        assert load_seed_file(path)["pairs"] == []

    def test_malformed_json_raises(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text("{not json")

        with pytest.raises(ValueError):
            load_seed_file(path)

    def test_non_object_raises(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text("[]")

        with pytest.raises(ValueError):
            load_seed_file(path)


class TestIngestMerchants:
    """Test merchant ingestion."""

    def test_inserts_merchants_active_by_default(self, session_factory, seed_document):
        stats = ingest_merchants(session_factory, seed_document["merchants"])

        assert stats == {"inserted": 3, "skipped": 0, "invalid": 0}
        with session_factory() as session:
            merchants = session.scalars(select(Merchant).order_by(Merchant.id)).all()
        assert [m.id for m in merchants] == ["m1", "m2", "m3"]
        assert all(m.is_active for m in merchants)
        assert merchants[2].creation_date.hour == 9

    def test_skips_existing_ids(self, session_factory, seed_document):
        ingest_merchants(session_factory, seed_document["merchants"])

        stats = ingest_merchants(session_factory, seed_document["merchants"])

        assert stats == {"inserted": 0, "skipped": 3, "invalid": 0}

    def test_skips_duplicates_within_batch(self, session_factory, seed_document):
        rows = seed_document["merchants"] + [seed_document["merchants"][0]]

        stats = ingest_merchants(session_factory, rows)

        assert stats["inserted"] == 3
        assert stats["skipped"] == 1

    def test_counts_invalid_rows(self, session_factory):
        stats = ingest_merchants(session_factory, [{"id": "m1", "name": ""}])

        assert stats == {"inserted": 0, "skipped": 0, "invalid": 1}

    def test_non_object_row_is_counted_invalid(self, session_factory, seed_document):
        """A row that is not an object is skipped without failing the batch."""
        rows = ["not-a-dict", seed_document["merchants"][0]]

        stats = ingest_merchants(session_factory, rows)

        assert stats == {"inserted": 1, "skipped": 0, "invalid": 1}

    def test_generator_survives_retry(self, monkeypatch, session_factory, seed_document):
        """Rows passed as a generator are all stored after a transient lock."""
        monkeypatch.setattr("merchant_dedupe.retry.time.sleep", lambda _: None)
        calls = [0]

        def flaky_factory():
            calls[0] += 1
            if calls[0] == 1:
                raise OperationalError("BEGIN", {}, Exception("database is locked"))
            return session_factory()

        stats = ingest_merchants(flaky_factory, (row for row in seed_document["merchants"]))

        assert stats == {"inserted": 3, "skipped": 0, "invalid": 0}
        with session_factory() as session:
            assert len(session.scalars(select(Merchant.id)).all()) == 3

    def test_inactive_flag_is_kept(self, session_factory):
        ingest_merchants(
            session_factory,
            [{"id": "m9", "name": "Closed Shop", "creation_date": "2020-05-05", "is_active": False}],
        )

        with session_factory() as session:
            assert session.get(Merchant, "m9").is_active is False


class TestIngestPairs:
    """Test candidate pair ingestion."""

    def test_keeps_slot_order_and_precision(self, session_factory, seed_document):
        stats = ingest_pairs(session_factory, seed_document["pairs"])

        assert stats == {"inserted": 2, "invalid": 0}
        with session_factory() as session:
            pairs = session.scalars(select(MerchantPair).order_by(MerchantPair.id)).all()
        assert (pairs[0].merchant_id_1, pairs[0].merchant_id_2) == ("m2", "m1")
        assert pairs[1].cosine_distance == Decimal("0.71234567")
        assert all(p.is_processed is False for p in pairs)

    def test_counts_invalid_rows(self, session_factory, seed_document):
        bad = dict(seed_document["pairs"][0], merchant_id_2="m2")

        stats = ingest_pairs(session_factory, [bad])

        assert stats == {"inserted": 0, "invalid": 1}

    def test_non_object_row_is_counted_invalid(self, session_factory, seed_document):
        stats = ingest_pairs(session_factory, [42, seed_document["pairs"][1]])

        assert stats == {"inserted": 1, "invalid": 1}

    def test_generator_survives_retry(self, monkeypatch, session_factory, seed_document):
        """Pairs passed as a generator are all stored after a transient lock."""
        monkeypatch.setattr("merchant_dedupe.retry.time.sleep", lambda _: None)
        calls = [0]

        def flaky_factory():
            calls[0] += 1
            if calls[0] == 1:
                raise OperationalError("BEGIN", {}, Exception("database is locked"))
            return session_factory()

        stats = ingest_pairs(flaky_factory, iter(seed_document["pairs"]))

        assert stats == {"inserted": 2, "invalid": 0}
        with session_factory() as session:
            assert len(session.scalars(select(MerchantPair.id)).all()) == 2

    def test_transient_lock_is_retried(self, monkeypatch, session_factory, seed_document):
        """A 'database is locked' error is retried and then succeeds."""
        monkeypatch.setattr("merchant_dedupe.retry.time.sleep", lambda _: None)
        calls = [0]

        def flaky_factory():
            calls[0] += 1
            if calls[0] == 1:
                raise OperationalError("BEGIN", {}, Exception("database is locked"))
            return session_factory()

        stats = ingest_pairs(flaky_factory, seed_document["pairs"])

        assert stats["inserted"] == 2
        assert calls[0] == 2

    def test_permanent_lock_gives_up(self, monkeypatch, seed_document):
        monkeypatch.setattr("merchant_dedupe.retry.time.sleep", lambda _: None)

        def locked_factory():
            raise OperationalError("BEGIN", {}, Exception("database is locked"))

        with pytest.raises(RetryError):
            ingest_pairs(locked_factory, seed_document["pairs"])

    def test_non_transient_error_is_not_retried(self, monkeypatch, seed_document):
        monkeypatch.setattr("merchant_dedupe.retry.time.sleep", lambda _: None)
        calls = [0]

        def broken_factory():
            calls[0] += 1
            raise OperationalError("SELECT", {}, Exception("no such table: merchant_pairs"))

        with pytest.raises(OperationalError):
            ingest_pairs(broken_factory, seed_document["pairs"])
        assert calls[0] == 1


class TestIngestSeed:
    """Test loading a whole seed document."""

    def test_seeded_pairs_are_listed(self, session_factory, seed_document):
        stats = ingest_seed(session_factory, seed_document)

        assert stats["merchants"]["inserted"] == 3
        assert stats["pairs"]["inserted"] == 2
        pairs = PairQueryService(session_factory).list_unresolved_pairs()
        assert [p.cosine_distance for p in pairs] == [0.04, 0.71234567]
