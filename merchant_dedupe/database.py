"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for merchant, candidate pair and merge history storage.
"""

from datetime import datetime
from pathlib import Path
from typing import Union

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class Merchant(Base):
    """Merchant record. Deactivated by a merge, never deleted."""

    __tablename__ = "merchants"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    creation_date = Column(DateTime, nullable=False)  # business creation time
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class MerchantPair(Base):
    """Candidate duplicate pair. Slot order carries no meaning."""

    __tablename__ = "merchant_pairs"
    __table_args__ = (
        CheckConstraint("merchant_id_1 <> merchant_id_2", name="ck_merchant_pairs_distinct_ids"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    merchant_id_1 = Column(String, nullable=False, index=True)
    merchant_name_1 = Column(String, nullable=False)
    creation_date_1 = Column(DateTime, nullable=False)
    merchant_id_2 = Column(String, nullable=False, index=True)
    merchant_name_2 = Column(String, nullable=False)
    creation_date_2 = Column(DateTime, nullable=False)
    cosine_distance = Column(Numeric(10, 8), nullable=False)
    is_processed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class MergeHistory(Base):
    """Append-only log of completed merges."""

    __tablename__ = "merge_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kept_merchant_id = Column(String, nullable=False)
    discarded_merchant_id = Column(String, nullable=False)
    merged_at = Column(DateTime, nullable=False, default=datetime.now)
    merged_by = Column(String, nullable=True)  # reserved, always NULL for now


def database_url(db: Union[str, Path]) -> str:
    """Turn a filesystem path into a SQLite URL; pass full URLs through."""
    text = str(db)
    if "://" in text:
        return text
    return f"sqlite:///{text}"


def get_engine(db: Union[str, Path]) -> Engine:
    """
    Create an engine for a database path or SQLAlchemy URL.

    Args:
        db: Path to SQLite database file, or any SQLAlchemy URL

    Returns:
        SQLAlchemy engine
    """
    url = database_url(db)
    if url.startswith("sqlite"):
        # Sessions may be opened from worker threads
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


def init_database(db: Union[str, Path]) -> Engine:
    """
    Initialize database and create tables.

    Args:
        db: Path to SQLite database file, or any SQLAlchemy URL

    Returns:
        The engine the tables were created on
    """
    if "://" not in str(db):
        Path(db).parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(db: Union[str, Path, Engine]) -> sessionmaker:
    """
    Build a session factory bound to a database.

    Services take the factory as a constructor argument so every caller
    (and every test) decides which database it talks to.
    """
    engine = db if isinstance(db, Engine) else get_engine(db)
    return sessionmaker(bind=engine, expire_on_commit=False)
