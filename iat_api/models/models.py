"""
Database models for the result store.

Test results are stored document-style: scalar columns for the fields that
are filtered or sorted on, JSON columns for the nested structures.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text

from .base import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TestResultDocument(Base):
    """One completed test session."""

    __tablename__ = "test_results"

    id = Column(String(32), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    test_date = Column(DateTime(timezone=True), nullable=False, default=_utc_now)

    # {"maleComputer": [...], "femaleSkincare": [...], ...}
    results = Column(JSON, nullable=False, default=dict)
    # {"dScore": 0.35, "biasType": "...", "biasLevel": "...", ...}
    analysis = Column(JSON, nullable=False, default=dict)
    survey_responses = Column(JSON, nullable=False, default=dict)
    device_info = Column(JSON, nullable=False, default=dict)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=_utc_now, index=True
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utc_now, onupdate=_utc_now
    )

    __table_args__ = (
        Index("ix_test_results_user_id_created_at", "user_id", "created_at"),
    )


class ConnectionCheck(Base):
    """Scratch rows written and removed by the storage smoke test."""

    __tablename__ = "connection_checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    test = Column(Boolean, nullable=False, default=True)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)
