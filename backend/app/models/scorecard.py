"""Scorecard and per-record simulation result models."""

import enum
from datetime import datetime

from sqlalchemy import String, Integer, Float, DateTime, ForeignKey, JSON, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class ScorecardStatus(str, enum.Enum):
    DRAFT = "Draft"
    DRAFT_BY_AI = "Draft by AI"
    ACTIVE = "Active"
    TESTING = "Testing"
    ARCHIVED = "Archived"


class Scorecard(Base):
    """A scorecard document owned by one organization.

    ``config_json`` holds the assembled document: categories, bucketMapping,
    metadata, dataSources and explainability.
    """
    __tablename__ = "scorecards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    product: Mapped[str] = mapped_column(String(100), nullable=False)
    segment: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0")
    config_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(
        String(20), default=ScorecardStatus.DRAFT.value, nullable=False, index=True,
    )
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(),
    )

    simulation_records = relationship(
        "SimulationRecord", back_populates="scorecard", passive_deletes=True,
    )


class SimulationRecord(Base):
    """One record scored during a bulk-processing run."""
    __tablename__ = "simulation_results"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    scorecard_id: Mapped[int] = mapped_column(
        ForeignKey("scorecards.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    record_id: Mapped[str] = mapped_column(String(100), nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    bucket: Mapped[str] = mapped_column(String(5), nullable=False, index=True)
    reason_codes: Mapped[list | None] = mapped_column(JSON, nullable=True)
    input_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )

    scorecard = relationship("Scorecard", back_populates="simulation_records")
