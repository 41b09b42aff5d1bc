"""SQLAlchemy models for all database tables."""

import uuid
from datetime import date as calendar_date, datetime, timezone

from sqlalchemy import JSON, Date, ForeignKey, Integer, String, Text, TIMESTAMP, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from show_import.core.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportJob(Base):
    """One import request and the result of its latest attempt.

    ``version`` is bumped on every flush; SQLAlchemy rejects a write whose
    row version no longer matches the one that was loaded.
    """

    __tablename__ = "import_jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    sources: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | processing | completed | failed | needs_review
    parsed_json: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    confidence_map: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    duplicate_matches: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    errors: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    warnings: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    previous_attempts: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    extraction_mode: Mapped[str] = mapped_column(
        String, nullable=False, default="heuristic"
    )  # heuristic | ai_assisted
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    progress_stage: Mapped[str | None] = mapped_column(String, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}


class Venue(Base):
    """Existing organization venue, read for duplicate matching."""

    __tablename__ = "venues"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )


class Show(Base):
    """Existing organization show, read for duplicate matching."""

    __tablename__ = "shows"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[calendar_date | None] = mapped_column(Date, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    venue_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("venues.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )
