"""Database schema for storyloom.

One table holds every generated record. The current reference is a copy of
the promoted record stored under a fixed sentinel record_id, so there is at
most one reference row at any time.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Record(Base):
    """A generated record (history) or the current reference.

    Invariant: UNIQUE(run_id, sequence_index, role)
    A run stores at most one history record per view slot.
    """

    __tablename__ = "generated_records"
    __table_args__ = (
        UniqueConstraint("run_id", "sequence_index", "role", name="uq_record_slot"),
        Index("ix_generated_records_run", "run_id"),
    )

    record_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    run_id: Mapped[str] = mapped_column(String(64), nullable=False)
    view_id: Mapped[str] = mapped_column(String(64), nullable=False)
    view_label: Mapped[str] = mapped_column(String(120), nullable=False)
    view_instruction: Mapped[str] = mapped_column(Text, nullable=False)
    requires_reference: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sequence_index: Mapped[int] = mapped_column(Integer, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="history")
    promoted_to_reference: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Set on the reference row only: the history record it was copied from
    source_record_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
