"""
ChangeAnnotation — coordinator note attached to one changelog record.

Keyed by identity, never by surrogate id: (project_code, from/to snapshot
dates, change_type, task_name, disciplina). Recomputing the changelog
therefore re-attaches the same note as long as the task identity and the
snapshot dates are unchanged.

`disciplina` is stored as "" when absent so the unique constraint also
covers tasks without a discipline.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, Boolean, DateTime, Date, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ChangeAnnotation(Base):
    __tablename__ = "change_annotations"
    __table_args__ = (
        UniqueConstraint(
            "project_code", "from_snapshot_date", "to_snapshot_date",
            "change_type", "task_name", "disciplina",
            name="uq_change_annotation_key",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    project_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    from_snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)
    change_type: Mapped[str] = mapped_column(String(32), nullable=False)
    task_name: Mapped[str] = mapped_column(String(512), nullable=False)
    disciplina: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Client-visible note",
    )
    justification: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Internal-only justification",
    )
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    override_delta_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    override_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by_email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    updated_by_email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
