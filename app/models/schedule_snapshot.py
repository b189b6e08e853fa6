"""
ScheduleSnapshot / SnapshotTask — monthly captures of a project schedule.

Immutable once captured: one row per (project_code, snapshot_date), never
updated. Task rows keep the values exactly as delivered by the source
schedule; `planned_end_date` in particular is stored raw and parsed by the
diff engine, so a badly formatted row is preserved instead of rejected.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ScheduleSnapshot(Base):
    __tablename__ = "schedule_snapshots"
    __table_args__ = (
        UniqueConstraint("project_code", "snapshot_date", name="uq_snapshot_project_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    project_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class SnapshotTask(Base):
    __tablename__ = "snapshot_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    snapshot_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("schedule_snapshots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Row order within the source schedule",
    )
    task_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    disciplina: Mapped[str | None] = mapped_column(String(256), nullable=True)
    planned_end_date: Mapped[str | None] = mapped_column(
        String(64), nullable=True,
        comment="Raw value from the source schedule",
    )
    status: Mapped[str | None] = mapped_column(String(128), nullable=True)
    delay_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fase_nome: Mapped[str | None] = mapped_column(String(256), nullable=True)
    categoria_atraso: Mapped[str | None] = mapped_column(String(256), nullable=True)
    motivo_atraso: Mapped[str | None] = mapped_column(Text, nullable=True)
    observacao_otus: Mapped[str | None] = mapped_column(Text, nullable=True)
