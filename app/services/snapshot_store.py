"""
Snapshot store: capture and load monthly schedule snapshots.

Public API
----------
capture_snapshot(db, project_code, snapshot_date, tasks) -> ScheduleSnapshot
list_snapshots(db, project_code)                         -> list[SnapshotInfo]
load_snapshots(db, project_code)                         -> list[Snapshot]
load_all_snapshots(db, project_codes)                    -> dict[str, list[Snapshot]]
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import SnapshotAlreadyExistsError
from app.models.schedule_snapshot import ScheduleSnapshot, SnapshotTask
from app.services.snapshot_diff import Snapshot, TaskEntry

logger = logging.getLogger(__name__)

_RAW_DATE_MAX = 64  # SnapshotTask.planned_end_date column width


@dataclass
class SnapshotInfo:
    snapshot_date: date
    task_count: int


def _snapshot_exists(db: Session, project_code: str, snapshot_date: date) -> bool:
    return (
        db.query(ScheduleSnapshot.id)
        .filter(
            ScheduleSnapshot.project_code == project_code,
            ScheduleSnapshot.snapshot_date == snapshot_date,
        )
        .first()
        is not None
    )


def capture_snapshot(
    db: Session,
    project_code: str,
    snapshot_date: date,
    tasks: list[TaskEntry],
) -> ScheduleSnapshot:
    """
    Persist one snapshot and its task rows in a single transaction.
    Snapshots are immutable: a second capture for the same date raises.
    """
    if _snapshot_exists(db, project_code, snapshot_date):
        raise SnapshotAlreadyExistsError(project_code=project_code, snapshot_date=snapshot_date)

    snapshot = ScheduleSnapshot(project_code=project_code, snapshot_date=snapshot_date)
    try:
        db.add(snapshot)
        db.flush()  # get snapshot.id before adding the rows

        for position, t in enumerate(tasks):
            db.add(SnapshotTask(
                snapshot_id=snapshot.id,
                position=position,
                task_name=t.task_name,
                disciplina=t.disciplina,
                planned_end_date=_raw_date(t.planned_end_date),
                status=t.status,
                delay_days=t.delay_days,
                fase_nome=t.fase_nome,
                categoria_atraso=t.categoria_atraso,
                motivo_atraso=t.motivo_atraso,
                observacao_otus=t.observacao_otus,
            ))
        db.commit()
    except IntegrityError as exc:
        # A concurrent capture of the same date committed first.
        db.rollback()
        raise SnapshotAlreadyExistsError(
            project_code=project_code, snapshot_date=snapshot_date,
        ) from exc
    db.refresh(snapshot)

    logger.info(
        "Captured snapshot %s for project %s with %d tasks",
        snapshot_date, project_code, len(tasks),
    )
    return snapshot


def _raw_date(value) -> Optional[str]:
    """Text form of a delivered end date; unreadable values are kept as text."""
    if isinstance(value, dict):
        value = value.get("value")
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:_RAW_DATE_MAX]


def list_snapshots(db: Session, project_code: str) -> list[SnapshotInfo]:
    rows = (
        db.query(ScheduleSnapshot.snapshot_date, func.count(SnapshotTask.id))
        .outerjoin(SnapshotTask, SnapshotTask.snapshot_id == ScheduleSnapshot.id)
        .filter(ScheduleSnapshot.project_code == project_code)
        .group_by(ScheduleSnapshot.id, ScheduleSnapshot.snapshot_date)
        .order_by(ScheduleSnapshot.snapshot_date)
        .all()
    )
    return [SnapshotInfo(snapshot_date=d, task_count=n) for d, n in rows]


def _to_entry(row: SnapshotTask) -> TaskEntry:
    return TaskEntry(
        task_name=row.task_name,
        disciplina=row.disciplina,
        planned_end_date=row.planned_end_date,
        status=row.status,
        delay_days=row.delay_days,
        fase_nome=row.fase_nome,
        categoria_atraso=row.categoria_atraso,
        motivo_atraso=row.motivo_atraso,
        observacao_otus=row.observacao_otus,
    )


def _load(db: Session, headers: list[ScheduleSnapshot]) -> dict[int, Snapshot]:
    if not headers:
        return {}
    snapshots = {h.id: Snapshot(snapshot_date=h.snapshot_date) for h in headers}
    rows = (
        db.query(SnapshotTask)
        .filter(SnapshotTask.snapshot_id.in_(list(snapshots)))
        .order_by(SnapshotTask.snapshot_id, SnapshotTask.position)
        .all()
    )
    for row in rows:
        snapshots[row.snapshot_id].tasks.append(_to_entry(row))
    return snapshots


def load_snapshots(db: Session, project_code: str) -> list[Snapshot]:
    """All snapshots of one project, oldest first."""
    headers = (
        db.query(ScheduleSnapshot)
        .filter(ScheduleSnapshot.project_code == project_code)
        .order_by(ScheduleSnapshot.snapshot_date)
        .all()
    )
    loaded = _load(db, headers)
    return [loaded[h.id] for h in headers]


def load_all_snapshots(
    db: Session,
    project_codes: Optional[list[str]] = None,
) -> dict[str, list[Snapshot]]:
    """Snapshots grouped by project code, each list oldest first."""
    query = db.query(ScheduleSnapshot)
    if project_codes:
        query = query.filter(ScheduleSnapshot.project_code.in_(project_codes))
    headers = query.order_by(ScheduleSnapshot.project_code, ScheduleSnapshot.snapshot_date).all()

    loaded = _load(db, headers)
    by_project: dict[str, list[Snapshot]] = defaultdict(list)
    for h in headers:
        by_project[h.project_code].append(loaded[h.id])
    return dict(by_project)
