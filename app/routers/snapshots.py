"""
Snapshots router.

POST /project/{project_code}/snapshots  — capture one monthly snapshot
GET  /project/{project_code}/snapshots  — list captured snapshots
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.snapshot import (
    SnapshotCaptureRequest,
    SnapshotListResponse,
    SnapshotResponse,
)
from app.services.snapshot_diff import TaskEntry
from app.services.snapshot_store import capture_snapshot, list_snapshots

router = APIRouter(prefix="/project", tags=["snapshots"])


@router.post(
    "/{project_code}/snapshots",
    response_model=SnapshotResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Capture a monthly schedule snapshot",
    responses={
        201: {"description": "Snapshot stored."},
        409: {"model": ErrorResponse, "description": "A snapshot for this date already exists."},
    },
)
def post_snapshot(
    payload: SnapshotCaptureRequest,
    project_code: str = Path(min_length=1, max_length=64, examples=["OBR-0042"]),
    db: Session = Depends(get_db),
):
    """
    Store the schedule of a project as it was on `snapshot_date`.

    Snapshots are immutable: capturing the same date twice returns **409**.
    Rows are stored as delivered; malformed rows are reported by the
    changelog, not rejected here.
    """
    tasks = [TaskEntry(**t.model_dump()) for t in payload.tasks]
    snapshot = capture_snapshot(
        db=db,
        project_code=project_code,
        snapshot_date=payload.snapshot_date,
        tasks=tasks,
    )
    return SnapshotResponse(
        project_code=snapshot.project_code,
        snapshot_date=str(snapshot.snapshot_date),
        task_count=len(tasks),
    )


@router.get(
    "/{project_code}/snapshots",
    response_model=SnapshotListResponse,
    summary="List the snapshots of a project",
)
def get_snapshots(
    project_code: str = Path(min_length=1, max_length=64, examples=["OBR-0042"]),
    db: Session = Depends(get_db),
):
    """Snapshot dates and task counts, oldest first."""
    return SnapshotListResponse(
        project_code=project_code,
        items=[
            SnapshotResponse(
                project_code=project_code,
                snapshot_date=str(info.snapshot_date),
                task_count=info.task_count,
            )
            for info in list_snapshots(db, project_code)
        ],
    )
