"""
Snapshot capture schemas.

POST /project/{project_code}/snapshots → SnapshotCaptureRequest → SnapshotResponse
GET  /project/{project_code}/snapshots → SnapshotListResponse
"""
from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Optional

from pydantic import BaseModel, Field

SNAPSHOT_MAX_TASKS = 5_000


class SnapshotTaskIn(BaseModel):
    """One schedule row as delivered by the source system.

    Rows are accepted as-is: a missing name or an unreadable date is kept
    and reported by the changelog instead of rejecting the whole snapshot.
    """
    task_name: Optional[str] = Field(default=None, max_length=512, examples=["Fundação"])
    disciplina: Optional[str] = Field(default=None, max_length=256, examples=["Civil"])
    planned_end_date: Any = Field(
        default=None,
        description=(
            "Planned end date (YYYY-MM-DD, ISO datetime, DD/MM/YYYY or {\"value\": ...}). "
            "Any other value is stored as text and reported as malformed."
        ),
        examples=["2025-03-15"],
    )
    status: Optional[str] = Field(default=None, max_length=128, examples=["Em andamento"])
    delay_days: Optional[int] = Field(default=None, description="Delay reported by the source.")
    fase_nome: Optional[str] = Field(default=None, max_length=256)
    categoria_atraso: Optional[str] = Field(default=None, max_length=256)
    motivo_atraso: Optional[str] = None
    observacao_otus: Optional[str] = None


class SnapshotCaptureRequest(BaseModel):
    snapshot_date: date = Field(description="Capture date of the snapshot.", examples=["2025-02-01"])
    tasks: Annotated[list[SnapshotTaskIn], Field(
        max_length=SNAPSHOT_MAX_TASKS,
        description=f"Schedule rows (0–{SNAPSHOT_MAX_TASKS}).",
    )]


class SnapshotResponse(BaseModel):
    project_code: str
    snapshot_date: str
    task_count: int


class SnapshotListResponse(BaseModel):
    project_code: str
    items: list[SnapshotResponse]
