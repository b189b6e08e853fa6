"""
Changelog schemas.

GET /project/{project_code}/changelog            → ChangelogResponse
PUT /project/{project_code}/changelog/annotation → AnnotationRequest → AnnotationResponse
GET /portfolio/changelog                         → PortfolioChangelogResponse
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.services.snapshot_diff import ChangeType


class AnnotationOut(BaseModel):
    description: Optional[str] = Field(default=None, description="Client-visible note.")
    justification: Optional[str] = Field(default=None, description="Internal-only justification.")
    is_visible: bool = True
    override_delta_days: Optional[int] = None
    override_end_date: Optional[str] = None
    updated_by_email: Optional[str] = None
    updated_at: Optional[str] = None


class ChangeOut(BaseModel):
    type: ChangeType
    type_label: str
    task_name: str
    disciplina: Optional[str] = None
    fase_nome: Optional[str] = None
    delta_days: Optional[int] = Field(
        default=None,
        description="DESVIO_PRAZO only. Positive = later (worse), negative = earlier.",
    )
    is_overridden: bool = False
    original_delta_days: Optional[int] = None
    prev_end_date: Optional[str] = None
    curr_end_date: Optional[str] = None
    original_end_date: Optional[str] = None
    prev_status: Optional[str] = None
    curr_status: Optional[str] = None
    annotation: Optional[AnnotationOut] = None


class PairSummaryOut(BaseModel):
    total: int
    desvios: int
    criadas: int
    deletadas: int
    nao_feitas: int
    annotated: int


class MonthPairOut(BaseModel):
    from_snapshot: str
    to_snapshot: str
    from_label: str
    to_label: str = Field(examples=["Mar/25"])
    malformed_entries: int = Field(
        default=0,
        description="Rows left out of the comparison (no name or unreadable date).",
    )
    summary: PairSummaryOut
    changes: list[ChangeOut]


class OverallSummaryOut(BaseModel):
    total_changes: int
    total_desvios: int
    total_criadas: int
    total_deletadas: int
    total_nao_feitas: int
    months_analyzed: int
    total_annotated: int


class DisciplineScoreOut(BaseModel):
    disciplina: str
    total: int
    desvios: int
    criadas: int
    deletadas: int
    nao_feitas: int
    total_desvio_dias: int


class ChangelogResponse(BaseModel):
    """Monthly changelog of one project, oldest month pair first."""
    project_code: str
    month_pairs: list[MonthPairOut]
    overall_summary: OverallSummaryOut
    discipline_scores: list[DisciplineScoreOut]


class AnnotationRequest(BaseModel):
    """Upsert body. The first five fields form the annotation key."""
    from_snapshot_date: date
    to_snapshot_date: date
    change_type: ChangeType
    task_name: str = Field(min_length=1, max_length=512)
    disciplina: Optional[str] = Field(default=None, max_length=256)
    description: Optional[str] = Field(default=None, max_length=5_000)
    justification: Optional[str] = Field(default=None, max_length=5_000)
    is_visible: bool = True
    override_delta_days: Optional[int] = Field(
        default=None,
        description="Corrected delta for DESVIO_PRAZO records.",
    )
    override_end_date: Optional[date] = Field(
        default=None,
        description="Corrected planned end date for DESVIO_PRAZO records.",
    )

    @field_validator("task_name", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("task_name must not be empty after stripping whitespace")
        return stripped


class AnnotationResponse(BaseModel):
    id: int
    project_code: str
    from_snapshot_date: str
    to_snapshot_date: str
    change_type: ChangeType
    change_type_label: str
    task_name: str
    disciplina: Optional[str] = None
    description: Optional[str] = None
    justification: Optional[str] = None
    is_visible: bool
    override_delta_days: Optional[int] = None
    override_end_date: Optional[str] = None
    created_by_email: Optional[str] = None
    updated_by_email: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProjectChangelogOut(BaseModel):
    project_code: str
    month_pairs: list[MonthPairOut]
    overall_summary: OverallSummaryOut
    discipline_scores: list[DisciplineScoreOut]


class PortfolioSummaryOut(BaseModel):
    total_projects: int
    total_changes: int
    total_desvios: int
    total_criadas: int
    total_deletadas: int
    total_nao_feitas: int


class PortfolioChangelogResponse(BaseModel):
    """Changelog of every project with changes, most changed first."""
    by_project: list[ProjectChangelogOut]
    summary: PortfolioSummaryOut
    discipline_scores: list[DisciplineScoreOut]
