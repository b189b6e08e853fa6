"""
Changelog router.

GET /project/{project_code}/changelog             — monthly changelog + annotations
PUT /project/{project_code}/changelog/annotation  — upsert one annotation
GET /portfolio/changelog                          — changelog of every project
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, Path, Query
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.models.change_annotation import ChangeAnnotation
from app.schemas.common import ErrorResponse
from app.schemas.changelog import (
    AnnotationOut,
    AnnotationRequest,
    AnnotationResponse,
    ChangeOut,
    ChangelogResponse,
    DisciplineScoreOut,
    MonthPairOut,
    OverallSummaryOut,
    PairSummaryOut,
    PortfolioChangelogResponse,
    PortfolioSummaryOut,
    ProjectChangelogOut,
)
from app.services import changelog_service
from app.services.annotation_merge import AnnotationView
from app.services.snapshot_diff import (
    ChangeRecord,
    ChangeType,
    DisciplineScore,
    MonthPair,
    OverallSummary,
)

router = APIRouter(tags=["changelog"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _d(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _annotation_to_out(a: AnnotationView) -> AnnotationOut:
    return AnnotationOut(
        description=a.description,
        justification=a.justification,
        is_visible=a.is_visible,
        override_delta_days=a.override_delta_days,
        override_end_date=_d(a.override_end_date),
        updated_by_email=a.updated_by_email,
        updated_at=a.updated_at.isoformat() if a.updated_at else None,
    )


def _change_to_out(c: ChangeRecord) -> ChangeOut:
    return ChangeOut(
        type=c.type,
        type_label=c.type.label,
        task_name=c.task_name,
        disciplina=c.disciplina,
        fase_nome=c.fase_nome,
        delta_days=c.delta_days,
        is_overridden=c.is_overridden,
        original_delta_days=c.original_delta_days,
        prev_end_date=_d(c.prev_end_date),
        curr_end_date=_d(c.curr_end_date),
        original_end_date=_d(c.original_end_date),
        prev_status=c.prev_status,
        curr_status=c.curr_status,
        annotation=_annotation_to_out(c.annotation) if c.annotation is not None else None,
    )


def _pair_to_out(p: MonthPair) -> MonthPairOut:
    s = p.summary()
    return MonthPairOut(
        from_snapshot=str(p.from_snapshot),
        to_snapshot=str(p.to_snapshot),
        from_label=p.from_label,
        to_label=p.to_label,
        malformed_entries=p.malformed_entries,
        summary=PairSummaryOut(
            total=s.total,
            desvios=s.desvios,
            criadas=s.criadas,
            deletadas=s.deletadas,
            nao_feitas=s.nao_feitas,
            annotated=s.annotated,
        ),
        changes=[_change_to_out(c) for c in p.changes],
    )


def _summary_to_out(s: OverallSummary) -> OverallSummaryOut:
    return OverallSummaryOut(
        total_changes=s.total_changes,
        total_desvios=s.total_desvios,
        total_criadas=s.total_criadas,
        total_deletadas=s.total_deletadas,
        total_nao_feitas=s.total_nao_feitas,
        months_analyzed=s.months_analyzed,
        total_annotated=s.total_annotated,
    )


def _score_to_out(s: DisciplineScore) -> DisciplineScoreOut:
    return DisciplineScoreOut(
        disciplina=s.disciplina,
        total=s.total,
        desvios=s.desvios,
        criadas=s.criadas,
        deletadas=s.deletadas,
        nao_feitas=s.nao_feitas,
        total_desvio_dias=s.total_desvio_dias,
    )


def _annotation_to_response(a: ChangeAnnotation) -> AnnotationResponse:
    change_type = ChangeType(a.change_type)
    return AnnotationResponse(
        id=a.id,
        project_code=a.project_code,
        from_snapshot_date=str(a.from_snapshot_date),
        to_snapshot_date=str(a.to_snapshot_date),
        change_type=change_type,
        change_type_label=change_type.label,
        task_name=a.task_name,
        disciplina=a.disciplina or None,
        description=a.description,
        justification=a.justification,
        is_visible=a.is_visible,
        override_delta_days=a.override_delta_days,
        override_end_date=_d(a.override_end_date),
        created_by_email=a.created_by_email,
        updated_by_email=a.updated_by_email,
        created_at=a.created_at.isoformat() if a.created_at else None,
        updated_at=a.updated_at.isoformat() if a.updated_at else None,
    )


# ---------------------------------------------------------------------------
# GET /project/{project_code}/changelog
# ---------------------------------------------------------------------------

@router.get(
    "/project/{project_code}/changelog",
    response_model=ChangelogResponse,
    summary="Monthly schedule changelog of a project",
    responses={
        200: {"description": "Month pairs with classified changes and merged annotations."},
        500: {"model": ErrorResponse, "description": "Snapshots or annotations could not be loaded."},
    },
)
def get_changelog(
    project_code: str = Path(min_length=1, max_length=64, examples=["OBR-0042"]),
    db: Session = Depends(get_db),
):
    """
    Compare every pair of consecutive monthly snapshots of the project and
    classify what changed:

    - **DESVIO_PRAZO** — planned end date moved (`delta_days`, positive = later)
    - **TAREFA_CRIADA** — task added
    - **TAREFA_DELETADA** — task removed
    - **TAREFA_NAO_FEITA** — task became cancelled or overdue without completion

    Saved annotations are attached to their change. With fewer than two
    snapshots the response has no month pairs and `months_analyzed = 0`.
    """
    result = changelog_service.get_changelog(db=db, project_code=project_code)
    return ChangelogResponse(
        project_code=project_code,
        month_pairs=[_pair_to_out(p) for p in result.month_pairs],
        overall_summary=_summary_to_out(result.overall_summary),
        discipline_scores=[_score_to_out(s) for s in result.discipline_scores],
    )


# ---------------------------------------------------------------------------
# PUT /project/{project_code}/changelog/annotation
# ---------------------------------------------------------------------------

@router.put(
    "/project/{project_code}/changelog/annotation",
    response_model=AnnotationResponse,
    summary="Create or update the annotation of one change",
    responses={
        200: {"description": "Annotation stored."},
        422: {"model": ErrorResponse, "description": "Invalid key (blank task name, dates out of order, unknown type)."},
    },
)
def put_annotation(
    payload: AnnotationRequest,
    project_code: str = Path(min_length=1, max_length=64, examples=["OBR-0042"]),
    x_user_email: Optional[str] = Header(default=None, max_length=256),
    db: Session = Depends(get_db),
):
    """
    Upsert the annotation keyed by
    `(project_code, from_snapshot_date, to_snapshot_date, change_type, task_name, disciplina)`.

    `description` is shown to the client, `justification` stays internal.
    Saving with empty texts clears the note. An annotation whose key matches
    no current change is stored and attaches once that change appears.
    """
    annotation = changelog_service.save_annotation(
        db=db,
        project_code=project_code,
        request=changelog_service.AnnotationRequest(
            from_snapshot_date=payload.from_snapshot_date,
            to_snapshot_date=payload.to_snapshot_date,
            change_type=payload.change_type,
            task_name=payload.task_name,
            disciplina=payload.disciplina,
            description=payload.description,
            justification=payload.justification,
            is_visible=payload.is_visible,
            override_delta_days=payload.override_delta_days,
            override_end_date=payload.override_end_date,
        ),
        user_email=x_user_email,
    )
    return _annotation_to_response(annotation)


# ---------------------------------------------------------------------------
# GET /portfolio/changelog
# ---------------------------------------------------------------------------

@router.get(
    "/portfolio/changelog",
    response_model=PortfolioChangelogResponse,
    summary="Changelog of every project in the portfolio",
)
def get_portfolio_changelog(
    project_codes: Optional[list[str]] = Query(
        default=None,
        description="Restrict to these project codes. Defaults to every project.",
    ),
    db: Session = Depends(get_db),
):
    """
    Run the changelog for every project with at least two snapshots and
    return the ones with changes, most changed first, plus portfolio totals
    and a cross-project discipline ranking. Annotations are not included.
    """
    result = changelog_service.get_portfolio_changelog(db=db, project_codes=project_codes)
    return PortfolioChangelogResponse(
        by_project=[
            ProjectChangelogOut(
                project_code=p.project_code,
                month_pairs=[_pair_to_out(mp) for mp in p.month_pairs],
                overall_summary=_summary_to_out(p.overall_summary),
                discipline_scores=[_score_to_out(s) for s in p.discipline_scores],
            )
            for p in result.by_project
        ],
        summary=PortfolioSummaryOut(
            total_projects=result.summary.total_projects,
            total_changes=result.summary.total_changes,
            total_desvios=result.summary.total_desvios,
            total_criadas=result.summary.total_criadas,
            total_deletadas=result.summary.total_deletadas,
            total_nao_feitas=result.summary.total_nao_feitas,
        ),
        discipline_scores=[_score_to_out(s) for s in result.discipline_scores],
    )
