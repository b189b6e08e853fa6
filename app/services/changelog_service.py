"""
Changelog service: load snapshots + annotations, run the diff, merge.

Recomputed on every request; nothing is cached.

Public API
----------
get_changelog(db, project_code)                        -> ChangelogResult
save_annotation(db, project_code, request, user_email) -> ChangeAnnotation
get_portfolio_changelog(db, project_codes)             -> PortfolioChangelog
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ChangelogLoadError, InvalidAnnotationKeyError
from app.models.change_annotation import ChangeAnnotation
from app.services.annotation_merge import ChangeKey, merge_annotations
from app.services.annotation_store import AnnotationFields, get_annotations, upsert_annotation
from app.services.snapshot_diff import (
    ChangeType,
    ChangelogResult,
    DisciplineScore,
    MonthPair,
    OverallSummary,
    combine_discipline_scores,
    diff_all_snapshots,
    score_disciplines,
)
from app.services.snapshot_store import load_all_snapshots, load_snapshots

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result / input types
# ---------------------------------------------------------------------------

@dataclass
class AnnotationRequest:
    """Lightweight DTO so the service layer stays schema-agnostic."""
    from_snapshot_date: date
    to_snapshot_date: date
    change_type: ChangeType
    task_name: str
    disciplina: Optional[str] = None
    description: Optional[str] = None
    justification: Optional[str] = None
    is_visible: bool = True
    override_delta_days: Optional[int] = None
    override_end_date: Optional[date] = None


@dataclass
class ProjectChangelog:
    project_code: str
    month_pairs: list[MonthPair]
    overall_summary: OverallSummary
    discipline_scores: list[DisciplineScore]


@dataclass
class PortfolioSummary:
    total_projects: int = 0
    total_changes: int = 0
    total_desvios: int = 0
    total_criadas: int = 0
    total_deletadas: int = 0
    total_nao_feitas: int = 0


@dataclass
class PortfolioChangelog:
    by_project: list[ProjectChangelog] = field(default_factory=list)
    summary: PortfolioSummary = field(default_factory=PortfolioSummary)
    discipline_scores: list[DisciplineScore] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public — single project
# ---------------------------------------------------------------------------

def get_changelog(db: Session, project_code: str) -> ChangelogResult:
    try:
        snapshots = load_snapshots(db, project_code)
        annotations = get_annotations(db, project_code)
    except SQLAlchemyError as exc:
        raise ChangelogLoadError(
            message=f"Could not load changelog data: {exc.__class__.__name__}",
            project_code=project_code,
        ) from exc

    result = diff_all_snapshots(snapshots)
    merge_annotations(project_code, result, annotations)
    result.discipline_scores = score_disciplines(result.month_pairs)

    summary = result.overall_summary
    logger.info(
        "Changelog for %s: %d snapshots, %d changes, %d annotated",
        project_code, len(snapshots), summary.total_changes, summary.total_annotated,
    )
    return result


def save_annotation(
    db: Session,
    project_code: str,
    request: AnnotationRequest,
    user_email: Optional[str] = None,
) -> ChangeAnnotation:
    """
    Upsert one annotation. The key is composed by ChangeKey.build, the same
    constructor the merge uses, so it matches the change it was written for.
    A key that matches no current change is stored anyway and attaches once
    such a change appears.
    """
    if not project_code.strip():
        raise InvalidAnnotationKeyError("project_code must not be empty.", field="project_code")
    if not request.task_name.strip():
        raise InvalidAnnotationKeyError("task_name must not be empty.", field="task_name")
    if request.to_snapshot_date <= request.from_snapshot_date:
        raise InvalidAnnotationKeyError(
            "to_snapshot_date must be after from_snapshot_date.",
            field="to_snapshot_date",
        )

    key = ChangeKey.build(
        project_code,
        request.from_snapshot_date,
        request.to_snapshot_date,
        request.change_type,
        request.task_name,
        request.disciplina,
    )
    fields = AnnotationFields(
        description=request.description,
        justification=request.justification,
        is_visible=request.is_visible,
        override_delta_days=request.override_delta_days,
        override_end_date=request.override_end_date,
    )
    return upsert_annotation(db, key, fields, user_email=user_email)


# ---------------------------------------------------------------------------
# Public — portfolio
# ---------------------------------------------------------------------------

def get_portfolio_changelog(
    db: Session,
    project_codes: Optional[list[str]] = None,
) -> PortfolioChangelog:
    """
    Changelog of every project with at least two snapshots and at least one
    change, most changed first. Annotations are not merged here.
    """
    try:
        all_snapshots = load_all_snapshots(db, project_codes)
    except SQLAlchemyError as exc:
        raise ChangelogLoadError(
            message=f"Could not load portfolio snapshots: {exc.__class__.__name__}",
        ) from exc

    by_project: list[ProjectChangelog] = []
    for code, snapshots in all_snapshots.items():
        if len(snapshots) < 2:
            continue
        result = diff_all_snapshots(snapshots)
        if result.overall_summary.total_changes == 0:
            continue
        by_project.append(ProjectChangelog(
            project_code=code,
            month_pairs=result.month_pairs,
            overall_summary=result.overall_summary,
            discipline_scores=score_disciplines(result.month_pairs),
        ))

    by_project.sort(key=lambda p: (-p.overall_summary.total_changes, p.project_code))

    summary = PortfolioSummary(
        total_projects=len(by_project),
        total_changes=sum(p.overall_summary.total_changes for p in by_project),
        total_desvios=sum(p.overall_summary.total_desvios for p in by_project),
        total_criadas=sum(p.overall_summary.total_criadas for p in by_project),
        total_deletadas=sum(p.overall_summary.total_deletadas for p in by_project),
        total_nao_feitas=sum(p.overall_summary.total_nao_feitas for p in by_project),
    )
    return PortfolioChangelog(
        by_project=by_project,
        summary=summary,
        discipline_scores=combine_discipline_scores(p.discipline_scores for p in by_project),
    )
