"""
Annotation merge — attach saved coordinator notes to computed changes.

Matching is exact on ChangeKey. The same ChangeKey constructors are used
by the write path (annotation_store.upsert_annotation) and by this merge,
so a saved note always lands on the record it was written for.

Overrides
---------
An annotation on a DESVIO_PRAZO record may carry `override_delta_days`
and/or `override_end_date`. When present the displayed value is replaced
and the computed one is kept in `original_delta_days` /
`original_end_date`, with `is_overridden = True`. Overrides on other
change types are kept on the annotation but not applied.

The merge restores computed values before applying anything, so running
it twice over the same result gives the same output.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from app.services.snapshot_diff import (
    ChangeRecord,
    ChangeType,
    ChangelogResult,
    MonthPair,
    summarize,
)


# ---------------------------------------------------------------------------
# Key
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChangeKey:
    project_code: str
    from_snapshot_date: date
    to_snapshot_date: date
    change_type: ChangeType
    task_name: str
    disciplina: Optional[str]

    @classmethod
    def build(
        cls,
        project_code: str,
        from_snapshot_date: date,
        to_snapshot_date: date,
        change_type: ChangeType | str,
        task_name: str,
        disciplina: Optional[str],
    ) -> "ChangeKey":
        return cls(
            project_code=project_code.strip(),
            from_snapshot_date=from_snapshot_date,
            to_snapshot_date=to_snapshot_date,
            change_type=ChangeType(change_type),
            task_name=task_name.strip(),
            disciplina=(disciplina or "").strip() or None,
        )

    @classmethod
    def for_change(cls, project_code: str, pair: MonthPair, change: ChangeRecord) -> "ChangeKey":
        return cls.build(
            project_code,
            pair.from_snapshot,
            pair.to_snapshot,
            change.type,
            change.task_name,
            change.disciplina,
        )


# ---------------------------------------------------------------------------
# View attached to ChangeRecord.annotation
# ---------------------------------------------------------------------------

@dataclass
class AnnotationView:
    description: Optional[str]
    justification: Optional[str]
    is_visible: bool
    override_delta_days: Optional[int] = None
    override_end_date: Optional[date] = None
    updated_by_email: Optional[str] = None
    updated_at: Optional[datetime] = None


def annotation_key(annotation) -> ChangeKey:
    """ChangeKey of a persisted ChangeAnnotation row."""
    return ChangeKey.build(
        annotation.project_code,
        annotation.from_snapshot_date,
        annotation.to_snapshot_date,
        annotation.change_type,
        annotation.task_name,
        annotation.disciplina,
    )


def is_cleared(annotation) -> bool:
    """True for a row saved with every note and override field empty."""
    return (
        annotation.description is None
        and annotation.justification is None
        and annotation.override_delta_days is None
        and annotation.override_end_date is None
    )


def to_view(annotation) -> AnnotationView:
    return AnnotationView(
        description=annotation.description,
        justification=annotation.justification,
        is_visible=bool(annotation.is_visible),
        override_delta_days=annotation.override_delta_days,
        override_end_date=annotation.override_end_date,
        updated_by_email=annotation.updated_by_email or annotation.created_by_email,
        updated_at=annotation.updated_at,
    )


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def _reset(change: ChangeRecord) -> None:
    if change.is_overridden:
        if change.original_delta_days is not None:
            change.delta_days = change.original_delta_days
        if change.original_end_date is not None:
            change.curr_end_date = change.original_end_date
    change.is_overridden = False
    change.original_delta_days = None
    change.original_end_date = None
    change.annotation = None


def _apply_overrides(change: ChangeRecord, view: AnnotationView) -> None:
    if change.type != ChangeType.DESVIO_PRAZO:
        return
    if view.override_delta_days is not None and view.override_delta_days != change.delta_days:
        change.original_delta_days = change.delta_days
        change.delta_days = view.override_delta_days
        change.is_overridden = True
    if view.override_end_date is not None and view.override_end_date != change.curr_end_date:
        change.original_end_date = change.curr_end_date
        change.curr_end_date = view.override_end_date
        change.is_overridden = True


def merge_annotations(
    project_code: str,
    result: ChangelogResult,
    annotations: Iterable,
) -> ChangelogResult:
    """
    Fill ChangeRecord.annotation in place by exact ChangeKey match and
    recompute the annotated counts. Unmatched changes get None, and so do
    changes whose annotation was cleared.
    """
    lookup = {
        annotation_key(a): to_view(a) for a in annotations if not is_cleared(a)
    }

    for pair in result.month_pairs:
        for change in pair.changes:
            _reset(change)
            view = lookup.get(ChangeKey.for_change(project_code, pair, change))
            if view is None:
                continue
            change.annotation = view
            _apply_overrides(change, view)

    result.overall_summary = summarize(result.month_pairs)
    return result
