"""
Annotation store: read and upsert coordinator notes on changelog records.

Rows are addressed by ChangeKey only. Concurrent saves on the same key
resolve as last write wins: a first save that loses the insert race to
the unique key is applied as an update of the winning row.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.change_annotation import ChangeAnnotation
from app.services.annotation_merge import ChangeKey

logger = logging.getLogger(__name__)


@dataclass
class AnnotationFields:
    description: Optional[str] = None
    justification: Optional[str] = None
    is_visible: bool = True
    override_delta_days: Optional[int] = None
    override_end_date: Optional[date] = None


def _clean(text: Optional[str]) -> Optional[str]:
    return (text or "").strip() or None


def _apply(
    annotation: ChangeAnnotation,
    fields: AnnotationFields,
    user_email: Optional[str],
) -> None:
    annotation.description = _clean(fields.description)
    annotation.justification = _clean(fields.justification)
    annotation.is_visible = fields.is_visible
    annotation.override_delta_days = fields.override_delta_days
    annotation.override_end_date = fields.override_end_date
    annotation.updated_by_email = user_email


def get_annotations(db: Session, project_code: str) -> list[ChangeAnnotation]:
    return (
        db.query(ChangeAnnotation)
        .filter(ChangeAnnotation.project_code == project_code)
        .all()
    )


def find_annotation(db: Session, key: ChangeKey) -> Optional[ChangeAnnotation]:
    return (
        db.query(ChangeAnnotation)
        .filter(
            ChangeAnnotation.project_code == key.project_code,
            ChangeAnnotation.from_snapshot_date == key.from_snapshot_date,
            ChangeAnnotation.to_snapshot_date == key.to_snapshot_date,
            ChangeAnnotation.change_type == key.change_type.value,
            ChangeAnnotation.task_name == key.task_name,
            ChangeAnnotation.disciplina == (key.disciplina or ""),
        )
        .first()
    )


def upsert_annotation(
    db: Session,
    key: ChangeKey,
    fields: AnnotationFields,
    user_email: Optional[str] = None,
) -> ChangeAnnotation:
    """Create or overwrite the annotation stored under `key`."""
    annotation = find_annotation(db, key)
    if annotation is not None:
        action = "updated"
        _apply(annotation, fields, user_email)
        db.commit()
    else:
        action = "created"
        annotation = ChangeAnnotation(
            project_code=key.project_code,
            from_snapshot_date=key.from_snapshot_date,
            to_snapshot_date=key.to_snapshot_date,
            change_type=key.change_type.value,
            task_name=key.task_name,
            disciplina=key.disciplina or "",
            created_by_email=user_email,
        )
        _apply(annotation, fields, user_email)
        db.add(annotation)
        try:
            db.commit()
        except IntegrityError:
            # Another request inserted the same key first; update its row.
            db.rollback()
            annotation = find_annotation(db, key)
            if annotation is None:
                raise
            action = "updated"
            logger.warning(
                "Annotation insert lost a race on project=%s %r, updating instead",
                key.project_code, key.task_name,
            )
            _apply(annotation, fields, user_email)
            db.commit()
    db.refresh(annotation)

    logger.info(
        "Annotation %s: project=%s %s->%s %s %r",
        action, key.project_code, key.from_snapshot_date, key.to_snapshot_date,
        key.change_type.value, key.task_name,
    )
    return annotation
