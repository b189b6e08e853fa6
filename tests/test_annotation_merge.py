"""
Tests for the annotation merge (pure, annotations faked with SimpleNamespace).

Covered:
  - exact key match attaches the annotation; anything else leaves None
  - key built for the write path equals the key built from the change
  - override of delta_days / end date on DESVIO_PRAZO
  - overrides ignored on other change types
  - merge is idempotent and reversible (re-merge with no annotations)
  - annotated counts
"""
from __future__ import annotations

import pytest
from datetime import date, datetime
from types import SimpleNamespace as NS

from app.services.annotation_merge import ChangeKey, merge_annotations
from app.services.snapshot_diff import (
    ChangeType,
    Snapshot,
    TaskEntry,
    diff_all_snapshots,
)

PROJECT = "OBR-0001"
JAN = date(2025, 1, 1)
FEB = date(2025, 2, 1)


def _result():
    s1 = Snapshot(JAN, [
        TaskEntry("Fundação", "Civil", "2025-03-01", "Em andamento"),
        TaskEntry("Impermeabilização", None, "2025-05-01", "Não iniciada"),
    ])
    s2 = Snapshot(FEB, [
        TaskEntry("Fundação", "Civil", "2025-03-15", "Em andamento"),
        TaskEntry("Alvenaria", "Civil", "2025-04-01", "Não iniciada"),
        TaskEntry("Impermeabilização", None, "2025-05-01", "Cancelada"),
    ])
    return diff_all_snapshots([s1, s2])


def _annotation(change_type, task_name, /, disciplina="Civil", **overrides):
    fields = dict(
        project_code=PROJECT,
        from_snapshot_date=JAN,
        to_snapshot_date=FEB,
        change_type=change_type.value,
        task_name=task_name,
        disciplina=disciplina or "",
        description="Chuvas acima da média",
        justification="Aditivo em negociação",
        is_visible=True,
        override_delta_days=None,
        override_end_date=None,
        created_by_email="coord@otus.com",
        updated_by_email=None,
        updated_at=datetime(2025, 2, 10, 9, 30),
    )
    fields.update(overrides)
    return NS(**fields)


def _change(result, change_type, task_name):
    for pair in result.month_pairs:
        for c in pair.changes:
            if c.type == change_type and c.task_name == task_name:
                return c
    raise AssertionError(f"no {change_type} for {task_name}")


class TestMatching:
    def test_exact_key_attaches_annotation(self):
        result = merge_annotations(
            PROJECT, _result(), [_annotation(ChangeType.DESVIO_PRAZO, "Fundação")],
        )
        slip = _change(result, ChangeType.DESVIO_PRAZO, "Fundação")
        assert slip.annotation is not None
        assert slip.annotation.description == "Chuvas acima da média"
        assert slip.annotation.justification == "Aditivo em negociação"
        assert slip.annotation.is_visible is True
        assert slip.annotation.updated_by_email == "coord@otus.com"
        assert _change(result, ChangeType.TAREFA_CRIADA, "Alvenaria").annotation is None

    def test_annotated_counts(self):
        result = merge_annotations(PROJECT, _result(), [
            _annotation(ChangeType.DESVIO_PRAZO, "Fundação"),
            _annotation(ChangeType.TAREFA_CRIADA, "Alvenaria"),
        ])
        assert result.overall_summary.total_annotated == 2
        assert result.month_pairs[0].summary().annotated == 2

    def test_absent_discipline_matches_blank_column(self):
        result = merge_annotations(PROJECT, _result(), [
            _annotation(ChangeType.TAREFA_NAO_FEITA, "Impermeabilização", disciplina=""),
        ])
        assert _change(result, ChangeType.TAREFA_NAO_FEITA, "Impermeabilização").annotation is not None

    @pytest.mark.parametrize("overrides", [
        {"project_code": "OBR-9999"},
        {"from_snapshot_date": date(2024, 12, 1)},
        {"to_snapshot_date": date(2025, 3, 1)},
        {"change_type": ChangeType.TAREFA_CRIADA.value},
        {"task_name": "Fundacao"},
        {"disciplina": "Estrutura"},
    ])
    def test_any_key_difference_leaves_change_unannotated(self, overrides):
        ann = _annotation(ChangeType.DESVIO_PRAZO, "Fundação", **overrides)
        result = merge_annotations(PROJECT, _result(), [ann])
        assert _change(result, ChangeType.DESVIO_PRAZO, "Fundação").annotation is None
        assert result.overall_summary.total_annotated == 0

    def test_write_key_equals_change_key(self):
        result = _result()
        pair = result.month_pairs[0]
        slip = _change(result, ChangeType.DESVIO_PRAZO, "Fundação")
        written = ChangeKey.build(PROJECT, JAN, FEB, "DESVIO_PRAZO", "  Fundação ", " Civil ")
        assert written == ChangeKey.for_change(PROJECT, pair, slip)

    def test_cleared_annotation_is_not_attached(self):
        ann = _annotation(
            ChangeType.DESVIO_PRAZO, "Fundação", description=None, justification=None,
        )
        result = merge_annotations(PROJECT, _result(), [ann])
        assert _change(result, ChangeType.DESVIO_PRAZO, "Fundação").annotation is None
        assert result.overall_summary.total_annotated == 0

    def test_override_only_annotation_is_attached(self):
        ann = _annotation(
            ChangeType.DESVIO_PRAZO, "Fundação",
            description=None, justification=None, override_delta_days=10,
        )
        slip = _change(merge_annotations(PROJECT, _result(), [ann]), ChangeType.DESVIO_PRAZO, "Fundação")
        assert slip.annotation is not None
        assert slip.delta_days == 10

    def test_blank_discipline_key_is_none(self):
        key = ChangeKey.build(PROJECT, JAN, FEB, ChangeType.TAREFA_CRIADA, "X", "   ")
        assert key.disciplina is None

    def test_unknown_change_type_rejected_by_key(self):
        with pytest.raises(ValueError):
            ChangeKey.build(PROJECT, JAN, FEB, "ATRASO", "X", None)


class TestOverrides:
    def test_delta_override(self):
        ann = _annotation(ChangeType.DESVIO_PRAZO, "Fundação", override_delta_days=10)
        result = merge_annotations(PROJECT, _result(), [ann])
        slip = _change(result, ChangeType.DESVIO_PRAZO, "Fundação")
        assert slip.delta_days == 10
        assert slip.original_delta_days == 14
        assert slip.is_overridden is True

    def test_end_date_override(self):
        ann = _annotation(
            ChangeType.DESVIO_PRAZO, "Fundação", override_end_date=date(2025, 3, 10),
        )
        slip = _change(merge_annotations(PROJECT, _result(), [ann]), ChangeType.DESVIO_PRAZO, "Fundação")
        assert slip.curr_end_date == date(2025, 3, 10)
        assert slip.original_end_date == date(2025, 3, 15)
        assert slip.is_overridden is True
        assert slip.delta_days == 14

    def test_override_equal_to_computed_is_not_an_override(self):
        ann = _annotation(ChangeType.DESVIO_PRAZO, "Fundação", override_delta_days=14)
        slip = _change(merge_annotations(PROJECT, _result(), [ann]), ChangeType.DESVIO_PRAZO, "Fundação")
        assert slip.is_overridden is False
        assert slip.original_delta_days is None

    def test_override_ignored_on_other_types(self):
        ann = _annotation(ChangeType.TAREFA_CRIADA, "Alvenaria", override_delta_days=30)
        created = _change(merge_annotations(PROJECT, _result(), [ann]), ChangeType.TAREFA_CRIADA, "Alvenaria")
        assert created.annotation.override_delta_days == 30
        assert created.delta_days is None
        assert created.is_overridden is False


class TestIdempotency:
    def _snapshot_of(self, result):
        return [
            (c.type, c.task_name, c.delta_days, c.original_delta_days, c.is_overridden,
             c.curr_end_date, c.annotation)
            for p in result.month_pairs for c in p.changes
        ]

    def test_merging_twice_gives_same_output(self):
        anns = [
            _annotation(ChangeType.DESVIO_PRAZO, "Fundação", override_delta_days=7),
            _annotation(ChangeType.TAREFA_CRIADA, "Alvenaria"),
        ]
        once = merge_annotations(PROJECT, _result(), anns)
        first = self._snapshot_of(once)
        first_summary = once.overall_summary

        twice = merge_annotations(PROJECT, once, anns)
        assert self._snapshot_of(twice) == first
        assert twice.overall_summary == first_summary

    def test_remerge_without_annotations_restores_computed_values(self):
        ann = _annotation(ChangeType.DESVIO_PRAZO, "Fundação", override_delta_days=7,
                          override_end_date=date(2025, 3, 8))
        result = merge_annotations(PROJECT, _result(), [ann])
        result = merge_annotations(PROJECT, result, [])
        slip = _change(result, ChangeType.DESVIO_PRAZO, "Fundação")
        assert slip.delta_days == 14
        assert slip.curr_end_date == date(2025, 3, 15)
        assert slip.is_overridden is False
        assert slip.original_delta_days is None
        assert slip.annotation is None
        assert result.overall_summary.total_annotated == 0
