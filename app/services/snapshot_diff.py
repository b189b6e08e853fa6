"""
Snapshot diff engine — monthly changelog of a project schedule.

Compares every pair of consecutive schedule snapshots of one project and
classifies what changed between them:

  DESVIO_PRAZO      planned end date moved (delta_days = to - from, in days)
  TAREFA_CRIADA     task present in the later snapshot only
  TAREFA_DELETADA   task present in the earlier snapshot only
  TAREFA_NAO_FEITA  task became "not done" at the later snapshot

Task identity is TaskKey(task_name, disciplina), normalized (trim, inner
whitespace collapsed, casefold). A renamed task shows up as one deletion
plus one creation.

"Not done" policy
-----------------
A task is not done at a snapshot when its status is a cancellation
("Cancelada", "Não será feita", "N/A", ...) or when it is not complete and
its planned end date is strictly before the snapshot date.
TAREFA_NAO_FEITA is emitted on a transition, once per pair: the status
moves into a cancellation (even for a task already overdue at `from`), or
the task moves into overdue without having been cancelled. DESVIO_PRAZO and TAREFA_NAO_FEITA are
independent and may both fire for the same task.

Malformed rows
--------------
Rows without a task name are left out of the pair. Rows whose planned end
date cannot be parsed keep their identity (created / deleted detection)
but are left out of every date-based comparison. Both are logged and
counted in MonthPair.malformed_entries; neither aborts the computation.

Pure functions, no I/O.

Public API
----------
diff_pair(from_snapshot, to_snapshot)   -> PairDiff
diff_all_snapshots(snapshots)           -> ChangelogResult
summarize(month_pairs)                  -> OverallSummary
score_disciplines(month_pairs)          -> list[DisciplineScore]
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ChangeType(str, enum.Enum):
    DESVIO_PRAZO = "DESVIO_PRAZO"
    TAREFA_CRIADA = "TAREFA_CRIADA"
    TAREFA_DELETADA = "TAREFA_DELETADA"
    TAREFA_NAO_FEITA = "TAREFA_NAO_FEITA"

    @property
    def label(self) -> str:
        return _CHANGE_TYPE_LABELS[self]


_CHANGE_TYPE_LABELS = {
    ChangeType.DESVIO_PRAZO: "Desvio de Prazo",
    ChangeType.TAREFA_CRIADA: "Tarefa Adicionada",
    ChangeType.TAREFA_DELETADA: "Tarefa Removida",
    ChangeType.TAREFA_NAO_FEITA: "Não Feita",
}


class TaskStatus(str, enum.Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    complete = "complete"
    cancelled = "cancelled"
    unknown = "unknown"


_STATUS_ALIASES: dict[str, TaskStatus] = {}
for _status, _aliases in {
    TaskStatus.not_started: (
        "não iniciada", "nao iniciada", "não iniciado", "nao iniciado",
        "not started", "a fazer", "a iniciar", "pendente", "to do", "todo",
    ),
    TaskStatus.in_progress: (
        "em andamento", "em progresso", "in progress", "iniciada", "iniciado",
        "em execução", "em execucao", "atrasada", "atrasado",
    ),
    TaskStatus.complete: (
        "concluída", "concluida", "concluído", "concluido", "complete",
        "completed", "done", "finalizada", "finalizado", "entregue", "100%",
    ),
    TaskStatus.cancelled: (
        "cancelada", "cancelado", "cancelled", "canceled",
        "não será feita", "nao sera feita", "descartada", "descartado",
        "suspensa", "suspenso", "n/a", "não aplicável", "nao aplicavel",
    ),
}.items():
    for _alias in _aliases:
        _STATUS_ALIASES[_alias] = _status


def _normalize(text: Optional[str]) -> str:
    if text is None:
        return ""
    return " ".join(str(text).split()).casefold()


def classify_status(raw: Optional[str]) -> TaskStatus:
    """Map a free-text status from the source schedule to TaskStatus."""
    return _STATUS_ALIASES.get(_normalize(raw), TaskStatus.unknown)


# ---------------------------------------------------------------------------
# Input types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskKey:
    """Identity of a task across snapshots. Both parts are normalized."""
    task_name: str
    disciplina: str  # "" when the task has no discipline

    @classmethod
    def of(cls, task_name: Optional[str], disciplina: Optional[str]) -> "TaskKey":
        return cls(_normalize(task_name), _normalize(disciplina))


@dataclass
class TaskEntry:
    task_name: Optional[str]
    disciplina: Optional[str] = None
    planned_end_date: Any = None   # raw value; see parse_end_date
    status: Optional[str] = None
    delay_days: Optional[int] = None
    fase_nome: Optional[str] = None
    categoria_atraso: Optional[str] = None
    motivo_atraso: Optional[str] = None
    observacao_otus: Optional[str] = None

    @property
    def key(self) -> TaskKey:
        return TaskKey.of(self.task_name, self.disciplina)

    @property
    def display_name(self) -> str:
        return (self.task_name or "").strip()

    @property
    def display_disciplina(self) -> Optional[str]:
        return (self.disciplina or "").strip() or None


@dataclass
class Snapshot:
    snapshot_date: date
    tasks: list[TaskEntry] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Result types (plain dataclasses — no ORM, no Pydantic)
# ---------------------------------------------------------------------------

@dataclass
class ChangeRecord:
    type: ChangeType
    task_name: str
    disciplina: Optional[str]
    fase_nome: Optional[str] = None
    delta_days: Optional[int] = None        # DESVIO_PRAZO only
    prev_end_date: Optional[date] = None
    curr_end_date: Optional[date] = None
    prev_status: Optional[str] = None
    curr_status: Optional[str] = None
    # Filled by annotation_merge
    is_overridden: bool = False
    original_delta_days: Optional[int] = None
    original_end_date: Optional[date] = None
    annotation: Any = None


@dataclass
class PairDiff:
    changes: list[ChangeRecord]
    malformed_entries: int


@dataclass
class PairSummary:
    total: int
    desvios: int
    criadas: int
    deletadas: int
    nao_feitas: int
    annotated: int


@dataclass
class MonthPair:
    from_snapshot: date
    to_snapshot: date
    from_label: str
    to_label: str
    changes: list[ChangeRecord]
    malformed_entries: int = 0

    def count(self, change_type: ChangeType) -> int:
        return sum(1 for c in self.changes if c.type == change_type)

    @property
    def annotated(self) -> int:
        return sum(1 for c in self.changes if c.annotation is not None)

    def summary(self) -> PairSummary:
        return PairSummary(
            total=len(self.changes),
            desvios=self.count(ChangeType.DESVIO_PRAZO),
            criadas=self.count(ChangeType.TAREFA_CRIADA),
            deletadas=self.count(ChangeType.TAREFA_DELETADA),
            nao_feitas=self.count(ChangeType.TAREFA_NAO_FEITA),
            annotated=self.annotated,
        )


@dataclass
class OverallSummary:
    total_changes: int = 0
    total_desvios: int = 0
    total_criadas: int = 0
    total_deletadas: int = 0
    total_nao_feitas: int = 0
    months_analyzed: int = 0
    total_annotated: int = 0


@dataclass
class DisciplineScore:
    disciplina: str
    total: int = 0
    desvios: int = 0
    criadas: int = 0
    deletadas: int = 0
    nao_feitas: int = 0
    total_desvio_dias: int = 0


@dataclass
class ChangelogResult:
    month_pairs: list[MonthPair]
    overall_summary: OverallSummary
    discipline_scores: list[DisciplineScore] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NO_DISCIPLINE = "Sem disciplina"

_PT_MONTHS = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun",
              "Jul", "Ago", "Set", "Out", "Nov", "Dez"]

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y")


def month_label(d: date) -> str:
    """2025-03-15 -> 'Mar/25'."""
    return f"{_PT_MONTHS[d.month - 1]}/{d.year % 100:02d}"


def parse_end_date(value: Any) -> Optional[date]:
    """
    Parse a planned end date as delivered by the source schedule.

    Returns None when there is no date. Raises ValueError when a value is
    present but cannot be read. Time components are truncated.
    """
    if value is None:
        return None
    if isinstance(value, dict):
        # BigQuery client wraps DATE / TIMESTAMP values as {"value": "..."}
        return parse_end_date(value.get("value"))
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"unsupported date value: {value!r}")

    text = value.strip()
    if not text:
        return None
    if len(text) > 10 and text[10] not in "T ":
        raise ValueError(f"unparsable date: {value!r}")
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unparsable date: {value!r}")


@dataclass
class _Row:
    entry: TaskEntry
    end_date: Optional[date]
    date_ok: bool


def _index(snapshot: Snapshot) -> tuple[dict[TaskKey, _Row], int]:
    """Index a snapshot by TaskKey. Returns (index, malformed row count)."""
    index: dict[TaskKey, _Row] = {}
    malformed = 0
    for entry in snapshot.tasks:
        if not entry.display_name:
            malformed += 1
            logger.warning(
                "Snapshot %s: task without name skipped (disciplina=%r)",
                snapshot.snapshot_date, entry.disciplina,
            )
            continue

        try:
            end_date, date_ok = parse_end_date(entry.planned_end_date), True
        except ValueError:
            end_date, date_ok = None, False
            malformed += 1
            logger.warning(
                "Snapshot %s: task %r has an unparsable planned end date %r",
                snapshot.snapshot_date, entry.display_name, entry.planned_end_date,
            )

        key = entry.key
        if key in index:
            logger.warning(
                "Snapshot %s: duplicate task %r / %r, keeping the last row",
                snapshot.snapshot_date, entry.display_name, entry.display_disciplina,
            )
        index[key] = _Row(entry=entry, end_date=end_date, date_ok=date_ok)
    return index, malformed


def _is_cancelled(row: _Row) -> bool:
    return classify_status(row.entry.status) is TaskStatus.cancelled


def _is_overdue(row: _Row, snapshot_date: date, use_dates: bool) -> bool:
    if classify_status(row.entry.status) in (TaskStatus.complete, TaskStatus.cancelled):
        return False
    if not use_dates or row.end_date is None:
        return False
    return row.end_date < snapshot_date


# ---------------------------------------------------------------------------
# Core — one pair of snapshots
# ---------------------------------------------------------------------------

def diff_pair(from_snapshot: Snapshot, to_snapshot: Snapshot) -> PairDiff:
    """Classify every difference between two consecutive snapshots."""
    prev_index, prev_malformed = _index(from_snapshot)
    curr_index, curr_malformed = _index(to_snapshot)
    changes: list[ChangeRecord] = []

    for key, row in curr_index.items():
        if key not in prev_index:
            changes.append(ChangeRecord(
                type=ChangeType.TAREFA_CRIADA,
                task_name=row.entry.display_name,
                disciplina=row.entry.display_disciplina,
                fase_nome=row.entry.fase_nome,
                curr_end_date=row.end_date,
                curr_status=row.entry.status,
            ))

    for key, row in prev_index.items():
        if key not in curr_index:
            changes.append(ChangeRecord(
                type=ChangeType.TAREFA_DELETADA,
                task_name=row.entry.display_name,
                disciplina=row.entry.display_disciplina,
                fase_nome=row.entry.fase_nome,
                prev_end_date=row.end_date,
                prev_status=row.entry.status,
            ))

    for key, prev in prev_index.items():
        curr = curr_index.get(key)
        if curr is None:
            continue

        use_dates = prev.date_ok and curr.date_ok
        common = dict(
            task_name=curr.entry.display_name,
            disciplina=curr.entry.display_disciplina,
            fase_nome=curr.entry.fase_nome,
            prev_end_date=prev.end_date,
            curr_end_date=curr.end_date,
            prev_status=prev.entry.status,
            curr_status=curr.entry.status,
        )

        if (
            use_dates
            and prev.end_date is not None
            and curr.end_date is not None
            and prev.end_date != curr.end_date
        ):
            changes.append(ChangeRecord(
                type=ChangeType.DESVIO_PRAZO,
                delta_days=(curr.end_date - prev.end_date).days,
                **common,
            ))

        # one record per pair, whichever half moved into "not done"
        became_cancelled = _is_cancelled(curr) and not _is_cancelled(prev)
        became_overdue = (
            _is_overdue(curr, to_snapshot.snapshot_date, use_dates)
            and not _is_overdue(prev, from_snapshot.snapshot_date, use_dates)
            and not _is_cancelled(prev)
        )
        if became_cancelled or became_overdue:
            changes.append(ChangeRecord(type=ChangeType.TAREFA_NAO_FEITA, **common))

    return PairDiff(changes=changes, malformed_entries=prev_malformed + curr_malformed)


# ---------------------------------------------------------------------------
# Public — whole project history
# ---------------------------------------------------------------------------

def diff_all_snapshots(snapshots: Iterable[Snapshot]) -> ChangelogResult:
    """
    Diff each adjacent pair of snapshots, oldest first.
    Fewer than two snapshots is the defined empty state, not an error.
    """
    ordered = sorted(snapshots, key=lambda s: s.snapshot_date)
    month_pairs: list[MonthPair] = []

    for prev, curr in zip(ordered, ordered[1:]):
        pair_diff = diff_pair(prev, curr)
        month_pairs.append(MonthPair(
            from_snapshot=prev.snapshot_date,
            to_snapshot=curr.snapshot_date,
            from_label=month_label(prev.snapshot_date),
            to_label=month_label(curr.snapshot_date),
            changes=pair_diff.changes,
            malformed_entries=pair_diff.malformed_entries,
        ))

    return ChangelogResult(
        month_pairs=month_pairs,
        overall_summary=summarize(month_pairs),
    )


def summarize(month_pairs: list[MonthPair]) -> OverallSummary:
    summaries = [p.summary() for p in month_pairs]
    return OverallSummary(
        total_changes=sum(s.total for s in summaries),
        total_desvios=sum(s.desvios for s in summaries),
        total_criadas=sum(s.criadas for s in summaries),
        total_deletadas=sum(s.deletadas for s in summaries),
        total_nao_feitas=sum(s.nao_feitas for s in summaries),
        months_analyzed=len(month_pairs),
        total_annotated=sum(s.annotated for s in summaries),
    )


def _sorted_scores(stats: dict[str, DisciplineScore]) -> list[DisciplineScore]:
    return sorted(stats.values(), key=lambda s: (-s.total, s.disciplina))


def score_disciplines(month_pairs: list[MonthPair]) -> list[DisciplineScore]:
    """Aggregate changes per discipline, most impacted first."""
    stats: dict[str, DisciplineScore] = {}
    for pair in month_pairs:
        for change in pair.changes:
            name = change.disciplina or NO_DISCIPLINE
            score = stats.setdefault(name, DisciplineScore(disciplina=name))
            score.total += 1
            if change.type == ChangeType.DESVIO_PRAZO:
                score.desvios += 1
                score.total_desvio_dias += abs(change.delta_days or 0)
            elif change.type == ChangeType.TAREFA_CRIADA:
                score.criadas += 1
            elif change.type == ChangeType.TAREFA_DELETADA:
                score.deletadas += 1
            elif change.type == ChangeType.TAREFA_NAO_FEITA:
                score.nao_feitas += 1
    return _sorted_scores(stats)


def combine_discipline_scores(
    score_lists: Iterable[list[DisciplineScore]],
) -> list[DisciplineScore]:
    """Sum per-project discipline scores into one cross-project ranking."""
    stats: dict[str, DisciplineScore] = {}
    for scores in score_lists:
        for s in scores:
            agg = stats.setdefault(s.disciplina, DisciplineScore(disciplina=s.disciplina))
            agg.total += s.total
            agg.desvios += s.desvios
            agg.criadas += s.criadas
            agg.deletadas += s.deletadas
            agg.nao_feitas += s.nao_feitas
            agg.total_desvio_dias += s.total_desvio_dias
    return _sorted_scores(stats)
