from .schedule_snapshot import ScheduleSnapshot, SnapshotTask
from .change_annotation import ChangeAnnotation

__all__ = [
    "ScheduleSnapshot",
    "SnapshotTask",
    "ChangeAnnotation",
]
