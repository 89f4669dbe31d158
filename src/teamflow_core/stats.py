"""Task status aggregation for the hierarchy views."""
from dataclasses import dataclass, fields
from typing import Iterable, Optional

from .models import TaskStatus

_STATUS_FIELDS = {
    TaskStatus.TODO.value: "todo",
    TaskStatus.IN_PROGRESS.value: "in_progress",
    TaskStatus.REVIEW.value: "review",
    TaskStatus.BLOCKED.value: "blocked",
    TaskStatus.DONE.value: "done",
}


@dataclass(frozen=True)
class TaskStats:
    """Fixed-shape task counters. Computed on read, never stored."""
    total: int = 0
    todo: int = 0
    in_progress: int = 0
    review: int = 0
    blocked: int = 0
    done: int = 0

    def __add__(self, other: "TaskStats") -> "TaskStats":
        if not isinstance(other, TaskStats):
            return NotImplemented
        return TaskStats(**{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)})

    def to_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


EMPTY_STATS = TaskStats()


def calculate_task_stats(statuses: Iterable[Optional[str]]) -> TaskStats:
    """
    Count tasks by status.

    ``total`` counts every task, including any with a status outside the
    five known ones.

    Args:
        statuses: Status value of each task

    Returns:
        Aggregated counters
    """
    counts = dict.fromkeys(_STATUS_FIELDS.values(), 0)
    total = 0
    for status in statuses:
        total += 1
        field_name = _STATUS_FIELDS.get(status)
        if field_name:
            counts[field_name] += 1
    return TaskStats(total=total, **counts)


def sum_task_stats(items: Iterable[TaskStats]) -> TaskStats:
    """Sum several stats blocks into one."""
    result = EMPTY_STATS
    for item in items:
        result = result + item
    return result


def progress_percent(stats: TaskStats) -> int:
    """
    Completion percentage, rounded half up.

    Integer arithmetic keeps .5 boundaries exact: 1 of 8 done gives 13.
    Returns 0 when there are no tasks.
    """
    if stats.total <= 0:
        return 0
    return (stats.done * 200 + stats.total) // (stats.total * 2)
