"""Outcomes of the tasks executed during a run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .context import Context
    from .task import Task


class ResultStatus(Enum):
    """How a single task ended."""

    PASSED = "passed"
    FAILED = "failed"
    NONBLOCKING_FAILED = "nonblocking_failed"


@dataclass(frozen=True, slots=True)
class TaskResult:
    """The outcome of running one task against a context."""

    status: ResultStatus
    task: Task
    context: Context
    message: str | None = None

    @property
    def is_passed(self) -> bool:
        """Return True if the task passed."""
        return self.status is ResultStatus.PASSED

    @property
    def is_blocking(self) -> bool:
        """Return True if this outcome fails the whole run."""
        return self.status is ResultStatus.FAILED


class TaskResultCollection:
    """Task results in execution order.

    Results can only be added until the collection is frozen, which the runner
    does before handing it back to the caller.
    """

    def __init__(self) -> None:
        self._results: list[TaskResult] = []
        self._frozen = False

    def add(self, result: TaskResult) -> None:
        """Append a result."""
        if self._frozen:
            raise RuntimeError("cannot add results to a finished run")
        self._results.append(result)

    def freeze(self) -> TaskResultCollection:
        """Prevent further results being added."""
        self._frozen = True
        return self

    def is_passed(self) -> bool:
        """Return True unless a blocking failure was recorded."""
        return not any(result.is_blocking for result in self._results)

    def filter_by_status(self, *statuses: ResultStatus) -> list[TaskResult]:
        """Results with any of the given statuses, in execution order."""
        return [result for result in self._results if result.status in statuses]

    def messages(self) -> list[str]:
        """Failure messages of all failed results."""
        return [result.message for result in self._results if result.message]

    def __iter__(self) -> Iterator[TaskResult]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __getitem__(self, index: int) -> TaskResult:
        return self._results[index]
