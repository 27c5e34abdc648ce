"""Lifecycle notifications emitted while a gate runs."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Callable

    from .context import Context
    from .task import CheckFailed, Task

log = logging.getLogger("events")

EventName = Literal[
    "runner.run",
    "runner.complete",
    "runner.failed",
    "task.run",
    "task.complete",
    "task.failed",
]

RUNNER_RUN: EventName = "runner.run"
RUNNER_COMPLETE: EventName = "runner.complete"
RUNNER_FAILED: EventName = "runner.failed"
TASK_RUN: EventName = "task.run"
TASK_COMPLETE: EventName = "task.complete"
TASK_FAILED: EventName = "task.failed"


@dataclass(frozen=True, slots=True)
class RunnerEvent:
    """The tasks selected for a run."""

    tasks: tuple[Task, ...]
    context: Context


@dataclass(frozen=True, slots=True)
class RunnerFailedEvent(RunnerEvent):
    """A run that recorded at least one blocking failure."""

    messages: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TaskEvent:
    """A single task within a run."""

    task: Task
    context: Context


@dataclass(frozen=True, slots=True)
class TaskFailedEvent(TaskEvent):
    """A task that reported a failed check."""

    error: CheckFailed

    @property
    def message(self) -> str:
        """The failure detail reported by the task."""
        return self.error.message


Event = RunnerEvent | TaskEvent


class Dispatcher:
    """Deliver events synchronously to listeners in subscription order."""

    def __init__(self) -> None:
        self._listeners: defaultdict[EventName, list[Callable[[Event], None]]] = (
            defaultdict(list)
        )

    def subscribe(self, name: EventName, listener: Callable[[Event], None]) -> None:
        """Call `listener` with the payload every time `name` is dispatched."""
        self._listeners[name].append(listener)

    def dispatch(self, name: EventName, event: Event) -> None:
        """Notify every listener of `name` before returning."""
        log.debug("Dispatching %s", name)
        for listener in self._listeners[name]:
            listener(event)
