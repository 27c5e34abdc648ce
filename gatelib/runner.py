"""Orchestration of a gate run."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from . import events
from .result import ResultStatus, TaskResult, TaskResultCollection
from .task import CheckFailed, TaskRegistry, filter_by_context, sort_by_priority

if TYPE_CHECKING:
    from .config import MetadataProvider
    from .context import Context
    from .task import Task

log = logging.getLogger("runner")


class TaskRunner:
    """Run the registered tasks that apply to a context, highest priority first.

    A task fails its check by raising `CheckFailed`; whether that fails the run
    depends on the task being configured as blocking. Any other exception from
    a task aborts the run and is left for the caller to handle.
    """

    def __init__(
        self, settings: MetadataProvider, dispatcher: events.Dispatcher
    ) -> None:
        """Create a runner with an empty registry."""
        self._tasks = TaskRegistry()
        self._settings = settings
        self._dispatcher = dispatcher

    def add_task(self, task: Task) -> None:
        """Register a task, ignoring tasks that are already registered."""
        self._tasks.add(task)

    def get_tasks(self) -> tuple[Task, ...]:
        """The registered tasks in registration order."""
        return self._tasks.all()

    def run(self, context: Context) -> TaskResultCollection:
        """Run the applicable tasks and collect their results."""
        tasks = tuple(
            sort_by_priority(
                filter_by_context(self._tasks.all(), context), self._settings
            )
        )
        log.debug("Running %d task(s): %s", len(tasks), [t.name for t in tasks])

        messages: list[str] = []
        results = TaskResultCollection()

        self._dispatcher.dispatch(events.RUNNER_RUN, events.RunnerEvent(tasks, context))
        for task in tasks:
            self._dispatcher.dispatch(events.TASK_RUN, events.TaskEvent(task, context))
            try:
                task.run(context)
            except CheckFailed as e:
                status = (
                    ResultStatus.FAILED
                    if self._is_blocking(task)
                    else ResultStatus.NONBLOCKING_FAILED
                )
                log.debug("Task `%s` failed (%s)", task.name, status.value)
                results.add(TaskResult(status, task, context, e.message))
                self._dispatcher.dispatch(
                    events.TASK_FAILED, events.TaskFailedEvent(task, context, e)
                )
                messages.append(e.message)

                if self._settings.stop_on_failure:
                    log.debug("Stopping after `%s` failed", task.name)
                    break
            else:
                results.add(TaskResult(ResultStatus.PASSED, task, context))
                self._dispatcher.dispatch(
                    events.TASK_COMPLETE, events.TaskEvent(task, context)
                )

        results.freeze()
        if not results.is_passed():
            self._dispatcher.dispatch(
                events.RUNNER_FAILED,
                events.RunnerFailedEvent(tasks, context, tuple(messages)),
            )
            return results

        self._dispatcher.dispatch(
            events.RUNNER_COMPLETE, events.RunnerEvent(tasks, context)
        )
        return results

    def _is_blocking(self, task: Task) -> bool:
        return self._settings.task_metadata(task.name).blocking
