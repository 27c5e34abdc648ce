"""Checks, their registry, and the selection of checks for a run."""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Protocol

from .context import CONTEXT_KINDS

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from .cmd import Command
    from .config import MetadataProvider
    from .context import Context, ContextKind

log = logging.getLogger("task")


class CheckFailed(Exception):  # noqa: N818
    """Raised by a task when the code under test does not meet its criteria.

    This is a verdict, not a fault. The runner records it; any other exception
    escaping a task aborts the whole run.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Task(Protocol):
    """A named check that can run against a context."""

    @property
    def name(self) -> str: ...

    def applies_to(self, context: Context) -> bool: ...

    def run(self, context: Context) -> None: ...


class TaskRegistry:
    """An insertion-ordered collection of tasks, unique by name."""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: dict[str, Task] = {}
        for task in tasks:
            self.add(task)

    def add(self, task: Task) -> None:
        """Register a task; adding a task that is already present does nothing."""
        if task.name in self._tasks:
            log.debug("Task `%s` already registered", task.name)
            return
        self._tasks[task.name] = task

    def all(self) -> tuple[Task, ...]:
        """Snapshot of the registered tasks in insertion order."""
        return tuple(self._tasks.values())

    def __contains__(self, task: object) -> bool:
        return getattr(task, "name", None) in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._tasks)


def filter_by_context(tasks: Iterable[Task], context: Context) -> list[Task]:
    """Keep the tasks that apply to the context, preserving their order."""
    selected = []
    for task in tasks:
        if task.applies_to(context):
            selected.append(task)
        else:
            log.debug("Skipping `%s` in %s context", task.name, context.kind)
    return selected


def sort_by_priority(tasks: Iterable[Task], metadata: MetadataProvider) -> list[Task]:
    """Order tasks by descending priority; equal priorities keep their order."""
    tasks = list(tasks)
    priorities = {t.name: metadata.task_metadata(t.name).priority for t in tasks}
    return sorted(tasks, key=lambda task: -priorities[task.name])


def _extension(path: str) -> str:
    return PurePosixPath(path).suffix.lstrip(".")


@dataclass(frozen=True, slots=True)
class CommandTask:
    """A check made of shell commands, failing when any command fails."""

    name: str
    commands: list[Command]
    contexts: tuple[ContextKind, ...] = CONTEXT_KINDS
    triggered_by: tuple[str, ...] = ()  # file extensions, empty means any
    ignore_patterns: tuple[str, ...] = ()
    cwd: Path | None = field(default=None, compare=False)

    def matching_files(self, context: Context) -> list[str]:
        """The context's files that this task is interested in."""
        extensions = {ext.lstrip(".") for ext in self.triggered_by}
        return [
            path
            for path in context.files
            if not any(fnmatch.fnmatch(path, pat) for pat in self.ignore_patterns)
            and (not extensions or _extension(path) in extensions)
        ]

    def applies_to(self, context: Context) -> bool:
        """Return True if enabled for this kind of run and has files to check.

        A task filtering files by extension, or passing them with `{files}`,
        needs at least one matching file; otherwise an empty `{files}` would
        check the whole project, ignored files included.
        """
        if context.kind not in self.contexts:
            return False
        if self.triggered_by or any(c.uses_files for c in self.commands):
            return bool(self.matching_files(context))
        return True

    def run(self, context: Context) -> None:
        """Run every command, raising `CheckFailed` if any of them failed."""
        files = self.matching_files(context)
        failures = []
        for command in self.commands:
            result = command.with_files(files).run(cwd=self.cwd)
            log.debug(
                "`%s` exited %d after %.2fs",
                result.cmd.name,
                result.returncode,
                result.duration,
            )
            if not result.success:
                failures.append(result)

        if failures:
            raise CheckFailed("\n".join(r.output.rstrip() for r in failures))
