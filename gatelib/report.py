"""Report the progress and results of a gate run."""

from __future__ import annotations

import json
import logging
import re
import shlex
import textwrap
import time
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Literal, get_args

from rich.console import Console
from rich.markup import escape

from . import events
from .result import ResultStatus

if TYPE_CHECKING:
    from . import cmd
    from .result import TaskResult, TaskResultCollection

log = logging.getLogger("report")
ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


_SUITENAME = "gate"
_HEAD_PFX = "      "

ReporterName = Literal["cli", "json", "xml"]
REPORTER_NAMES: tuple[ReporterName, ...] = get_args(ReporterName)


class Reporter:
    """A reporter for the lifecycle events of a run.

    The base reporter prints nothing for each emission method.
    Subclasses override methods to report each situation.
    """

    name: ReporterName

    def __init__(self) -> None:
        """Initialise task timings."""
        self._start_time: float | None = None
        self._task_start: dict[str, float] = {}
        self._durations: dict[str, float] = {}

    def subscribe(self, dispatcher: events.Dispatcher) -> None:
        """Listen to every lifecycle event of the dispatcher."""
        dispatcher.subscribe(events.RUNNER_RUN, self._on_runner_run)
        dispatcher.subscribe(events.TASK_RUN, self._on_task_run)
        dispatcher.subscribe(events.TASK_COMPLETE, self._on_task_end)
        dispatcher.subscribe(events.TASK_FAILED, self._on_task_end)
        dispatcher.subscribe(events.TASK_COMPLETE, self.on_task_complete)
        dispatcher.subscribe(events.TASK_FAILED, self.on_task_failed)
        dispatcher.subscribe(events.RUNNER_COMPLETE, self.on_runner_complete)
        dispatcher.subscribe(events.RUNNER_FAILED, self.on_runner_failed)

    def _on_runner_run(self, event: events.RunnerEvent) -> None:
        self._start_time = time.monotonic()
        self.on_runner_run(event)

    def _on_task_run(self, event: events.TaskEvent) -> None:
        self._task_start[event.task.name] = time.monotonic()
        self.on_task_run(event)

    def _on_task_end(self, event: events.TaskEvent) -> None:
        start = self._task_start.pop(event.task.name, None)
        if start is not None:
            self._durations[event.task.name] = time.monotonic() - start

    def duration(self, name: str | None = None) -> float:
        """Seconds taken by a finished task, or by the whole run so far."""
        if name is not None:
            return self._durations.get(name, 0.0)
        if self._start_time is None:
            return 0.0
        return time.monotonic() - self._start_time

    def emit_task(
        self,
        name: str,
        *,
        priority: int,
        blocking: bool,
        contexts: tuple[str, ...],
        cmds: list[cmd.Command],
    ) -> None:
        """List a task."""

    def emit_info(self, msg: str) -> None:
        """Print a message (for an interactive reader)."""

    def on_runner_run(self, event: events.RunnerEvent) -> None:
        """What is printed once the tasks for the run are known."""

    def on_task_run(self, event: events.TaskEvent) -> None:
        """What is printed before a task begins."""

    def on_task_complete(self, event: events.TaskEvent) -> None:
        """What is printed after a task passes."""

    def on_task_failed(self, event: events.TaskFailedEvent) -> None:
        """What is printed after a task fails its check."""

    def on_runner_complete(self, event: events.RunnerEvent) -> None:
        """What is printed when the run passed."""

    def on_runner_failed(self, event: events.RunnerFailedEvent) -> None:
        """What is printed when the run has blocking failures."""

    def emit_summary(self, results: TaskResultCollection) -> None:
        """What is printed after the run has returned its results."""


class CliReporter(Reporter):
    """A reporter for reporting the results of a run to the console."""

    name: ReporterName = "cli"

    icon_wait = "[yellow]o[/yellow]"
    icon_pass = "[green]+[/green]"
    icon_fail = "[red]x[/red]"
    icon_warn = "[yellow]![/yellow]"

    def __init__(self, console: Console | None = None) -> None:
        """Initialise the interactive CLI reporter."""
        super().__init__()
        self.console = console or Console(highlight=False)

    def emit_task(
        self,
        name: str,
        *,
        priority: int,
        blocking: bool,
        contexts: tuple[str, ...],
        cmds: list[cmd.Command],
    ) -> None:
        """List a task."""
        suffix = f" (priority {priority}"
        if not blocking:
            suffix += ", non-blocking"
        suffix += f") -> {', '.join(contexts)}"

        self.console.print(f"[bold green]{escape(name)}[/bold green][cyan]{suffix}[/cyan]")
        for c in cmds:
            self.console.print(f"  [bright_black]{escape(shlex.join(c.command))}[/]")

    def emit_info(self, msg: str) -> None:
        """Print to console."""
        self.console.print(escape(msg))

    def on_runner_run(self, event: events.RunnerEvent) -> None:
        """Announce how many checks will run."""
        count = len(event.tasks)
        self.console.print(
            f"Running {count} check{_plural(count)} ({event.context.kind}, "
            f"{len(event.context.files)} file{_plural(len(event.context.files))})"
        )

    def on_task_run(self, event: events.TaskEvent) -> None:
        """Emit the start of a task."""
        self.console.print(f"  {self.icon_wait} {escape(event.task.name)}")

    def on_task_complete(self, event: events.TaskEvent) -> None:
        """Emit a passed task."""
        self._emit_end(self.icon_pass, event.task.name)

    def on_task_failed(self, event: events.TaskFailedEvent) -> None:
        """Emit a failed task."""
        self._emit_end(self.icon_fail, event.task.name)

    def on_runner_complete(self, event: events.RunnerEvent) -> None:
        """Emit the verdict of a passing run."""
        self.console.print(
            f"[bold green]Gate passed[/bold green] ({event.context.kind})"
        )

    def on_runner_failed(self, event: events.RunnerFailedEvent) -> None:
        """Emit the verdict of a failing run with how many checks reported failures."""
        count = len(event.messages)
        self.console.print(
            f"[bold red]Gate failed[/bold red] ({event.context.kind}, "
            f"{count} failure{_plural(count)} reported)"
        )

    def _emit_end(self, icon: str, name: str) -> None:
        self.console.print(
            f"  {icon} {escape(name):<20} [cyan]({self.duration(name):.2f}s)[/cyan]"
        )

    def emit_summary(self, results: TaskResultCollection) -> None:
        """Print the summary line explaining what the net result was."""
        passed = results.filter_by_status(ResultStatus.PASSED)
        failures = results.filter_by_status(ResultStatus.FAILED)
        warnings = results.filter_by_status(ResultStatus.NONBLOCKING_FAILED)

        msg = (
            f"Ran {len(results)} check{_plural(len(results))} in "
            f"{self.duration():>2.2f} secs, "
            f"{len(passed)} Passed, {len(failures)} Failed, "
            f"{len(warnings)} Non-blocking"
        )
        colour = "red" if failures else "yellow" if warnings else "green"
        self.console.print(f"[{colour}]{msg}[/{colour}]")

        if failures:
            self.console.print("\nFailures:\n---------")
            self._emit_messages(self.icon_fail, failures)
        if warnings:
            self.console.print("\nNon-blocking failures:\n----------------------")
            self._emit_messages(self.icon_warn, warnings)

    def _emit_messages(self, icon: str, results: list[TaskResult]) -> None:
        for result in results:
            self.console.print(f"  {icon} {escape(result.task.name)}")
            self.console.print(
                textwrap.indent(result.message or "", _HEAD_PFX), markup=False
            )


class JsonReporter(Reporter):
    """A reporter for reporting the results of a run in lines of JSON."""

    name: ReporterName = "json"

    def emit_task(
        self,
        name: str,
        *,
        priority: int,
        blocking: bool,
        contexts: tuple[str, ...],
        cmds: list[cmd.Command],
    ) -> None:
        """List a task."""
        print(
            json.dumps(
                {
                    "task": name,
                    "priority": priority,
                    "blocking": blocking,
                    "contexts": list(contexts),
                    "commands": [shlex.join(c.command) for c in cmds],
                }
            )
        )

    def emit_summary(self, results: TaskResultCollection) -> None:
        """Emit a line per task result, in execution order."""
        for result in results:
            print(
                json.dumps(
                    {
                        "name": result.task.name,
                        "status": result.status.value,
                        "duration": self.duration(result.task.name),
                        "output": ansi_escape.sub("", result.message or ""),
                        "success": result.is_passed,
                    }
                )
            )


class XmlReporter(Reporter):
    """A reporter for reporting the results of a run as Junit XML."""

    name: ReporterName = "xml"

    def emit_summary(self, results: TaskResultCollection) -> None:
        """Print Junit XML summary."""
        print(self._create_xml(results))

    def _create_xml(self, results: TaskResultCollection) -> str:
        """Create a string representing the results as Junit XML.

        Non-blocking failures are reported as skipped test cases.
        """
        failures = len(results.filter_by_status(ResultStatus.FAILED))
        skipped = len(results.filter_by_status(ResultStatus.NONBLOCKING_FAILED))
        duration = sum(self.duration(result.task.name) for result in results)
        counts = {
            "tests": str(len(results)),
            "failures": str(failures),
            "errors": "0",
            "skipped": str(skipped),
            "time": f"{duration:.3f}",
        }

        root = ET.Element("testsuites", counts)
        suite = ET.SubElement(root, "testsuite", {"name": _SUITENAME, **counts})
        for result in results:
            suite.append(self._result_xml(result))

        ET.indent(root)
        return ET.tostring(root, encoding="unicode", xml_declaration=True)

    def _result_xml(self, result: TaskResult) -> ET.Element:
        """Create a single Junit XML testcase."""
        node = ET.Element(
            "testcase",
            name=result.task.name,
            time=f"{self.duration(result.task.name):.3f}",
            classname=_SUITENAME,
        )
        message = ansi_escape.sub("", result.message or "")
        if result.status is ResultStatus.FAILED:
            ET.SubElement(node, "failure").text = message
        elif result.status is ResultStatus.NONBLOCKING_FAILED:
            ET.SubElement(node, "skipped", message="non-blocking failure").text = message
        return node


def get_reporter(name: ReporterName) -> Reporter:
    """Get a reporter instance for the given name."""
    match name:
        case "cli":
            return CliReporter()
        case "json":
            return JsonReporter()
        case "xml":
            return XmlReporter()
        case _:
            raise ValueError(f"Unknown reporter: {name}")


def _plural(size: int) -> str:
    """Return 's' if the size is not a single element."""
    if size == 1:
        return ""
    return "s"
