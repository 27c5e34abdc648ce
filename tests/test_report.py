"""Test reporter classes."""

from __future__ import annotations

import json

import pytest

from gatelib import events, report
from gatelib.cmd import Command
from gatelib.context import run_context
from gatelib.result import ResultStatus, TaskResult, TaskResultCollection
from gatelib.task import CheckFailed, CommandTask

_CTX = run_context(["a.py"])


def _results(*entries: tuple[str, ResultStatus, str | None]) -> TaskResultCollection:
    """Create a TaskResultCollection for testing."""
    results = TaskResultCollection()
    for name, status, message in entries:
        results.add(TaskResult(status, CommandTask(name, []), _CTX, message))
    return results.freeze()


# --- get_reporter tests ---


@pytest.mark.parametrize(
    ("name", "cls"),
    [
        ("cli", report.CliReporter),
        ("json", report.JsonReporter),
        ("xml", report.XmlReporter),
    ],
)
def test_get_reporter(name: report.ReporterName, cls: type[report.Reporter]) -> None:
    """Get a reporter by name."""
    assert isinstance(report.get_reporter(name), cls)


def test_get_reporter_unknown_raises() -> None:
    """Unknown reporter name raises."""
    with pytest.raises(ValueError, match="Unknown reporter"):
        report.get_reporter(
            "invalid",  # ty: ignore[invalid-argument-type]
        )


# --- Subscription ---


def test_reporter_times_tasks() -> None:
    """Subscribed reporters record how long each task took."""
    dispatcher = events.Dispatcher()
    reporter = report.Reporter()
    reporter.subscribe(dispatcher)
    task = CommandTask("pytest", [])

    dispatcher.dispatch(events.RUNNER_RUN, events.RunnerEvent((task,), _CTX))
    dispatcher.dispatch(events.TASK_RUN, events.TaskEvent(task, _CTX))
    dispatcher.dispatch(events.TASK_COMPLETE, events.TaskEvent(task, _CTX))

    assert reporter.duration("pytest") >= 0.0
    assert "pytest" in reporter._durations  # noqa: SLF001
    assert reporter.duration() >= reporter.duration("pytest")


def test_cli_reporter_progress(capsys: pytest.CaptureFixture[str]) -> None:
    """The CLI reporter prints a line per started and finished task."""
    dispatcher = events.Dispatcher()
    report.CliReporter().subscribe(dispatcher)
    ok, bad = CommandTask("ruff", []), CommandTask("pytest", [])

    dispatcher.dispatch(events.RUNNER_RUN, events.RunnerEvent((ok, bad), _CTX))
    dispatcher.dispatch(events.TASK_RUN, events.TaskEvent(ok, _CTX))
    dispatcher.dispatch(events.TASK_COMPLETE, events.TaskEvent(ok, _CTX))
    dispatcher.dispatch(events.TASK_RUN, events.TaskEvent(bad, _CTX))
    dispatcher.dispatch(
        events.TASK_FAILED, events.TaskFailedEvent(bad, _CTX, CheckFailed("no"))
    )

    out = capsys.readouterr().out
    assert "Running 2 checks (run, 1 file)" in out
    assert "+ ruff" in out
    assert "x pytest" in out


# --- CLI reporter summary ---


def test_cli_reporter_summary(capsys: pytest.CaptureFixture[str]) -> None:
    """The summary counts each status and lists failure messages."""
    results = _results(
        ("ruff", ResultStatus.PASSED, None),
        ("pytest", ResultStatus.FAILED, "assert 1 == 2"),
        ("ty", ResultStatus.NONBLOCKING_FAILED, "unresolved import"),
    )

    report.CliReporter().emit_summary(results)

    out = capsys.readouterr().out
    assert "Ran 3 checks" in out
    assert "1 Passed, 1 Failed, 1 Non-blocking" in out
    assert "Failures:" in out
    assert "assert 1 == 2" in out
    assert "Non-blocking failures:" in out
    assert "unresolved import" in out


def test_cli_reporter_summary_passing(capsys: pytest.CaptureFixture[str]) -> None:
    """A passing run prints no failure sections."""
    report.CliReporter().emit_summary(_results(("ruff", ResultStatus.PASSED, None)))

    out = capsys.readouterr().out
    assert "Ran 1 check " in out
    assert "Failures:" not in out


def test_cli_reporter_emit_task(capsys: pytest.CaptureFixture[str]) -> None:
    """Listing a task shows its priority, blocking and commands."""
    report.CliReporter().emit_task(
        "ty",
        priority=10,
        blocking=False,
        contexts=("run",),
        cmds=[Command(["ty", "check"])],
    )

    out = capsys.readouterr().out
    assert "ty (priority 10, non-blocking) -> run" in out
    assert "uv run ty check" in out


# --- JSON reporter output ---


def test_json_reporter_emit_summary(capsys: pytest.CaptureFixture[str]) -> None:
    """JSON reporter emits a line of JSON per result."""
    results = _results(
        ("ruff", ResultStatus.PASSED, None),
        ("pytest", ResultStatus.FAILED, "\033[31mred\033[0m"),
    )

    report.JsonReporter().emit_summary(results)

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [line["name"] for line in lines] == ["ruff", "pytest"]
    assert lines[0]["success"] is True
    assert lines[1]["status"] == "failed"
    assert lines[1]["output"] == "red"
    assert "duration" in lines[0]


def test_json_reporter_emit_task(capsys: pytest.CaptureFixture[str]) -> None:
    """JSON reporter lists a task as a JSON object."""
    report.JsonReporter().emit_task(
        "lint",
        priority=1,
        blocking=True,
        contexts=("run", "pre-commit"),
        cmds=[Command(["ruff", "check"])],
    )

    data = json.loads(capsys.readouterr().out)
    assert data == {
        "task": "lint",
        "priority": 1,
        "blocking": True,
        "contexts": ["run", "pre-commit"],
        "commands": ["uv run ruff check"],
    }


# --- XML reporter output ---


def test_xml_reporter_emit_summary(capsys: pytest.CaptureFixture[str]) -> None:
    """XML reporter emits a Junit XML summary."""
    report.XmlReporter().emit_summary(_results(("pytest", ResultStatus.PASSED, None)))

    out = capsys.readouterr().out
    assert "<?xml version=" in out
    assert "<testsuites" in out
    assert "<testsuite" in out
    assert 'name="pytest"' in out


def test_xml_reporter_failures_and_skips(capsys: pytest.CaptureFixture[str]) -> None:
    """Blocking failures are failures, non-blocking failures are skipped."""
    results = _results(
        ("ruff", ResultStatus.FAILED, "error message"),
        ("ty", ResultStatus.NONBLOCKING_FAILED, "warning message"),
    )

    report.XmlReporter().emit_summary(results)

    out = capsys.readouterr().out
    assert "<failure>error message</failure>" in out
    assert "<skipped" in out
    assert "warning message" in out
    assert 'failures="1"' in out
    assert 'skipped="1"' in out


def test_cli_reporter_verdict(capsys: pytest.CaptureFixture[str]) -> None:
    """The CLI reporter prints the run verdict from the terminal runner event."""
    dispatcher = events.Dispatcher()
    report.CliReporter().subscribe(dispatcher)
    task = CommandTask("pytest", [])

    dispatcher.dispatch(events.RUNNER_COMPLETE, events.RunnerEvent((task,), _CTX))
    dispatcher.dispatch(
        events.RUNNER_FAILED,
        events.RunnerFailedEvent((task,), _CTX, ("assert 1 == 2", "E501")),
    )

    out = capsys.readouterr().out
    assert "Gate passed (run)" in out
    assert "Gate failed (run, 2 failures reported)" in out
