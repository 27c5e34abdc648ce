"""The command line interface for the gate tool."""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich_argparse import RichHelpFormatter

from . import config, context, events, git, report
from .runner import TaskRunner
from .task import CommandTask

log = logging.getLogger("cli")

RichHelpFormatter.styles["argparse.args"] = "cyan"
RichHelpFormatter.styles["argparse.prog"] = "bold cyan"
RichHelpFormatter.styles["argparse.groups"] = "bold green"
RichHelpFormatter.styles["argparse.syntax"] = "magenta"


class LogFormatter(logging.Formatter):
    """Log formatter producing rich markup with a colourised level name."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record with a colourised level name."""
        match record.levelno:
            case logging.DEBUG:
                name = "[magenta]debug[/magenta]"
            case logging.INFO:
                name = "[green]info[/green]"
            case logging.WARNING:
                name = "[yellow]warning[/yellow]"
            case logging.ERROR:
                name = "[red]error[/red]"
            case logging.CRITICAL:
                name = "[bold red]critical[/bold red]"
            case _:
                name = "unknown"

        return f"{name}: {escape(super().format(record))}"


class ConsoleHandler(logging.Handler):
    """Write log records to stderr through a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        """Create a handler printing to `console` (stderr by default)."""
        super().__init__()
        self.console = console or Console(stderr=True, highlight=False)

    def emit(self, record: logging.LogRecord) -> None:
        """Print a formatted record."""
        try:
            self.console.print(self.format(record))
        except Exception:  # noqa: BLE001
            self.handleError(record)


def _get_parser() -> argparse.ArgumentParser:
    """Create a parser for the gate CLI."""
    parser = argparse.ArgumentParser(
        prog="gate",
        description="A quality gate for python projects, run by hand or as a git hook",
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        "mode",
        nargs="?",
        choices=context.CONTEXT_KINDS,
        default="run",
        help="Check all tracked files (run, default) or only staged files (pre-commit)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )

    parser.add_argument(
        "-p",
        "--project",
        type=Path,
        default=Path.cwd(),
        help="Python project directory (defaults to cwd)",
    )

    parser.add_argument(
        "-l",
        "--list",
        action="store_true",
        help="List configured tasks and exit (combines with --json)",
    )

    parser.add_argument(
        "-t",
        "--task",
        action="append",
        dest="tasks",
        metavar="NAME",
        help="Only run the named task (may be repeated)",
    )

    parser.add_argument(
        "--install-hook",
        action="store_true",
        help="Install the gate as the git pre-commit hook and exit",
    )

    stop_group = parser.add_mutually_exclusive_group()
    stop_group.add_argument(
        "-s",
        "--stop-on-failure",
        action="store_const",
        const=True,
        dest="cli_stop_on_failure",
        help="Stop at the first failed task",
    )
    stop_group.add_argument(
        "--keep-going",
        action="store_const",
        const=False,
        dest="cli_stop_on_failure",
        help="Run every task even after a failure",
    )

    # Output format selection - all options write to 'reporter' dest
    output_fmt = parser.add_mutually_exclusive_group()
    output_fmt.add_argument(
        "--cli",
        action="store_const",
        const="cli",
        dest="reporter",
        help="Print results to the console (default)",
    )
    output_fmt.add_argument(
        "--xml",
        action="store_const",
        const="xml",
        dest="reporter",
        help="Print results as Junit XML",
    )
    output_fmt.add_argument(
        "--json",
        action="store_const",
        const="json",
        dest="reporter",
        help="Print results as lines of JSON",
    )
    parser.set_defaults(reporter=None)  # i.e. let the config decide

    return parser


def _select_tasks(
    settings: config.Settings, names: list[str] | None
) -> list[CommandTask]:
    """Narrow the configured tasks to those named on the command line."""
    if not names:
        return settings.tasks
    by_name = {t.name: t for t in settings.tasks}
    unknown = [name for name in names if name not in by_name]
    if unknown:
        raise ValueError(
            f"[tool.gate] does not contain task(s): {', '.join(unknown)}, "
            f"available: {', '.join(by_name)}"
        )
    return [t for t in settings.tasks if t.name in names]


def run(argv: list[str]) -> None:
    """Main entrypoint of the gate tool."""
    parser = _get_parser()
    args = parser.parse_args(argv)
    if args.list and args.reporter == "xml":
        parser.error("argument -l/--list: not allowed with argument --xml")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if args.verbose else logging.INFO)
    handler = ConsoleHandler()
    handler.setFormatter(LogFormatter())
    root_logger.addHandler(handler)
    log.debug("Called with arguments: %s", argv)

    if args.install_hook:
        git.install_hook(args.project)
        return

    settings = config.load(args.project / "pyproject.toml")
    if args.cli_stop_on_failure is not None:
        settings = dataclasses.replace(
            settings, stop_on_failure=args.cli_stop_on_failure
        )
    reporter = report.get_reporter(args.reporter or settings.reporter)

    tasks = _select_tasks(settings, args.tasks)

    if args.list:
        lister = (
            report.JsonReporter() if reporter.name == "json" else report.CliReporter()
        )
        for t in tasks:
            meta = settings.task_metadata(t.name)
            lister.emit_task(
                t.name,
                priority=meta.priority,
                blocking=meta.blocking,
                contexts=t.contexts,
                cmds=t.commands,
            )
        return

    dispatcher = events.Dispatcher()
    reporter.subscribe(dispatcher)
    runner = TaskRunner(settings, dispatcher)
    for t in tasks:
        runner.add_task(t)

    if args.mode == "pre-commit":
        ctx = context.pre_commit_context(git.changed_files(args.project))
    else:
        ctx = context.run_context(git.tracked_files(args.project))

    reporter.emit_info(f"Project: {settings.project_name} ({ctx.kind})")
    results = runner.run(ctx)
    reporter.emit_summary(results)

    if not results.is_passed():
        sys.exit(1)


def main() -> None:
    """Console script entrypoint."""
    run(sys.argv[1:])
