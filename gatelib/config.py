"""Loading of python project config for the gate."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, Protocol

from . import report
from .cmd import Command
from .context import CONTEXT_KINDS
from .task import CommandTask

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

log = logging.getLogger("config")


@dataclass(slots=True)
class Config:
    """Parsed pyproject.toml."""

    path: Path
    _config: dict[str, Any]

    _gate_cache: Config | None = None  # Cache of config starting at tool.gate

    @classmethod
    def load(cls, pyproject: Path) -> Config:
        """Load python project config from file."""
        if not pyproject.exists():
            raise ValueError(
                f"project directory `{pyproject.parent}` does not contain a "
                "`pyproject.toml`"
            )
        return cls(pyproject, tomllib.loads(pyproject.read_text()))

    def get(self, path: str) -> Any | None:  # noqa: ANN401
        """Get nested config item or None if it doesn't exist.

        Path looks like 'key1.key2.key3'.
        """
        item: Any = self._config
        key = "<root>"
        try:
            for key in path.split("."):
                item = item[key]
            log.debug("Found %s=%s in %s", path, item, self.path)
        except (KeyError, TypeError):
            log.debug(
                "Reading path '%s' in %s. Could not find key '%s'", path, self.path, key
            )
            item = None
        return item

    @property
    def gate(self) -> Config:
        """Get the config starting at tool.gate."""
        if self._gate_cache is None:
            gate_config = self.get("tool.gate")
            if gate_config is None:
                raise ValueError(f"[tool.gate] section not found in `{self.path}`")
            self._gate_cache = Config(self.path, gate_config)
        return self._gate_cache


@dataclass(frozen=True, slots=True)
class TaskMetadata:
    """Static facts about a task that the runner needs."""

    blocking: bool = True
    priority: int = 0


class MetadataProvider(Protocol):
    """Read-only lookup of per-task metadata and the run policy."""

    @property
    def stop_on_failure(self) -> bool: ...

    def task_metadata(self, name: str) -> TaskMetadata: ...


@dataclass(frozen=True, slots=True)
class Settings:
    """Everything configured under [tool.gate]."""

    tasks: list[CommandTask] = field(default_factory=list)
    metadata: dict[str, TaskMetadata] = field(default_factory=dict)
    stop_on_failure: bool = False
    reporter: report.ReporterName = "cli"
    project_name: str | None = None

    def task_metadata(self, name: str) -> TaskMetadata:
        """Get the metadata of a configured task."""
        try:
            return self.metadata[name]
        except KeyError:
            raise ValueError(f"[tool.gate] does not configure a `task.{name}`") from None


@dataclass(frozen=True, slots=True)
class Options:
    """Inline task options from the optional leading dict."""

    priority: int = 0
    blocking: bool = True
    shell: bool = False
    triggered_by: tuple[str, ...] = ()
    ignore_patterns: tuple[str, ...] = ()
    contexts: tuple[str, ...] = CONTEXT_KINDS

    @classmethod
    def from_dict(cls, name: str, raw: dict[str, Any]) -> Options:
        """Validate an options table, converting lists to tuples."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValueError(
                f"task `{name}` has unknown option(s): {', '.join(unknown)}"
            )
        for key in ("triggered_by", "ignore_patterns", "contexts"):
            if key in raw and not isinstance(raw[key], list):
                raise ValueError(f"task `{name}` {key} must be a list")
        for key in ("blocking", "shell"):
            if key in raw and not isinstance(raw[key], bool):
                raise ValueError(f"task `{name}` {key} must be a boolean")
        opts = {k: tuple(v) if isinstance(v, list) else v for k, v in raw.items()}
        options = cls(**opts)

        if not isinstance(options.priority, int) or isinstance(options.priority, bool):
            raise ValueError(f"task `{name}` priority must be an integer")
        bad = sorted(set(options.contexts) - set(CONTEXT_KINDS))
        if bad:
            raise ValueError(
                f"task `{name}` has unknown context(s): {', '.join(bad)}, "
                f"expected any of: {', '.join(CONTEXT_KINDS)}"
            )
        return options


class _IgnoreMissing(dict):
    """A subclass of dict for use in format_map() that ignores missing keys."""

    def __missing__(self, key: str) -> str:
        return f"{{{key}}}"


def _command_from_template(
    command: str, variables: dict[str, str], *, shell: bool = False
) -> Command:
    """Create a command from a 'foo {bar}' template.

    Unknown placeholders, such as `{files}`, are left for the task to fill in.
    """
    resolved = command.format_map(_IgnoreMissing(variables))
    return Command.from_str(resolved, shell=shell)


def _split_options(name: str, cfg_commands: list[Any]) -> tuple[Options, list[str]]:
    """Separate the optional leading options dict from command strings."""
    if cfg_commands and isinstance(cfg_commands[0], dict):
        return Options.from_dict(name, cfg_commands[0]), cfg_commands[1:]
    return Options(), cfg_commands


def _get_tasks(
    taskmap: dict[str, Any] | None, variables: dict[str, str], project: Path
) -> Iterator[tuple[CommandTask, TaskMetadata]]:
    """Get (task, metadata) pairs from the task config map."""
    if not taskmap:
        log.debug("no configured tasks found")
        return

    for name, opts_and_commands in taskmap.items():
        if not isinstance(opts_and_commands, list):
            raise ValueError(f"tool.gate.task.{name} must be a list of commands")
        opts, commands = _split_options(name, opts_and_commands)
        if not commands:
            raise ValueError(f"task `{name}` does not contain any commands")

        cmds = [
            _command_from_template(c, variables, shell=opts.shell) for c in commands
        ]
        task = CommandTask(
            name,
            cmds,
            contexts=opts.contexts,  # ty: ignore[invalid-argument-type]
            triggered_by=opts.triggered_by,
            ignore_patterns=opts.ignore_patterns,
            cwd=project,
        )
        yield task, TaskMetadata(blocking=opts.blocking, priority=opts.priority)


def load(pyproject: Path) -> Settings:
    """Load all configured tasks and the run policy."""
    config = Config.load(pyproject)

    variables: dict[str, str] = config.gate.get("variable") or {}
    err = "tool.gate.variable must be a table mapping variable name to value"
    assert isinstance(variables, dict), err
    log.debug("Variables: %s", variables)

    stop_on_failure = config.gate.get("stop_on_failure")
    if stop_on_failure is None:
        stop_on_failure = False
    if not isinstance(stop_on_failure, bool):
        raise ValueError("tool.gate.stop_on_failure must be a boolean")

    reporter = config.gate.get("reporter")
    if reporter is None:
        reporter = "cli"
    if reporter not in report.REPORTER_NAMES:
        raise ValueError(f"Unknown reporter: {reporter}")

    pairs = list(_get_tasks(config.gate.get("task"), variables, pyproject.parent))
    return Settings(
        tasks=[task for task, _ in pairs],
        metadata={task.name: meta for task, meta in pairs},
        stop_on_failure=stop_on_failure,
        reporter=reporter,
        project_name=config.get("project.name"),
    )
