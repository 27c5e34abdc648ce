"""Discover the files to check from git, and install the gate as a git hook."""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

log = logging.getLogger("git")

_HOOK_MARKER = "# installed by gate"
_HOOK_TEMPLATE = """\
#!/bin/sh
{marker}
exec {command} "$@"
"""


def _git(project: Path, *args: str) -> str:
    """Run a git command in the project, returning its output."""
    command = ["git", *args]
    log.debug("Running command: %s", shlex.join(command))
    process = subprocess.run(
        command,
        cwd=project,
        check=True,
        encoding="utf-8",
        capture_output=True,
    )
    return process.stdout


def _paths(project: Path, *args: str) -> list[str]:
    """Run a git command printing NUL separated paths (`-z`), unquoted."""
    return [path for path in _git(project, *args, "-z").split("\0") if path]


def changed_files(project: Path) -> list[str]:
    """Files staged for commit that still exist (added, copied, modified, renamed)."""
    return _paths(project, "diff", "--cached", "--name-only", "--diff-filter=ACMR")


def tracked_files(project: Path) -> list[str]:
    """All files tracked by git."""
    return _paths(project, "ls-files")


def hooks_dir(project: Path) -> Path:
    """Locate the hooks directory of the project's repository.

    Follows `core.hooksPath`, worktrees and submodules as git itself does.
    """
    try:
        path = _git(project, "rev-parse", "--git-path", "hooks").strip()
    except subprocess.CalledProcessError as e:
        raise ValueError(f"`{project}` is not inside a git repository") from e
    return project / path


def install_hook(project: Path, hook: str = "pre-commit") -> Path:
    """Write a git hook that runs the gate, returning the hook's path.

    A hook that was not written by the gate is kept alongside as `<hook>.local`.
    """
    directory = hooks_dir(project)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / hook

    if path.exists() and _HOOK_MARKER not in path.read_text():
        backup = path.with_name(f"{hook}.local")
        log.warning("Moving existing %s hook to %s", hook, backup)
        path.replace(backup)

    path.write_text(
        _HOOK_TEMPLATE.format(marker=_HOOK_MARKER, command=f"uv run gate {hook}")
    )
    path.chmod(0o755)
    log.info("Installed %s hook at %s", hook, path)
    return path
