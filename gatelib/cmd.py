"""Wrappers of `subprocess` for running check commands."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

log = logging.getLogger("cmd")

FILES_PLACEHOLDER = "{files}"


@dataclass(frozen=True, slots=True)
class Result:
    """Information about a *completed* process."""

    cmd: Command
    returncode: int
    duration: float
    output: str

    @property
    def success(self) -> bool:
        """Return True if the process was successful."""
        return self.returncode == 0


@dataclass(frozen=True, slots=True)
class Command:
    """A command to be run as part of a check."""

    _argv: list[str] | str  # str for shell commands
    shell: bool = False

    @classmethod
    def from_str(cls, command: str, *, shell: bool = False) -> Command:
        """Split a command string to construct a `Command`."""
        argv = command if shell else shlex.split(command)
        return cls(_argv=argv, shell=shell)

    @property
    def name(self) -> str:
        """The executable name, used for logging."""
        argv = shlex.split(self._argv) if isinstance(self._argv, str) else self._argv
        return argv[0]

    @property
    def uses_files(self) -> bool:
        """Return True if the command takes the `{files}` placeholder."""
        return FILES_PLACEHOLDER in self._argv  # substring or argv token

    def with_files(self, files: Sequence[str]) -> Command:
        """Expand the `{files}` placeholder into the given file paths.

        In argv form the placeholder token is replaced by one argument per file,
        in shell form by a quoted, space separated list.
        """
        if not self.uses_files:
            return self
        if isinstance(self._argv, str):
            return Command(
                self._argv.replace(FILES_PLACEHOLDER, shlex.join(files)), shell=True
            )
        argv: list[str] = []
        for arg in self._argv:
            if arg == FILES_PLACEHOLDER:
                argv.extend(files)
            else:
                argv.append(arg)
        return Command(argv, shell=self.shell)

    @property
    def command(self) -> list[str]:
        """The constructed command to run."""
        if self.shell:
            assert isinstance(self._argv, str)
            return ["uv", "run", "bash", "-c", self._argv]
        assert isinstance(self._argv, list)
        return ["uv", "run", *self._argv]

    def run(self, *, cwd: Path | None = None) -> Result:
        """Run the command using `uv`, capturing combined output."""
        command = self.command
        log.debug("Running command: %s", shlex.join(command))
        start = time.monotonic()
        process = subprocess.run(
            command,
            check=False,  # returncode is checked manually
            text=True,
            stderr=subprocess.STDOUT,
            stdout=subprocess.PIPE,
            cwd=cwd,
            # env is a copy but without the `VIRTUAL_ENV` variable.
            env=os.environ.copy() | {"VIRTUAL_ENV": ""},
        )
        duration = time.monotonic() - start
        return Result(self, process.returncode, duration, process.stdout)
