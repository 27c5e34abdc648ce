"""Test command construction and running."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING
from unittest.mock import patch

from gatelib.cmd import Command

if TYPE_CHECKING:
    from pathlib import Path


def test_from_str_splits_argv() -> None:
    """Commands are split into argv and run through uv."""
    c = Command.from_str("ruff check 'my dir'")

    assert c.name == "ruff"
    assert c.command == ["uv", "run", "ruff", "check", "my dir"]


def test_from_str_shell() -> None:
    """Shell commands are run with bash -c."""
    c = Command.from_str("pytest | tee out.txt", shell=True)

    assert c.name == "pytest"
    assert c.command == ["uv", "run", "bash", "-c", "pytest | tee out.txt"]


def test_with_files_without_placeholder_is_unchanged() -> None:
    """Commands without `{files}` ignore the file list."""
    c = Command(["pytest"])

    assert c.with_files(["a.py"]) is c
    assert not c.uses_files


def test_with_files_argv() -> None:
    """The `{files}` token expands to one argument per file."""
    c = Command(["ruff", "check", "{files}", "--fix"])

    assert c.with_files(["a b.py", "c.py"]).command == [
        "uv", "run", "ruff", "check", "a b.py", "c.py", "--fix",
    ]


def test_with_files_shell() -> None:
    """In shell form the files are quoted."""
    c = Command.from_str("ruff check {files} | head", shell=True)

    assert c.with_files(["a b.py"]).command[-1] == "ruff check 'a b.py' | head"


def test_run_captures_result(tmp_path: Path) -> None:
    """run() returns the exit code and combined output of the process."""
    completed = subprocess.CompletedProcess([], 3, stdout="boom\n")
    with patch.object(subprocess, "run", return_value=completed) as m:
        result = Command(["pytest"]).run(cwd=tmp_path)

    assert result.returncode == 3
    assert result.success is False
    assert result.output == "boom\n"
    args, kwargs = m.call_args
    assert args[0] == ["uv", "run", "pytest"]
    assert kwargs["cwd"] == tmp_path
    assert kwargs["env"]["VIRTUAL_ENV"] == ""
