"""The description of what a gate run is checking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, get_args

if TYPE_CHECKING:
    from collections.abc import Iterable

ContextKind = Literal["run", "pre-commit"]
CONTEXT_KINDS: tuple[ContextKind, ...] = get_args(ContextKind)


@dataclass(frozen=True, slots=True)
class Context:
    """An immutable set of files being checked and the mode they are checked in."""

    kind: ContextKind
    files: tuple[str, ...] = ()


def run_context(files: Iterable[str]) -> Context:
    """A full run over the given (usually all tracked) files."""
    return Context("run", tuple(files))


def pre_commit_context(files: Iterable[str]) -> Context:
    """A pre-commit run over the staged files."""
    return Context("pre-commit", tuple(files))
