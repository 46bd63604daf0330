from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from profman.domain.diagnostics import Diagnostic, Severity
from profman.domain.json_types import JsonDict

T = TypeVar("T")

EXIT_OK = 0
EXIT_INVALID = 2
EXIT_FAILED = 3


def _no_diagnostics() -> list[Diagnostic]:
    return []


def _no_artifacts() -> list[JsonDict]:
    return []


@dataclass
class Result(Generic[T]):
    """Outcome of one profile operation.

    ``value`` is only set when the operation completed. Errors caused by bad
    input or an unreadable manifest exit with ``EXIT_INVALID``; errors raised
    while resolving, building, merging or publishing exit with ``EXIT_FAILED``.
    """

    value: T | None = None
    diagnostics: list[Diagnostic] = field(default_factory=_no_diagnostics)
    artifacts: list[JsonDict] = field(default_factory=_no_artifacts)

    @classmethod
    def failure(cls, *diagnostics: Diagnostic) -> Result[T]:
        return cls(diagnostics=list(diagnostics))

    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors())

    @property
    def exit_code(self) -> int:
        errors = self.errors()
        if not errors:
            return EXIT_OK
        if any(d.is_execution for d in errors):
            return EXIT_FAILED
        return EXIT_INVALID
