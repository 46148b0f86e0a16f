"""Domain models for job dispatch and results."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from querygen.config import TransformRule


@dataclass(slots=True, frozen=True)
class Job:
    """One file to process under one transform rule.

    ``path`` is absolute so a job means the same file in any worker context;
    ``file_name`` is the cwd-relative name used in progress output.
    """

    path: Path
    file_name: str
    transform: TransformRule


@dataclass(slots=True, frozen=True)
class WorkResult:
    """Outcome of a job that ran to completion."""

    skipped: bool
    generated_count: int = 0
    output_path: str | None = None


@dataclass(slots=True)
class DispatchSummary:
    """Aggregate counters for one run."""

    dispatched: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    terminated: int = 0

    @property
    def settled(self) -> int:
        return self.succeeded + self.skipped + self.failed + self.terminated
