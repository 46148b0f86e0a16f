"""Runner interface for per-file generation jobs."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from querygen.config import Settings
from querygen.orchestrator.models import Job, WorkResult


class JobRunner(Protocol):
    """Protocol implemented by per-file runners."""

    def run(self, job: Job) -> WorkResult:
        """Process one file and report what was generated."""


RunnerFactory = Callable[[Settings], JobRunner]
