"""Per-context runtime executed inside pool workers.

Every worker context (a process, or a thread for the thread executor) builds its
runner once from the full settings snapshot and reuses it for every job it
receives. Contexts share nothing with each other or with the controller: jobs
and results cross the boundary by value. The only shared state is the pool's
cancel flag, which a context checks before starting each job.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from querygen.config import Settings
from querygen.orchestrator.backend.base import JobRunner, RunnerFactory
from querygen.orchestrator.models import Job, WorkResult

logger = logging.getLogger(__name__)

_context = threading.local()


class CancelFlag(Protocol):
    """``threading.Event`` or a ``multiprocessing`` event."""

    def is_set(self) -> bool: ...

    def set(self) -> None: ...


class PoolTerminatedError(RuntimeError):
    """Job never ran, or its context died, because the pool was torn down."""


class WorkerNotInitializedError(RuntimeError):
    """A job reached a context whose initializer never ran."""


def init_worker_context(
    runner_factory: RunnerFactory,
    settings: Settings,
    cancel_flag: CancelFlag | None = None,
) -> None:
    """Executor initializer: build this context's runner."""

    _context.runner = runner_factory(settings)
    _context.cancel_flag = cancel_flag
    logger.debug("Worker context %s initialized", threading.current_thread().name)


def current_runner() -> JobRunner:
    runner = getattr(_context, "runner", None)
    if runner is None:
        raise WorkerNotInitializedError("Worker context has no runner; initializer did not run.")
    return runner


def run_job(job: Job) -> WorkResult:
    """Entry point submitted to the executor for every job."""

    runner = current_runner()
    cancel_flag = getattr(_context, "cancel_flag", None)
    if cancel_flag is not None and cancel_flag.is_set():
        raise PoolTerminatedError(f"Pool is shutting down; {job.file_name} was not started")
    return runner.run(job)
