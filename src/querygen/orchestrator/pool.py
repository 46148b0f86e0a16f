"""Fixed-size worker pool with explicit teardown semantics."""

from __future__ import annotations

import logging
import multiprocessing
import os
import threading
from concurrent.futures import (
    BrokenExecutor,
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
)
from functools import partial

from querygen.config import Settings
from querygen.orchestrator.backend.base import RunnerFactory
from querygen.orchestrator.models import Job, WorkResult
from querygen.orchestrator.worker import (
    CancelFlag,
    PoolTerminatedError,
    init_worker_context,
    run_job,
)

logger = logging.getLogger(__name__)

EXECUTOR_KINDS = ("process", "thread")

__all__ = ["EXECUTOR_KINDS", "PoolTerminatedError", "WorkerPool", "default_pool_size"]


def default_pool_size() -> int:
    return os.cpu_count() or 1


class WorkerPool:
    """Owns a fixed number of execution contexts, each initialized once with settings.

    ``submit`` never raises for lifecycle reasons: a job submitted after
    ``destroy`` (or to a broken executor) gets a future that fails with
    :class:`PoolTerminatedError`. ``cancel_pending`` makes every job that has not
    started yet settle with :class:`PoolTerminatedError`, including jobs a process
    executor already moved to its call queue. ``destroy`` does the same, lets
    running jobs finish and waits for every context to exit.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        runner_factory: RunnerFactory,
        max_workers: int | None = None,
        executor_kind: str = "process",
    ) -> None:
        if executor_kind not in EXECUTOR_KINDS:
            raise ValueError(f"Unsupported executor kind: {executor_kind!r}")
        size = max_workers if max_workers is not None else default_pool_size()
        if size < 1:
            raise ValueError(f"Pool size must be positive: {size!r}")
        self.size = size
        self.executor_kind = executor_kind
        self._lock = threading.Lock()
        self._destroyed = False
        self._broken_reported = False
        self._executor = self._create_executor(settings=settings, runner_factory=runner_factory)

    def _create_executor(self, *, settings: Settings, runner_factory: RunnerFactory) -> Executor:
        if self.executor_kind == "thread":
            self._cancel_flag: CancelFlag = threading.Event()
            return ThreadPoolExecutor(
                max_workers=self.size,
                thread_name_prefix="querygen-worker",
                initializer=init_worker_context,
                initargs=(runner_factory, settings, self._cancel_flag),
            )
        mp_context = multiprocessing.get_context()
        self._cancel_flag = mp_context.Event()
        return ProcessPoolExecutor(
            max_workers=self.size,
            mp_context=mp_context,
            initializer=init_worker_context,
            initargs=(runner_factory, settings, self._cancel_flag),
        )

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def broken(self) -> bool:
        """True once the executor became unusable outside of ``destroy``."""

        return self._broken_reported

    def submit(self, job: Job) -> Future[WorkResult]:
        """Queue a job; the returned future settles exactly once."""

        settled: Future[WorkResult] = Future()
        with self._lock:
            if self._destroyed:
                settled.set_exception(PoolTerminatedError("Worker pool is destroyed"))
                return settled
            try:
                inner = self._executor.submit(run_job, job)
            except RuntimeError as error:
                # Raised for a shut down or broken executor.
                self._report_broken(error)
                settled.set_exception(PoolTerminatedError(str(error)))
                return settled
        inner.add_done_callback(partial(self._relay, settled))
        return settled

    def destroy(self) -> None:
        """Cancel queued jobs, let running jobs finish and wait for every context."""

        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
        self.cancel_pending()
        logger.debug("Destroying worker pool (%d %s contexts)", self.size, self.executor_kind)
        self._executor.shutdown(wait=True, cancel_futures=True)

    def cancel_pending(self) -> None:
        """Jobs not started yet settle with PoolTerminatedError instead of running."""

        self._cancel_flag.set()

    def _relay(self, settled: Future[WorkResult], inner: Future[WorkResult]) -> None:
        if inner.cancelled():
            settled.set_exception(PoolTerminatedError("Job canceled by pool shutdown"))
            return
        error = inner.exception()
        if isinstance(error, BrokenExecutor):
            self._report_broken(error)
            settled.set_exception(PoolTerminatedError(str(error)))
        elif error is not None:
            settled.set_exception(error)
        else:
            settled.set_result(inner.result())

    def _report_broken(self, error: BaseException) -> None:
        if self._destroyed or self._broken_reported:
            return
        self._broken_reported = True
        logger.warning("Worker pool is no longer usable: %s", error)
