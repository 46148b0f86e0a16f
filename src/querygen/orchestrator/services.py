"""Dispatch of generation jobs and the batch/watch run lifecycle."""

from __future__ import annotations

import logging
import os
import threading
import traceback
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future
from functools import partial
from pathlib import Path

from querygen.config import TransformRule
from querygen.orchestrator.models import DispatchSummary, Job, WorkResult
from querygen.orchestrator.pool import PoolTerminatedError, WorkerPool
from querygen.orchestrator.scanner import (
    TransformWatcher,
    resolve_transform_files,
    select_file_override,
)

logger = logging.getLogger(__name__)

FILE_OVERRIDE_NOT_FOUND = "File override specified, but file was not found in provided transforms"
POOL_BROKEN_MESSAGE = "Worker pool is no longer usable. Exiting."


class GenerationService:
    """Feeds jobs to the worker pool and enforces the failure policy.

    The service is the only owner of the pool. ``dispatch`` may be called from
    the main thread (batch) or from observer threads (watch); settlement
    callbacks run on executor threads. All of them meet on one condition
    variable guarding the pending-job count and the exit request.
    """

    def __init__(
        self,
        *,
        pool: WorkerPool,
        fail_on_error: bool,
        on_progress: Callable[[str], None] | None = None,
        cwd: Path | None = None,
    ) -> None:
        self._pool = pool
        self._fail_on_error = fail_on_error
        self._on_progress = on_progress or (lambda _msg: None)
        self._cwd = cwd or Path.cwd()
        self._cond = threading.Condition()
        self._pending = 0
        self._exit_code: int | None = None
        self._shut_down = False
        self._watching = False
        self.work_queue: list[Future[WorkResult]] = []
        self.summary = DispatchSummary()

    @property
    def exit_requested(self) -> bool:
        with self._cond:
            return self._exit_code is not None

    def dispatch(self, rule: TransformRule, files: Iterable[Path]) -> list[Future[WorkResult]]:
        """Submit one job per file in the given order; never blocks on results."""

        futures: list[Future[WorkResult]] = []
        for path in files:
            with self._cond:
                if self._exit_code is not None:
                    logger.debug("Exit requested; not dispatching %s", path)
                    break
                self._pending += 1
                self.summary.dispatched += 1
            absolute = Path(os.path.abspath(self._cwd / path))
            file_name = self._display_name(absolute)
            self._on_progress(f"Processing {file_name}")
            job = Job(path=absolute, file_name=file_name, transform=rule)
            future = self._pool.submit(job)
            with self._cond:
                self.work_queue.append(future)
            future.add_done_callback(partial(self._on_settled, job))
            futures.append(future)
        return futures

    def request_exit(self, code: int, reason: str | None = None) -> None:
        """Ask the waiting control flow to stop; the first request decides the code."""

        with self._cond:
            if self._exit_code is not None:
                return
            self._exit_code = code
            self._cond.notify_all()
        if reason:
            self._on_progress(reason)

    def drain_and_exit(self) -> int:
        """Wait for every dispatched job (or an exit request), then tear the pool down."""

        with self._cond:
            self._cond.wait_for(lambda: self._pending == 0 or self._exit_code is not None)
        self.shutdown()
        with self._cond:
            code = 0 if self._exit_code is None else self._exit_code
        summary = self.summary
        logger.debug(
            "Run finished: dispatched=%d succeeded=%d skipped=%d failed=%d terminated=%d",
            summary.dispatched,
            summary.succeeded,
            summary.skipped,
            summary.failed,
            summary.terminated,
        )
        return code

    def wait_for_exit(self) -> int:
        """Block until an exit is requested; jobs keep settling in the background."""

        with self._cond:
            self._cond.wait_for(lambda: self._exit_code is not None)
            return self._exit_code

    def shutdown(self) -> None:
        with self._cond:
            if self._shut_down:
                return
            self._shut_down = True
        self._pool.destroy()

    def run_batch(
        self,
        transforms: Sequence[TransformRule],
        src_dir: Path,
        file_override: Path | None = None,
    ) -> int:
        """Process every matching file once and return the exit status."""

        override_used = False
        for rule in transforms:
            files = resolve_transform_files(src_dir, rule)
            if file_override is not None:
                files = select_file_override(files, file_override)
                override_used = override_used or bool(files)
            logger.debug("Found query files for %s: %s", rule.include, [str(f) for f in files])
            self.dispatch(rule, files)
        if file_override is not None and not override_used:
            self._on_progress(FILE_OVERRIDE_NOT_FOUND)
        return self.drain_and_exit()

    def run_watch(self, transforms: Sequence[TransformRule], src_dir: Path) -> int:
        """Dispatch on every file event until an exit is requested."""

        watcher = TransformWatcher(
            src_dir=src_dir,
            transforms=transforms,
            on_change=lambda rule, path: self.dispatch(rule, [path]),
        )
        return self.watch(watcher)

    def watch(self, watcher: TransformWatcher) -> int:
        """Run until an exit is requested. A broken pool ends the run with status 1."""

        with self._cond:
            self._watching = True
        watcher.start()
        try:
            code = self.wait_for_exit()
        finally:
            watcher.stop()
            self.shutdown()
        return code

    def _on_settled(self, job: Job, future: Future[WorkResult]) -> None:
        try:
            error = future.exception()
            if isinstance(error, PoolTerminatedError):
                self._report_terminated(job, error)
            elif error is not None:
                self._report_failure(job, error)
            else:
                self._report_result(job, future.result())
        finally:
            with self._cond:
                self._pending -= 1
                self._cond.notify_all()

    def _report_result(self, job: Job, result: WorkResult) -> None:
        if result.skipped:
            self._count("skipped")
            self._on_progress(f"Skipped {job.file_name}: no changes or no queries detected")
            return
        self._count("succeeded")
        output = self._display_name(Path(result.output_path)) if result.output_path else "<unknown>"
        self._on_progress(
            f"Saved {result.generated_count} query types from {job.file_name} to {output}",
        )

    def _report_terminated(self, job: Job, error: PoolTerminatedError) -> None:
        logger.debug("Job for %s ended with pool termination: %s", job.file_name, error)
        self._count("terminated")
        with self._cond:
            watching = self._watching
        if watching and self._pool.broken:
            self.request_exit(1, POOL_BROKEN_MESSAGE)

    def _report_failure(self, job: Job, error: BaseException) -> None:
        # Failures that settle after an exit request count as terminated.
        with self._cond:
            if self._exit_code is not None:
                self.summary.terminated += 1
                reported = False
            else:
                self.summary.failed += 1
                reported = True
                if self._fail_on_error:
                    self._exit_code = 1
                    self._cond.notify_all()
        if not reported:
            logger.debug("Ignoring failure of %s after exit request: %r", job.file_name, error)
            return
        if self._fail_on_error:
            self._pool.cancel_pending()
        trace = "".join(traceback.format_exception(error)).rstrip()
        self._on_progress(f"Error processing file: {trace or repr(error)}")

    def _count(self, field_name: str) -> None:
        with self._cond:
            setattr(self.summary, field_name, getattr(self.summary, field_name) + 1)

    def _display_name(self, path: Path) -> str:
        try:
            return os.path.relpath(path, self._cwd)
        except ValueError:
            return str(path)
