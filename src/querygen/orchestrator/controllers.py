"""Controller for the code generation CLI command."""

from __future__ import annotations

import logging
import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from querygen.config import Settings
from querygen.orchestrator.backend import CodegenBackend, RunnerFactory
from querygen.orchestrator.pool import WorkerPool
from querygen.orchestrator.scanner import ConfigFileWatcher
from querygen.orchestrator.services import GenerationService

logger = logging.getLogger(__name__)

CONFIG_CHANGED_MESSAGE = "Config file changed. Exiting."


@dataclass(slots=True)
class GenerateCommand:
    """CLI input for one generation run."""

    config_path: Path
    watch: bool = False
    file_override: Path | None = None
    connection_uri: str | None = None


class CodegenCliController:
    """Wires settings, worker pool, watchers and signals around one run."""

    def __init__(
        self,
        *,
        runner_factory: RunnerFactory = CodegenBackend,
        executor_kind: str = "process",
        watch_config: bool = True,
    ) -> None:
        self.runner_factory = runner_factory
        self.executor_kind = executor_kind
        self.watch_config = watch_config

    def generate(self, command: GenerateCommand, on_progress: Callable[[str], None]) -> int:
        """Run batch or watch mode and return the process exit status.

        Raises ``ConfigError`` before anything is dispatched when the
        configuration cannot be loaded.
        """

        if command.watch and command.file_override is not None:
            raise ValueError("File override is not compatible with watch mode.")

        settings = Settings.from_file(command.config_path, connection_uri=command.connection_uri)
        logger.debug("starting code generator")
        logger.debug(
            "database %s at %s:%d",
            settings.db.db_name,
            settings.db.host,
            settings.db.port,
        )

        pool = WorkerPool(
            settings=settings,
            runner_factory=self.runner_factory,
            max_workers=settings.max_workers,
            executor_kind=self.executor_kind,
        )
        on_progress(f"Using a pool of {pool.size} {_context_label(self.executor_kind)}.")
        service = GenerationService(
            pool=pool,
            fail_on_error=settings.fail_on_error,
            on_progress=on_progress,
        )

        config_watcher = ConfigFileWatcher(
            config_path=command.config_path,
            on_change=lambda: service.request_exit(0, CONFIG_CHANGED_MESSAGE),
        )
        try:
            if self.watch_config:
                config_watcher.start()
            with _signal_handlers(service):
                if command.watch:
                    return service.run_watch(settings.transforms, settings.src_dir)
                return service.run_batch(
                    settings.transforms,
                    settings.src_dir,
                    file_override=command.file_override,
                )
        finally:
            config_watcher.stop()
            service.shutdown()


def _context_label(executor_kind: str) -> str:
    return "threads" if executor_kind == "thread" else "processes"


@contextmanager
def _signal_handlers(service: GenerationService) -> Iterator[None]:
    if not hasattr(signal, "SIGINT"):
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, _: object | None) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        service.request_exit(128 + signum, f"Received {name}. Exiting.")

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
