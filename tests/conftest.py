"""Shared test fixtures."""

from __future__ import annotations

import json
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from querygen.config import Settings, TransformRule
from querygen.orchestrator.models import Job, WorkResult


class ScriptedRunner:
    """Thread-safe runner whose outcome per file name is set by the test.

    Outcomes: ``"ok"`` (default), ``"skip"``, ``"fail"``, a ``threading.Event``
    to wait on before succeeding, or an ``(outcome, event)`` pair that waits on
    the event before applying the outcome.
    """

    def __init__(self, outcomes: dict[str, object] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.calls: list[str] = []
        self.jobs: list[Job] = []
        self._lock = threading.Lock()

    def __call__(self, _settings: Settings) -> ScriptedRunner:
        return self

    def run(self, job: Job) -> WorkResult:
        name = job.path.name
        with self._lock:
            self.calls.append(name)
            self.jobs.append(job)
        outcome = self.outcomes.get(name, "ok")
        if isinstance(outcome, threading.Event):
            outcome = ("ok", outcome)
        if isinstance(outcome, tuple):
            outcome, gate = outcome
            if not gate.wait(timeout=10):
                raise TimeoutError(f"gate for {name} was never released")
        if outcome == "fail":
            raise RuntimeError(f"boom in {name}")
        if outcome == "skip":
            return WorkResult(skipped=True)
        output = job.path.with_name(f"{job.path.stem}.queries.json")
        return WorkResult(skipped=False, generated_count=2, output_path=str(output))


class FailingRunner:
    """Picklable runner for process pools: every job fails after a short delay."""

    def __init__(self, _settings: Settings) -> None:
        pass

    def run(self, job: Job) -> WorkResult:
        time.sleep(0.05)
        raise RuntimeError(f"boom in {job.path.name}")


class CrashingRunner:
    """Picklable runner that kills its worker process."""

    def __init__(self, _settings: Settings) -> None:
        pass

    def run(self, job: Job) -> WorkResult:
        os._exit(3)


def broken_factory(_settings: Settings) -> ScriptedRunner:
    raise RuntimeError("runner cannot be built")


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition was not met in time")
        time.sleep(0.01)


@pytest.fixture()
def scripted_runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture()
def settings() -> Settings:
    return Settings(transforms=(TransformRule(include="*.ts"),))


@pytest.fixture()
def write_project(tmp_path: Path) -> Callable[..., Path]:
    """Create ``querygen.json`` plus source files; return the config path."""

    def _write(
        files: dict[str, str],
        *,
        transforms: list[dict[str, object]] | None = None,
        fail_on_error: bool = False,
        **extra: object,
    ) -> Path:
        for relative, content in files.items():
            path = tmp_path / "src" / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, "utf-8")
        (tmp_path / "src").mkdir(exist_ok=True)
        config = {
            "transforms": transforms or [{"mode": "ts", "include": "*.ts"}],
            "srcDir": "./src",
            "failOnError": fail_on_error,
            **extra,
        }
        config_path = tmp_path / "querygen.json"
        config_path.write_text(json.dumps(config), "utf-8")
        return config_path

    return _write


class FakeObserver:
    """Stand-in for a watchdog observer; events are dispatched by the test."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[object, str, bool]] = []
        self.started = False
        self.stopped = False
        self.joined = False

    def schedule(self, handler: object, path: str, recursive: bool = False) -> None:
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        self.joined = True
