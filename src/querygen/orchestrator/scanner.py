"""Source discovery: one-shot resolution for batch runs, observers for watch runs."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Sequence
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from querygen.config import TransformRule
from querygen.patterns import IncludePattern

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[TransformRule, Path], None]


def resolve_transform_files(src_dir: Path, rule: TransformRule) -> list[Path]:
    """Return files under ``src_dir`` matching the rule, in sorted path order."""

    pattern = IncludePattern(rule.include)
    if not src_dir.is_dir():
        logger.debug("Source directory %s does not exist", src_dir)
        return []
    return sorted(
        path for path in src_dir.rglob("*") if path.is_file() and pattern.matches(path, src_dir)
    )


def select_file_override(files: Sequence[Path], override: Path) -> list[Path]:
    """Keep only the override, and only when the resolved file set contains it."""

    target = override.resolve()
    if any(path.resolve() == target for path in files):
        return [override]
    return []


class TransformEventHandler(FileSystemEventHandler):
    """Turns every matching create/modify/move-in event into one change callback."""

    def __init__(self, *, rule: TransformRule, src_dir: Path, on_change: ChangeCallback) -> None:
        super().__init__()
        self.rule = rule
        self.src_dir = src_dir
        self.pattern = IncludePattern(rule.include)
        self.on_change = on_change

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle(event.src_path, is_directory=event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(event.src_path, is_directory=event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._handle(event.dest_path, is_directory=event.is_directory)

    def _handle(self, raw_path: str | bytes, *, is_directory: bool) -> None:
        if is_directory or not raw_path:
            return
        path = Path(os.fsdecode(raw_path))
        if self.pattern.matches(path, self.src_dir):
            self.on_change(self.rule, path)


class TransformWatcher:
    """Observes ``src_dir`` with one observer per transform rule.

    ``start`` reports every file that already matches, then reports each later
    create/modify/move-in event individually. Repeated events for one file are
    not coalesced.
    """

    def __init__(
        self,
        *,
        src_dir: Path,
        transforms: Sequence[TransformRule],
        on_change: ChangeCallback,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        self.src_dir = src_dir.resolve()
        self.transforms = tuple(transforms)
        self.on_change = on_change
        self.handlers = [
            TransformEventHandler(rule=rule, src_dir=self.src_dir, on_change=on_change)
            for rule in self.transforms
        ]
        self._observer_factory = observer_factory
        self._observers: list[BaseObserver] = []

    def start(self) -> None:
        if self.src_dir.is_dir():
            for handler in self.handlers:
                observer = self._observer_factory()
                observer.schedule(handler, str(self.src_dir), recursive=True)
                observer.start()
                self._observers.append(observer)
        else:
            logger.warning("Source directory %s does not exist; nothing to watch", self.src_dir)

        for rule in self.transforms:
            for path in resolve_transform_files(self.src_dir, rule):
                self.on_change(rule, path)

    def stop(self) -> None:
        for observer in self._observers:
            observer.stop()
        for observer in self._observers:
            observer.join(timeout=5)
        self._observers.clear()


class ConfigFileEventHandler(FileSystemEventHandler):
    """Fires ``on_change`` for any event touching the configuration file."""

    def __init__(self, *, config_path: Path, on_change: Callable[[], None]) -> None:
        super().__init__()
        self.config_path = config_path.resolve()
        self.on_change = on_change

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in {"opened", "closed", "closed_no_write"}:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(raw and Path(os.fsdecode(raw)).resolve() == self.config_path for raw in paths):
            self.on_change()


class ConfigFileWatcher:
    """Watches the configuration file; it is never reloaded, only reported."""

    def __init__(
        self,
        *,
        config_path: Path,
        on_change: Callable[[], None],
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        self.handler = ConfigFileEventHandler(config_path=config_path, on_change=on_change)
        self._observer_factory = observer_factory
        self._observer: BaseObserver | None = None

    def start(self) -> None:
        observer = self._observer_factory()
        observer.schedule(self.handler, str(self.handler.config_path.parent), recursive=False)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
