"""Filesystem watching: route source changes to the transform that owns them."""

from __future__ import annotations

import os
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import SetupError, WatcherError
from .logging import get_logger
from .paths import GlobPattern, compile_glob, matches_any

if TYPE_CHECKING:
    from .pipeline import Pipeline

_IGNORED_EVENT_TYPES = {"opened", "closed", "closed_no_write"}


@dataclass(frozen=True)
class ChangeEvent:
    """A single filesystem change, reduced to what routing needs."""

    kind: str
    path: Path


class EventRouter:
    """Maps a changed path to the transforms whose watch globs match it.

    Membership is decided once, from the globs configured at startup.
    """

    def __init__(self, root: Path, routes: Dict[str, Tuple[str, ...]]) -> None:
        self.root = root.resolve()
        self._routes: List[Tuple[str, List[GlobPattern]]] = [
            (name, [compile_glob(pattern) for pattern in patterns]) for name, patterns in routes.items()
        ]

    @classmethod
    def for_pipeline(cls, pipeline: "Pipeline") -> "EventRouter":
        return cls(
            pipeline.config.root,
            {name: transform.spec.watch for name, transform in pipeline.transforms.items()},
        )

    def route(self, path: Path) -> List[str]:
        try:
            relative = Path(path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return []
        return [name for name, patterns in self._routes if matches_any(relative, patterns)]


class _QueueingHandler(FileSystemEventHandler):
    """Pushes file events onto the dispatcher queue and does nothing else."""

    def __init__(self, events: "queue.Queue[ChangeEvent]") -> None:
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in _IGNORED_EVENT_TYPES:
            return
        raw_path = getattr(event, "dest_path", "") or event.src_path
        self._events.put(ChangeEvent(kind=event.event_type, path=Path(os.fsdecode(raw_path))))


class Watcher:
    """Watches the source root and re-invokes matching transforms.

    The watchdog handler only enqueues events; a single dispatcher thread
    consumes them and submits `pipeline.invoke(name)` to a worker pool. With a
    debounce of zero every event dispatches immediately, so rapid saves can
    start overlapping invocations of the same transform. A positive debounce
    collapses events that arrive within the window opened by the first of them
    into one invocation per transform, so a steady stream still dispatches once
    per window.
    """

    def __init__(
        self,
        pipeline: "Pipeline",
        *,
        debounce_ms: int | None = None,
        observer_factory: Callable[[], Observer] = Observer,
        poll_interval: float = 0.2,
    ) -> None:
        self.pipeline = pipeline
        self.router = EventRouter.for_pipeline(pipeline)
        self.debounce = (
            debounce_ms if debounce_ms is not None else pipeline.config.watch.debounce_ms
        ) / 1000.0
        self.events: "queue.Queue[ChangeEvent]" = queue.Queue()
        self.poll_interval = poll_interval
        self.logger = get_logger("watcher")
        self._observer_factory = observer_factory
        self._observer: Optional[Observer] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._dispatcher: Optional[threading.Thread] = None
        self._stopped = threading.Event()
        self._failure: Optional[WatcherError] = None

    @property
    def watch_root(self) -> Path:
        return self.pipeline.config.paths.source_dir

    def start(self) -> None:
        """Schedule the observer and start the dispatcher loop."""
        root = self.watch_root
        if not root.is_dir():
            raise WatcherError(f"Source root {root} does not exist")
        observer = self._observer_factory()
        try:
            observer.schedule(_QueueingHandler(self.events), str(root), recursive=True)
            observer.start()
        except OSError as exc:
            raise WatcherError(f"Could not watch {root}: {exc}") from exc
        self._observer = observer
        self._executor = ThreadPoolExecutor(
            max_workers=self.pipeline.workers, thread_name_prefix="assetflow-watch"
        )
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="assetflow-dispatcher", daemon=True
        )
        self._dispatcher.start()
        self.logger.info("Watching %s for changes", root)

    def wait(self) -> None:
        """Block until `stop()` is called; raise `WatcherError` if watching dies."""
        while not self._stopped.is_set():
            observer = self._observer
            if observer is not None and not observer.is_alive():
                self._failure = WatcherError("Filesystem observer stopped unexpectedly")
                break
            self._stopped.wait(self.poll_interval)
        if self._failure is not None:
            raise self._failure

    def stop(self) -> None:
        self._stopped.set()
        if self._observer is not None:
            self._observer.stop()
            if self._observer.is_alive():
                self._observer.join(timeout=5)
        if self._dispatcher is not None and self._dispatcher is not threading.current_thread():
            self._dispatcher.join(timeout=5)
        if self._executor is not None:
            # Running invocations finish; there is no cancellation.
            self._executor.shutdown(wait=True)
            self._executor = None

    def submit(self, name: str) -> None:
        if self._executor is None:
            return
        self._executor.submit(self._invoke, name)

    # ------------------------------------------------------------------
    # Internal helpers

    def _dispatch_loop(self) -> None:
        pending: Set[str] = set()
        deadline = 0.0
        while not self._stopped.is_set():
            timeout = self.poll_interval
            if pending:
                timeout = max(0.0, min(timeout, deadline - time.monotonic()))
            try:
                event = self.events.get(timeout=timeout)
            except queue.Empty:
                event = None

            if event is not None:
                names = self.router.route(event.path)
                if names:
                    self.logger.debug("%s %s -> %s", event.kind, event.path, ", ".join(names))
                if self.debounce <= 0:
                    for name in names:
                        self.submit(name)
                elif names:
                    if not pending:
                        # The window opens at the first event; later events join it.
                        deadline = time.monotonic() + self.debounce
                    pending.update(names)

            if pending and time.monotonic() >= deadline:
                for name in sorted(pending):
                    self.submit(name)
                pending.clear()

    def _invoke(self, name: str) -> None:
        try:
            self.pipeline.invoke(name)
        except SetupError as exc:
            self.logger.error("%s: %s", name, exc)
        except Exception:  # pragma: no cover
            self.logger.exception("%s failed unexpectedly", name)


__all__ = ["ChangeEvent", "EventRouter", "Watcher"]
