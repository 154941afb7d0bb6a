"""Tests for assetflow.watcher."""

from __future__ import annotations

import queue
import threading
import time
from pathlib import Path
from typing import List

import pytest
from watchdog.events import DirModifiedEvent, FileModifiedEvent, FileMovedEvent

from assetflow.errors import SetupError, WatcherError
from assetflow.models import BuildMode, TransformResult
from assetflow.pipeline import Pipeline
from assetflow.transforms import ScriptTransform, build_transforms
from assetflow.watcher import ChangeEvent, EventRouter, Watcher, _QueueingHandler
from tests._fixtures.project_builder import ProjectBuilder
from tests._fixtures.stubs import RecordingBundler


class RecordingPipeline(Pipeline):
    """Records invocations instead of running transforms."""

    def __init__(self, *args, fail: str | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.invoked: List[str] = []
        self.fail = fail
        self._lock = threading.Lock()

    def invoke(self, name: str) -> TransformResult:
        with self._lock:
            self.invoked.append(name)
        if name == self.fail:
            raise SetupError(f"{name} entry missing")
        return TransformResult(transform=name)


class FakeObserver:
    def __init__(self, *, fail_schedule: bool = False) -> None:
        self.fail_schedule = fail_schedule
        self.scheduled: List[str] = []
        self.alive = False

    def schedule(self, handler, path: str, recursive: bool = False) -> None:
        if self.fail_schedule:
            raise OSError("inotify watch limit reached")
        self.scheduled.append(path)

    def start(self) -> None:
        self.alive = True

    def stop(self) -> None:
        self.alive = False

    def join(self, timeout: float | None = None) -> None:
        pass

    def is_alive(self) -> bool:
        return self.alive


def _pipeline(project: ProjectBuilder, cls=Pipeline, **kwargs) -> Pipeline:
    project.write({"src/index.html": "<p></p>\n"})
    config = project.config()
    transforms = build_transforms(config, enabled=["markup", "style", "static", "raster", "vector"])
    transforms.append(ScriptTransform(config.paths, bundler=RecordingBundler()))
    return cls(config, BuildMode.DEVELOPMENT, transforms=transforms, **kwargs)


def _wait_for(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        time.sleep(0.01)


def test_router_maps_paths_to_owning_transforms(project: ProjectBuilder) -> None:
    router = EventRouter.for_pipeline(_pipeline(project))

    assert router.route(project.path("src/index.html")) == ["markup"]
    assert router.route(project.path("src/styles/partials/_nav.scss")) == ["style"]
    assert router.route(project.path("src/js/lib/util.js")) == ["script"]
    assert router.route(project.path("src/img/photo.PNG")) == ["raster"]
    assert router.route(project.path("src/img/icon.svg")) == ["vector"]
    assert router.route(project.path("src/img/loader.gif")) == ["static"]
    assert router.route(project.path("src/fonts/inter.woff2")) == ["static"]
    assert router.route(project.path("src/notes.txt")) == []
    assert router.route(project.path("../elsewhere/index.html")) == []


def test_handler_enqueues_file_events_only() -> None:
    events: "queue.Queue[ChangeEvent]" = queue.Queue()
    handler = _QueueingHandler(events)

    handler.dispatch(FileModifiedEvent("/project/src/index.html"))
    handler.dispatch(DirModifiedEvent("/project/src"))
    handler.dispatch(FileMovedEvent("/project/src/.index.html.swp", "/project/src/about.html"))

    assert events.get_nowait() == ChangeEvent("modified", Path("/project/src/index.html"))
    assert events.get_nowait() == ChangeEvent("moved", Path("/project/src/about.html"))
    assert events.empty()


def test_every_event_dispatches_without_debounce(project: ProjectBuilder) -> None:
    pipeline = _pipeline(project, RecordingPipeline)
    watcher = Watcher(pipeline, observer_factory=FakeObserver, poll_interval=0.01)
    watcher.start()
    try:
        for _ in range(2):
            watcher.events.put(ChangeEvent("modified", project.path("src/index.html")))
        watcher.events.put(ChangeEvent("modified", project.path("src/styles/_base.scss")))
        watcher.events.put(ChangeEvent("modified", project.path("src/README.md")))
        _wait_for(lambda: len(pipeline.invoked) == 3)
    finally:
        watcher.stop()

    assert sorted(pipeline.invoked) == ["markup", "markup", "style"]


def test_debounce_collapses_bursts_per_transform(project: ProjectBuilder) -> None:
    pipeline = _pipeline(project, RecordingPipeline)
    watcher = Watcher(pipeline, debounce_ms=50, observer_factory=FakeObserver, poll_interval=0.01)
    watcher.start()
    try:
        for _ in range(3):
            watcher.events.put(ChangeEvent("modified", project.path("src/styles/main.scss")))
        watcher.events.put(ChangeEvent("created", project.path("src/img/new.svg")))
        _wait_for(lambda: len(pipeline.invoked) >= 2)
        time.sleep(0.15)
    finally:
        watcher.stop()

    assert sorted(pipeline.invoked) == ["style", "vector"]


def test_steady_event_stream_still_dispatches(project: ProjectBuilder) -> None:
    pipeline = _pipeline(project, RecordingPipeline)
    watcher = Watcher(pipeline, debounce_ms=100, observer_factory=FakeObserver, poll_interval=0.01)
    watcher.start()
    try:
        for _ in range(25):
            watcher.events.put(ChangeEvent("modified", project.path("src/styles/main.scss")))
            time.sleep(0.02)
        dispatched_during_stream = len(pipeline.invoked)
    finally:
        watcher.stop()

    assert dispatched_during_stream >= 1
    assert set(pipeline.invoked) == {"style"}


def test_debounce_defaults_to_config(project: ProjectBuilder) -> None:
    project.write({"assetflow.yml": "watch:\n  debounce_ms: 250\n"})

    watcher = Watcher(_pipeline(project), observer_factory=FakeObserver)

    assert watcher.debounce == pytest.approx(0.25)


def test_setup_error_during_invocation_keeps_watching(project: ProjectBuilder) -> None:
    pipeline = _pipeline(project, RecordingPipeline, fail="script")
    watcher = Watcher(pipeline, observer_factory=FakeObserver, poll_interval=0.01)
    watcher.start()
    try:
        watcher.events.put(ChangeEvent("modified", project.path("src/js/index.js")))
        watcher.events.put(ChangeEvent("modified", project.path("src/index.html")))
        _wait_for(lambda: len(pipeline.invoked) == 2)
    finally:
        watcher.stop()

    assert sorted(pipeline.invoked) == ["markup", "script"]


def test_start_requires_source_root(project: ProjectBuilder) -> None:
    watcher = Watcher(_pipeline(project), observer_factory=FakeObserver)
    (project.path("src/index.html")).unlink()
    project.path("src").rmdir()

    with pytest.raises(WatcherError, match="does not exist"):
        watcher.start()


def test_start_wraps_observer_failures(project: ProjectBuilder) -> None:
    watcher = Watcher(_pipeline(project), observer_factory=lambda: FakeObserver(fail_schedule=True))

    with pytest.raises(WatcherError, match="inotify"):
        watcher.start()


def test_wait_raises_when_observer_dies(project: ProjectBuilder) -> None:
    observers: List[FakeObserver] = []

    def _factory() -> FakeObserver:
        observers.append(FakeObserver())
        return observers[-1]

    watcher = Watcher(_pipeline(project), observer_factory=_factory, poll_interval=0.01)
    watcher.start()
    observers[0].alive = False
    try:
        with pytest.raises(WatcherError, match="stopped unexpectedly"):
            watcher.wait()
    finally:
        watcher.stop()


def test_stop_releases_wait(project: ProjectBuilder) -> None:
    watcher = Watcher(_pipeline(project), observer_factory=FakeObserver, poll_interval=0.01)
    watcher.start()
    timer = threading.Timer(0.05, watcher.stop)
    timer.start()

    watcher.wait()
    timer.join()


def test_real_observer_triggers_rebuild(project: ProjectBuilder) -> None:
    pipeline = _pipeline(project, RecordingPipeline)
    watcher = Watcher(pipeline, poll_interval=0.05)
    watcher.start()
    try:
        time.sleep(0.2)
        project.write({"src/about.html": "<p>about</p>\n"})
        _wait_for(lambda: "markup" in pipeline.invoked, timeout=10.0)
    finally:
        watcher.stop()
