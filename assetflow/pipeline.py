"""Pipeline orchestration for build and dev flows."""

from __future__ import annotations

import shutil
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from .config import AssetflowConfig
from .errors import CleanError, SetupError
from .logging import get_logger
from .models import BuildMode, BuildReport, SourceFile, TransformResult
from .staleness import StalenessFilter
from .transforms import Transform, build_transforms
from .watcher import Watcher

# Transforms in one phase have no data dependencies on each other. The second
# phase starts only after every transform in the first has finished.
PHASES: Tuple[Tuple[str, ...], ...] = (
    ("markup", "style", "script", "static"),
    ("raster", "vector"),
)


class Notifier(Protocol):
    def notify(self) -> None:
        """Signal connected clients that the output tree changed."""


class DevServer(Notifier, Protocol):
    def start(self, root: Path) -> None:
        """Begin serving `root`."""

    def stop(self) -> None:
        """Stop serving."""


class Pipeline:
    """Runs transforms against the configured source tree for one build mode.

    The mode is fixed at construction and handed to every transform invocation.
    The output directory is the only shared mutable resource: concurrent
    invocations of the same transform are not coalesced and the last one to
    finish wins.
    """

    def __init__(
        self,
        config: AssetflowConfig,
        mode: BuildMode,
        *,
        transforms: Optional[Iterable[Transform]] = None,
        notifier: Notifier | None = None,
        staleness: StalenessFilter | None = None,
        workers: int | None = None,
    ) -> None:
        self.config = config
        self.mode = mode
        selected = list(transforms) if transforms is not None else build_transforms(config)
        self.transforms: Dict[str, Transform] = {transform.name: transform for transform in selected}
        self.notifier = notifier
        self.staleness = staleness or StalenessFilter()
        self.workers = max(1, workers or config.workers)
        self.logger = get_logger("pipeline")

    @property
    def output_dir(self) -> Path:
        return self.config.paths.output_dir

    def clean(self) -> None:
        """Remove the whole output root."""
        output_dir = self.output_dir
        if not output_dir.exists():
            return
        self.logger.debug("Removing %s", output_dir)
        try:
            if output_dir.is_dir():
                shutil.rmtree(output_dir)
            else:
                output_dir.unlink()
        except OSError as exc:
            raise CleanError(f"Could not clean {output_dir}: {exc}") from exc

    def run_build(self, *, clean: bool = True) -> BuildReport:
        """Run every transform once: independent phase first, then images."""
        self.logger.info("Starting %s build in %s", self.mode.value, self.config.root)
        if clean:
            self.clean()

        report = BuildReport(mode=self.mode)
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="assetflow") as pool:
            for phase in PHASES:
                futures: Dict[str, Future[TransformResult]] = {
                    name: pool.submit(self._execute, self.transforms[name])
                    for name in phase
                    if name in self.transforms
                }
                for name, future in futures.items():
                    try:
                        report.results[name] = future.result()
                    except SetupError as exc:
                        self.logger.error("%s: %s", name, exc)
                        report.setup_errors[name] = exc
                    except Exception as exc:  # pragma: no cover
                        self.logger.exception("%s failed unexpectedly", name)
                        report.setup_errors[name] = exc

        file_errors = report.file_errors
        if report.ok:
            self.logger.info(
                "Build finished: %d files written, %d asset errors",
                sum(len(result.produced) for result in report.results.values()),
                len(file_errors),
            )
        else:
            self.logger.error(
                "Build finished with setup errors in: %s", ", ".join(sorted(report.setup_errors))
            )
        return report

    def invoke(self, name: str) -> TransformResult:
        """Run one transform over its full input set, then notify.

        Raises `SetupError` when the transform cannot start. The notifier is
        called after the invocation completes either way.
        """
        transform = self.transforms[name]
        try:
            return self._execute(transform)
        finally:
            if self.notifier is not None:
                self.notifier.notify()

    def run_dev(
        self,
        server: DevServer,
        watcher_factory: Callable[["Pipeline"], WatcherLike] | None = None,
    ) -> BuildReport:
        """Initial full pass, then serve and watch until interrupted.

        Returns the initial build report once the watcher is stopped. A
        `WatcherError` from the watcher propagates to the caller.
        """
        if self.mode is not BuildMode.DEVELOPMENT:
            raise ValueError("run_dev requires BuildMode.DEVELOPMENT")
        report = self.run_build(clean=True)

        server.start(self.output_dir)
        self.notifier = server
        watcher = (watcher_factory or Watcher)(self)
        try:
            watcher.start()
            watcher.wait()
        finally:
            watcher.stop()
            server.stop()
            self.notifier = None
        return report

    # ------------------------------------------------------------------
    # Internal helpers

    def _execute(self, transform: Transform) -> TransformResult:
        batch = transform.collect()
        fresh: List[SourceFile] = []
        if transform.uses_staleness:
            batch, fresh = self.staleness.partition(
                batch, lambda source: transform.dest_dir / transform.output_name(source)
            )
        result = transform.run(batch, self.mode)
        result.skipped.update(transform.source_key(source) for source in fresh)
        self._write(transform, result)
        self.logger.info("%s: %s", transform.name, result.summary())
        return result

    def _write(self, transform: Transform, result: TransformResult) -> None:
        dest_dir = transform.dest_dir
        if not result.produced:
            return
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SetupError(f"Destination {dest_dir} is not writable: {exc}") from exc

        written = []
        for dest_file in result.produced:
            target = dest_dir / dest_file.relative_path
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(dest_file.content)
                if dest_file.source_map is not None:
                    (dest_dir / dest_file.map_path).write_bytes(dest_file.source_map)
            except OSError as exc:
                key = _project_relative(target, self.config.root)
                self.logger.warning("Could not write %s: %s", key, exc)
                result.errors[key] = exc
                continue
            written.append(dest_file)
        result.produced = written


class WatcherLike(Protocol):
    def start(self) -> None: ...

    def wait(self) -> None: ...

    def stop(self) -> None: ...


def _project_relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


__all__ = ["DevServer", "Notifier", "PHASES", "Pipeline"]
