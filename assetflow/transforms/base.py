"""Base class for asset transforms."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence

from ..config import PathConfig, PathSpec
from ..models import AssetClass, BuildMode, SourceFile, TransformResult
from ..paths import scan_sources


class Transform(ABC):
    """Contract for one asset class: a batch of sources in, destination files out.

    Transforms never write to disk themselves; the pipeline writes whatever
    `run` returns beneath the PathSpec destination directory.
    """

    name: str = ""
    asset_class: AssetClass
    uses_staleness: bool = False

    def __init__(self, paths: PathConfig) -> None:
        self.paths = paths

    @property
    def spec(self) -> PathSpec:
        return self.paths.spec(self.asset_class)

    @property
    def dest_dir(self) -> Path:
        return self.paths.dest_dir(self.asset_class)

    def collect(self) -> List[SourceFile]:
        """Return the batch for a full invocation."""
        return scan_sources(
            self.paths.root,
            self.spec.source_globs,
            self.paths.base_dir(self.asset_class),
        )

    def output_name(self, source: SourceFile) -> str:
        """Destination path, relative to `dest_dir`, that `source` produces."""
        return source.relative_path

    def source_key(self, source: SourceFile) -> str:
        try:
            return source.absolute_path.relative_to(self.paths.root).as_posix()
        except ValueError:
            return str(source.absolute_path)

    @abstractmethod
    def run(self, batch: Sequence[SourceFile], mode: BuildMode) -> TransformResult:
        """Transform the batch; per-file failures go into the result, never raised."""


__all__ = ["Transform"]
