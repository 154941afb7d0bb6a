"""Core data models shared across assetflow components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Set


class AssetClass(str, Enum):
    """Category of a source file; decides which transform handles it."""

    MARKUP = "markup"
    STYLE = "style"
    SCRIPT = "script"
    RASTER = "raster"
    VECTOR = "vector"
    STATIC = "static"


class BuildMode(str, Enum):
    """Fixed for a whole pipeline run and passed explicitly to every transform."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @property
    def source_maps(self) -> bool:
        return self is BuildMode.DEVELOPMENT

    @property
    def minify(self) -> bool:
        return self is BuildMode.PRODUCTION


@dataclass(frozen=True)
class SourceFile:
    """A file picked up by a glob scan or a filesystem event."""

    absolute_path: Path
    relative_path: str
    mtime: float

    def read_bytes(self) -> bytes:
        return self.absolute_path.read_bytes()

    @classmethod
    def from_path(cls, path: Path, base: Path) -> "SourceFile":
        stat_result = path.stat()
        return cls(
            absolute_path=path,
            relative_path=path.relative_to(base).as_posix(),
            mtime=stat_result.st_mtime,
        )


@dataclass
class DestFile:
    """Output of a transform, relative to the transform's destination directory."""

    relative_path: str
    content: bytes
    source_map: Optional[bytes] = None

    @property
    def map_path(self) -> str:
        return f"{self.relative_path}.map"


@dataclass
class TransformResult:
    """Outcome of one transform invocation over its batch."""

    transform: str
    produced: List[DestFile] = field(default_factory=list)
    errors: Dict[str, Exception] = field(default_factory=dict)
    skipped: Set[str] = field(default_factory=set)
    dropped: Set[str] = field(default_factory=set)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        parts = [f"{len(self.produced)} written"]
        if self.skipped:
            parts.append(f"{len(self.skipped)} up to date")
        if self.dropped:
            parts.append(f"{len(self.dropped)} dropped")
        if self.errors:
            parts.append(f"{len(self.errors)} failed")
        return ", ".join(parts)


@dataclass
class BuildReport:
    """Aggregated results of a full pipeline pass."""

    mode: BuildMode
    results: Dict[str, TransformResult] = field(default_factory=dict)
    setup_errors: Dict[str, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.setup_errors

    @property
    def file_errors(self) -> Dict[str, Exception]:
        merged: Dict[str, Exception] = {}
        for result in self.results.values():
            merged.update(result.errors)
        return merged


__all__ = [
    "AssetClass",
    "BuildMode",
    "BuildReport",
    "DestFile",
    "SourceFile",
    "TransformResult",
]
