"""Error taxonomy shared by transforms, the pipeline and the watcher."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class AssetflowError(RuntimeError):
    """Base class for pipeline failures."""


class SetupError(AssetflowError):
    """A transform could not start: missing entry file, missing tool, unwritable output."""


class CleanError(AssetflowError):
    """The output root could not be removed before a full build."""


class CompileError(AssetflowError):
    """A stylesheet or script failed to compile."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[Path] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.line = line
        self.column = column

    def location(self) -> str:
        if self.path is None:
            return "<unknown>"
        if self.line is None:
            return str(self.path)
        if self.column is None:
            return f"{self.path}:{self.line}"
        return f"{self.path}:{self.line}:{self.column}"

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.location()}: {self.message}"


class TranscodeError(AssetflowError):
    """A raster image could not be decoded or re-encoded."""


class SvgParseError(AssetflowError):
    """An SVG document is malformed and cannot be optimized."""


class WatcherError(AssetflowError):
    """The filesystem watcher stopped delivering events."""


__all__ = [
    "AssetflowError",
    "CleanError",
    "CompileError",
    "SetupError",
    "SvgParseError",
    "TranscodeError",
    "WatcherError",
]
