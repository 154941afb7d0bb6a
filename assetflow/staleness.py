"""Timestamp-based staleness checks for expensive transforms."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Sequence, Tuple

from .models import SourceFile


class StalenessFilter:
    """Decides whether a source file needs reprocessing by comparing mtimes.

    A destination is stale when it is missing or strictly older than its source.
    There is no hashing: a copy that preserves mtimes, or clock skew between the
    source and output filesystems, can make a changed file look up to date.
    """

    def should_process(self, source_path: Path, source_mtime: float, dest_path: Path) -> bool:
        try:
            dest_mtime = dest_path.stat().st_mtime
        except FileNotFoundError:
            return True
        return dest_mtime < source_mtime

    def partition(
        self,
        sources: Sequence[SourceFile],
        dest_for: Callable[[SourceFile], Path],
    ) -> Tuple[List[SourceFile], List[SourceFile]]:
        """Split a batch into `(to_process, up_to_date)`."""
        stale: List[SourceFile] = []
        fresh: List[SourceFile] = []
        for source in sources:
            if self.should_process(source.absolute_path, source.mtime, dest_for(source)):
                stale.append(source)
            else:
                fresh.append(source)
        return stale, fresh


__all__ = ["StalenessFilter"]
