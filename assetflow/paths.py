"""Glob matching and source tree scanning."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence

from .models import SourceFile

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "__pycache__",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_WILDCARD_CHARS = set("*?[{")


@dataclass(frozen=True)
class GlobPattern:
    """A project-relative glob supporting `**`, `*`, `?`, `[...]` and `{a,b}`."""

    pattern: str
    regex: "re.Pattern[str]"

    def matches(self, rel_path: str) -> bool:
        return self.regex.match(rel_path) is not None

    @property
    def base(self) -> str:
        """Literal directory prefix before the first wildcard segment."""
        literal: List[str] = []
        segments = self.pattern.split("/")
        for segment in segments[:-1]:
            if _WILDCARD_CHARS.intersection(segment):
                break
            literal.append(segment)
        else:
            if not _WILDCARD_CHARS.intersection(segments[-1]):
                # Fully literal pattern: the base is the file itself.
                return self.pattern
        return "/".join(literal)

    @property
    def is_literal(self) -> bool:
        return not _WILDCARD_CHARS.intersection(self.pattern)


def compile_glob(pattern: str) -> GlobPattern:
    """Translate a glob into an anchored regular expression."""
    normalised = pattern.replace("\\", "/").strip()
    while normalised.startswith("./"):
        normalised = normalised[2:]
    segments = [segment for segment in normalised.split("/") if segment]
    parts: List[str] = []
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            parts.append(".*" if last else "(?:[^/]+/)*")
            continue
        parts.append(_translate_segment(segment))
        if not last:
            parts.append("/")
    return GlobPattern(pattern="/".join(segments), regex=re.compile("^" + "".join(parts) + "$"))


def _translate_segment(segment: str) -> str:
    out: List[str] = []
    index = 0
    length = len(segment)
    while index < length:
        char = segment[index]
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            end = segment.find("]", index + 1)
            if end == -1:
                out.append(re.escape(char))
            else:
                body = segment[index + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                index = end
        elif char == "{":
            end = segment.find("}", index + 1)
            if end == -1:
                out.append(re.escape(char))
            else:
                options = segment[index + 1 : end].split(",")
                out.append("(?:" + "|".join(_translate_segment(option) for option in options) + ")")
                index = end
        else:
            out.append(re.escape(char))
        index += 1
    return "".join(out)


def matches_any(rel_path: str, patterns: Sequence[GlobPattern]) -> bool:
    for pattern in patterns:
        if pattern.matches(rel_path):
            return True
    return False


def _iter_candidates(root: Path, pattern: GlobPattern) -> Iterator[Path]:
    start = root / pattern.base if pattern.base else root
    if pattern.is_literal:
        if start.is_file():
            yield start
        return
    if not start.is_dir():
        return
    for dirpath, dirnames, filenames in os.walk(start):
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        current_dir = Path(dirpath)
        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            yield current_dir / filename


def _relative_to_base(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.name


def scan_sources(
    root: Path,
    patterns: Iterable[str],
    base: Path,
) -> List[SourceFile]:
    """Return the files under `root` matching any of `patterns`, in glob order.

    Relative paths on the returned files are computed against `base`, the prefix
    that is stripped when the file lands in its destination directory.
    """
    found: Dict[Path, SourceFile] = {}
    for raw in patterns:
        pattern = compile_glob(raw)
        for path in _iter_candidates(root, pattern):
            rel_to_root = path.relative_to(root).as_posix()
            if not pattern.matches(rel_to_root) or path in found:
                continue
            try:
                stat_result = path.stat()
            except FileNotFoundError:
                # Vanished between walk and stat.
                continue
            found[path] = SourceFile(
                absolute_path=path,
                relative_path=_relative_to_base(path, base),
                mtime=stat_result.st_mtime,
            )
    return list(found.values())


def is_beneath(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


__all__ = [
    "GlobPattern",
    "compile_glob",
    "is_beneath",
    "matches_any",
    "scan_sources",
]
