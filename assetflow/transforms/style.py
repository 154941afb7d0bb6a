"""Stylesheet transform: Sass entry -> prefixed (and in production, minified) CSS."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import sass

from ..errors import CompileError, SetupError
from ..logging import get_logger
from ..models import AssetClass, BuildMode, DestFile, SourceFile, TransformResult
from ..postproc import PostProcessorChain
from .base import Transform

_STYLE_SUFFIXES = (".scss", ".sass", ".css")
_GLOB_CHARS = set("*?[")
_ERROR_LOCATION = re.compile(r"on line (?P<line>\d+)(?::(?P<column>\d+))? of (?P<path>[^\n]+)")


@dataclass
class CompiledStyle:
    """Expanded CSS plus its source map when one was requested."""

    css: str
    source_map: Optional[str] = None


class SassCompiler:
    """Compiles a Sass entry file with libsass, expanding glob imports first."""

    def __init__(self, include_paths: Sequence[Path] = ()) -> None:
        self.include_paths = [str(path) for path in include_paths]

    def compile(self, entry: Path, *, output_path: Path, source_map: bool) -> CompiledStyle:
        options = {
            "filename": str(entry),
            "output_style": "expanded",
            "include_paths": [str(entry.parent), *self.include_paths],
            "importers": [(0, self._import_glob)],
        }
        if source_map:
            options.update(
                source_map_filename=str(output_path.with_name(output_path.name + ".map")),
                output_filename_hint=str(output_path),
                source_map_contents=True,
            )
        try:
            compiled = sass.compile(**options)
        except sass.CompileError as exc:
            raise _compile_error(exc, entry) from exc
        if source_map:
            css, map_text = compiled
            return CompiledStyle(css=css, source_map=map_text)
        return CompiledStyle(css=compiled)

    @staticmethod
    def _import_glob(path: str, prev: str) -> Optional[List[Tuple[str, str]]]:
        """Resolve `@import "dir/*";` style imports relative to the importing file."""
        if not _GLOB_CHARS.intersection(path):
            return None
        base = Path(prev).parent if prev and prev != "stdin" else Path.cwd()
        pattern = path if Path(path).suffix in _STYLE_SUFFIXES else f"{path}.scss"
        matches = sorted(candidate for candidate in base.glob(pattern) if candidate.is_file())
        return [(str(candidate), candidate.read_text(encoding="utf-8")) for candidate in matches]


def _compile_error(exc: Exception, entry: Path) -> CompileError:
    text = str(exc).strip()
    first_line = text.splitlines()[0] if text else "Sass compilation failed"
    match = _ERROR_LOCATION.search(text)
    if match is None:
        return CompileError(first_line, path=entry)
    column = match.group("column")
    return CompileError(
        first_line,
        path=Path(match.group("path").strip()),
        line=int(match.group("line")),
        column=int(column) if column else None,
    )


class StyleTransform(Transform):
    """Compiles the single entry stylesheet; partials are pulled in through imports."""

    name = "style"
    asset_class = AssetClass.STYLE

    def __init__(self, paths, compiler: SassCompiler | None = None) -> None:
        super().__init__(paths)
        self.compiler = compiler or SassCompiler()
        self.logger = get_logger("transforms.style")

    def collect(self) -> List[SourceFile]:
        entry = self.paths.resolve(self.spec.entry or "")
        if not entry.is_file():
            raise SetupError(f"Stylesheet entry not found: {self.spec.entry}")
        return [SourceFile.from_path(entry, self.paths.base_dir(self.asset_class))]

    def output_name(self, source: SourceFile) -> str:
        return Path(source.relative_path).with_suffix(".css").as_posix()

    def run(self, batch: Sequence[SourceFile], mode: BuildMode) -> TransformResult:
        result = TransformResult(transform=self.name)
        if not batch:
            raise SetupError("Stylesheet transform invoked without an entry file")
        entry = batch[0]
        output_name = self.output_name(entry)
        try:
            compiled = self.compiler.compile(
                entry.absolute_path,
                output_path=self.dest_dir / output_name,
                source_map=mode.source_maps,
            )
        except CompileError as exc:
            self.logger.error("Stylesheet compile failed: %s", exc)
            result.errors[self.source_key(entry)] = exc
            return result

        css = PostProcessorChain.for_mode(mode).process(compiled.css)
        source_map = compiled.source_map.encode("utf-8") if compiled.source_map else None
        result.produced.append(
            DestFile(relative_path=output_name, content=css.encode("utf-8"), source_map=source_map)
        )
        return result


__all__ = ["CompiledStyle", "SassCompiler", "StyleTransform"]
