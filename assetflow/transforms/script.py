"""Script transform: bundle the entry module graph into one IIFE."""

from __future__ import annotations

from typing import List, Optional, Sequence

from ..bundler import Bundler, BundleRequest, EsbuildBundler, load_browserslist_query, resolve_targets
from ..config import PathConfig
from ..errors import CompileError, SetupError
from ..logging import get_logger
from ..models import AssetClass, BuildMode, DestFile, SourceFile, TransformResult
from .base import Transform

BUNDLE_NAME = "bundle.js"


class ScriptTransform(Transform):
    """Bundles everything reachable from the entry script; always a full rebuild."""

    name = "script"
    asset_class = AssetClass.SCRIPT

    def __init__(
        self,
        paths: PathConfig,
        bundler: Bundler | None = None,
        *,
        browserslist: Optional[str] = None,
    ) -> None:
        super().__init__(paths)
        self.bundler = bundler or EsbuildBundler(cwd=paths.root)
        self.browserslist = browserslist
        self.logger = get_logger("transforms.script")

    def collect(self) -> List[SourceFile]:
        entry = self.paths.resolve(self.spec.entry or "")
        if not entry.is_file():
            raise SetupError(f"Script entry not found: {self.spec.entry}")
        return [SourceFile.from_path(entry, self.paths.base_dir(self.asset_class))]

    def output_name(self, source: SourceFile) -> str:
        return BUNDLE_NAME

    def run(self, batch: Sequence[SourceFile], mode: BuildMode) -> TransformResult:
        result = TransformResult(transform=self.name)
        if not batch:
            raise SetupError("Script transform invoked without an entry file")
        entry = batch[0]
        targets = resolve_targets(load_browserslist_query(self.paths.root, self.browserslist))
        self.logger.debug("Bundling %s for %s", self.source_key(entry), ", ".join(targets))
        request = BundleRequest(
            entry=entry.absolute_path,
            outfile=self.dest_dir / BUNDLE_NAME,
            bundle=True,
            format="iife",
            minify=mode.minify,
            sourcemap=mode.source_maps,
            targets=targets,
        )
        try:
            output = self.bundler.bundle(request)
        except CompileError as exc:
            self.logger.error("Script bundle failed: %s", exc)
            result.errors[self.source_key(entry)] = exc
            return result

        result.produced.append(
            DestFile(relative_path=BUNDLE_NAME, content=output.code, source_map=output.source_map)
        )
        return result


__all__ = ["BUNDLE_NAME", "ScriptTransform"]
