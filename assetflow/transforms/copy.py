"""Byte-for-byte copy transforms for markup and static files."""

from __future__ import annotations

from typing import Sequence

from ..logging import get_logger
from ..models import AssetClass, BuildMode, DestFile, SourceFile, TransformResult
from .base import Transform


class CopyTransform(Transform):
    """Copies every matched file unchanged, keeping its path relative to the source base."""

    def run(self, batch: Sequence[SourceFile], mode: BuildMode) -> TransformResult:
        logger = get_logger(f"transforms.{self.name}")
        result = TransformResult(transform=self.name)
        for source in batch:
            try:
                content = source.read_bytes()
            except OSError as exc:
                logger.warning("Could not read %s: %s", self.source_key(source), exc)
                result.errors[self.source_key(source)] = exc
                continue
            result.produced.append(DestFile(relative_path=self.output_name(source), content=content))
        return result


class MarkupTransform(CopyTransform):
    name = "markup"
    asset_class = AssetClass.MARKUP


class StaticTransform(CopyTransform):
    """Fonts, favicons, the web manifest and other files that ship as-is.

    Missing sources are not an error; an empty batch simply produces nothing.
    """

    name = "static"
    asset_class = AssetClass.STATIC


__all__ = ["CopyTransform", "MarkupTransform", "StaticTransform"]
