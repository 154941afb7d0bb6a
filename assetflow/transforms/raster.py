"""Raster transform: recompress jpg/jpeg/png sources as progressive JPEG."""

from __future__ import annotations

import io
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Sequence

from PIL import Image, ImageCms, ImageOps

from ..config import PathConfig
from ..errors import TranscodeError
from ..logging import get_logger
from ..models import AssetClass, BuildMode, DestFile, SourceFile, TransformResult
from .base import Transform

JPEG_QUALITY = 80
OUTPUT_SUFFIX = ".jpg"

logger = get_logger("transforms.raster")


def _to_srgb(image: Image.Image) -> Image.Image:
    has_alpha = image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )
    icc_profile = image.info.get("icc_profile")
    if has_alpha:
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        background.alpha_composite(rgba)
        image = background.convert("RGB")
    if icc_profile:
        try:
            source_profile = ImageCms.ImageCmsProfile(io.BytesIO(icc_profile))
            converted = ImageCms.profileToProfile(
                image,
                source_profile,
                ImageCms.createProfile("sRGB"),
                outputMode="RGB",
            )
        except ImageCms.PyCMSError as exc:
            logger.debug("Ignoring unusable ICC profile: %s", exc)
        else:
            if converted is not None:
                image = converted
    if image.mode != "RGB":
        image = image.convert("RGB")
    return image


def encode_jpeg(data: bytes, *, quality: int = JPEG_QUALITY) -> bytes:
    """Decode any Pillow-readable image and re-encode it as sRGB progressive JPEG."""
    try:
        with Image.open(io.BytesIO(data)) as opened:
            opened.load()
            image = ImageOps.exif_transpose(opened) or opened
            image = _to_srgb(image)
            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=quality, progressive=True, optimize=True)
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise TranscodeError(str(exc)) from exc
    return buffer.getvalue()


class RasterTransform(Transform):
    """Transcodes every stale raster source to `.jpg`, in parallel.

    A file that fails to decode or encode is dropped from the batch without an
    error; the result's `dropped` set records it.
    """

    name = "raster"
    asset_class = AssetClass.RASTER
    uses_staleness = True

    def __init__(self, paths: PathConfig, *, workers: int = 4) -> None:
        super().__init__(paths)
        self.workers = max(1, workers)

    def output_name(self, source: SourceFile) -> str:
        return Path(source.relative_path).with_suffix(OUTPUT_SUFFIX).as_posix()

    def transcode(self, source: SourceFile) -> Optional[DestFile]:
        try:
            content = encode_jpeg(source.read_bytes())
        except (OSError, TranscodeError) as exc:
            logger.debug("Dropping %s: %s", self.source_key(source), exc)
            return None
        return DestFile(relative_path=self.output_name(source), content=content)

    def run(self, batch: Sequence[SourceFile], mode: BuildMode) -> TransformResult:
        # Recompression is identical in both modes.
        result = TransformResult(transform=self.name)
        if not batch:
            return result
        with ThreadPoolExecutor(max_workers=min(self.workers, len(batch))) as pool:
            outputs = list(pool.map(self.transcode, batch))
        for source, output in zip(batch, outputs):
            if output is None:
                result.dropped.add(self.source_key(source))
            else:
                result.produced.append(output)
        return result


__all__ = ["JPEG_QUALITY", "RasterTransform", "encode_jpeg"]
