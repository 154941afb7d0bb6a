"""Tests for assetflow.transforms.raster."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from assetflow.errors import TranscodeError
from assetflow.models import BuildMode
from assetflow.transforms.raster import RasterTransform, encode_jpeg
from tests._fixtures.project_builder import ProjectBuilder


def _png(mode: str, color) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (8, 8), color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_encode_jpeg_writes_progressive_rgb() -> None:
    encoded = encode_jpeg(_png("RGB", (10, 120, 200)))

    with Image.open(io.BytesIO(encoded)) as image:
        assert image.format == "JPEG"
        assert image.mode == "RGB"
        assert image.size == (8, 8)
        assert image.info.get("progressive")


def test_transparency_is_flattened_onto_white() -> None:
    encoded = encode_jpeg(_png("RGBA", (0, 0, 0, 0)))

    with Image.open(io.BytesIO(encoded)) as image:
        red, green, blue = image.getpixel((4, 4))
    assert min(red, green, blue) >= 250


def test_grayscale_source_is_converted() -> None:
    encoded = encode_jpeg(_png("L", 128))

    with Image.open(io.BytesIO(encoded)) as image:
        assert image.mode == "RGB"


def test_undecodable_input_raises_transcode_error() -> None:
    with pytest.raises(TranscodeError):
        encode_jpeg(b"\x89PNG\r\n\x1a\nthis is truncated")


def test_run_renames_to_jpg_and_drops_failures(project: ProjectBuilder) -> None:
    project.image("src/img/banner.PNG")
    project.image("src/img/team/portrait.jpeg", fmt="JPEG")
    project.write_bytes("src/img/corrupt.jpg", b"nope")
    transform = RasterTransform(project.config().paths, workers=2)

    result = transform.run(transform.collect(), BuildMode.DEVELOPMENT)

    assert sorted(dest.relative_path for dest in result.produced) == ["banner.jpg", "team/portrait.jpg"]
    assert result.dropped == {"src/img/corrupt.jpg"}
    assert result.errors == {}


def test_output_is_identical_in_both_modes(project: ProjectBuilder) -> None:
    project.image("src/img/photo.png")
    transform = RasterTransform(project.config().paths)
    batch = transform.collect()

    development = transform.run(batch, BuildMode.DEVELOPMENT)
    production = transform.run(batch, BuildMode.PRODUCTION)

    assert development.produced[0].content == production.produced[0].content


def test_empty_batch(project: ProjectBuilder) -> None:
    transform = RasterTransform(project.config().paths)

    assert transform.run([], BuildMode.PRODUCTION).produced == []
