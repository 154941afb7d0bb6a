"""Tests for assetflow.transforms.vector."""

from __future__ import annotations

import pytest

from assetflow.errors import SvgParseError
from assetflow.models import BuildMode
from assetflow.transforms.vector import OptimizerOptions, VectorTransform, optimize_svg
from tests._fixtures.project_builder import ProjectBuilder

ICON = """<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" width="24" height="24" viewBox="0 0 24 24">
  <!-- Generator: Sketch -->
  <metadata>editor data</metadata>
  <g>
    <path d="M1.123456 2.987654 L20.555555 21.444444" stroke="#000000"/>
  </g>
</svg>
"""


def test_optimize_removes_comments_and_keeps_viewbox() -> None:
    optimized = optimize_svg(ICON)

    assert "Sketch" not in optimized
    assert "<metadata" not in optimized
    assert 'viewBox="0 0 24 24"' in optimized
    assert len(optimized) < len(ICON)


def test_optimize_rounds_coordinates() -> None:
    optimized = optimize_svg(ICON)

    assert "1.123456" not in optimized
    assert "20.555555" not in optimized


def test_optimize_is_stable_on_its_own_output() -> None:
    once = optimize_svg(ICON)

    assert optimize_svg(once) == once


def test_disabling_comment_removal_keeps_comments() -> None:
    options = OptimizerOptions(disabled_plugins=("removeViewBox", "removeComments"))

    assert "Sketch" in optimize_svg(ICON, options)


def test_redundant_viewbox_dropped_only_when_enabled() -> None:
    options = OptimizerOptions(disabled_plugins=())

    assert "viewBox" not in optimize_svg(ICON, options)


def test_malformed_svg_raises_parse_error() -> None:
    with pytest.raises(SvgParseError):
        optimize_svg("<svg><g></svg>")


def test_run_records_errors_per_file(project: ProjectBuilder) -> None:
    project.write({"src/img/icons/ok.svg": ICON, "src/img/broken.svg": "<svg"})
    transform = VectorTransform(project.config().paths)

    result = transform.run(transform.collect(), BuildMode.PRODUCTION)

    assert [dest.relative_path for dest in result.produced] == ["icons/ok.svg"]
    assert set(result.errors) == {"src/img/broken.svg"}
    assert isinstance(result.errors["src/img/broken.svg"], SvgParseError)


@pytest.mark.parametrize(
    "view_box",
    ["-12.75 3.125 240.5 96.25", "0 0 123.456 78.912", "0,0,24,24"],
)
def test_viewbox_survives_coordinate_rounding(view_box: str) -> None:
    source = (
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="{view_box}">'
        '<path d="M1.123456 2.987654 L20.555555 21.444444"/></svg>'
    )

    optimized = optimize_svg(source)

    assert f'viewBox="{view_box}"' in optimized
    assert "1.123456" not in optimized
    assert optimize_svg(optimized) == optimized
