"""Tests for assetflow.paths."""

from __future__ import annotations

import pytest

from assetflow.paths import compile_glob, is_beneath, matches_any, scan_sources
from tests._fixtures.project_builder import ProjectBuilder


@pytest.mark.parametrize(
    ("pattern", "path", "expected"),
    [
        ("src/**/*.html", "src/index.html", True),
        ("src/**/*.html", "src/blog/2024/post.html", True),
        ("src/**/*.html", "src/index.htm", False),
        ("src/**/*.html", "other/index.html", False),
        ("src/img/**/*.{jpg,png}", "src/img/a/b.png", True),
        ("src/img/**/*.{jpg,png}", "src/img/a/b.gif", False),
        ("src/fonts/**/*", "src/fonts/inter/regular.woff2", True),
        ("src/*.ico", "src/favicon.ico", True),
        ("src/*.ico", "src/sub/favicon.ico", False),
        ("src/file?.txt", "src/file1.txt", True),
        ("src/[ab].css", "src/c.css", False),
    ],
)
def test_compile_glob_matches(pattern: str, path: str, expected: bool) -> None:
    assert compile_glob(pattern).matches(path) is expected


def test_glob_base_stops_at_first_wildcard() -> None:
    assert compile_glob("src/img/**/*.svg").base == "src/img"
    assert compile_glob("./src/*.html").base == "src"
    assert compile_glob("src/site.webmanifest").base == "src/site.webmanifest"
    assert compile_glob("src/site.webmanifest").is_literal


def test_matches_any() -> None:
    patterns = [compile_glob("src/js/**/*.js"), compile_glob("src/js/*.mjs")]

    assert matches_any("src/js/lib/util.js", patterns)
    assert not matches_any("src/styles/main.scss", patterns)


def test_scan_sources_relative_to_base(project: ProjectBuilder) -> None:
    project.write(
        {
            "src/img/logo.svg": "<svg/>",
            "src/img/icons/arrow.svg": "<svg/>",
            "src/img/readme.txt": "ignored",
        }
    )
    project.write_bytes("src/img/node_modules/skip.svg", b"<svg/>")

    sources = scan_sources(project.root, ["src/img/**/*.svg"], project.path("src/img"))

    assert [source.relative_path for source in sources] == ["logo.svg", "icons/arrow.svg"]
    assert all(source.mtime > 0 for source in sources)


def test_scan_sources_deduplicates_overlapping_patterns(project: ProjectBuilder) -> None:
    project.write({"src/site.webmanifest": "{}", "src/index.html": "<p></p>"})

    sources = scan_sources(
        project.root,
        ["src/site.webmanifest", "src/**/*", "src/missing.ico"],
        project.path("src"),
    )

    assert sorted(source.relative_path for source in sources) == ["index.html", "site.webmanifest"]


def test_scan_sources_missing_directory_is_empty(project: ProjectBuilder) -> None:
    assert scan_sources(project.root, ["src/fonts/**/*"], project.path("src")) == []


def test_is_beneath(project: ProjectBuilder) -> None:
    assert is_beneath(project.path("dist/css"), project.path("dist"))
    assert is_beneath(project.path("dist"), project.path("dist"))
    assert not is_beneath(project.path("dist/../src"), project.path("dist"))
