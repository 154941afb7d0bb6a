"""Vector transform: structural SVG optimisation that keeps viewBox."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple
from xml.dom import minidom
from xml.sax.saxutils import quoteattr
from xml.parsers.expat import ExpatError

from scour import scour

from ..errors import SvgParseError
from ..logging import get_logger
from ..models import AssetClass, BuildMode, DestFile, SourceFile, TransformResult
from .base import Transform

MAX_PASSES = 10

# plugin name -> (scour option, value that enables the plugin)
_SCOUR_PLUGINS: Dict[str, Tuple[str, bool]] = {
    "cleanupEditorData": ("keep_editor_data", False),
    "collapseGroups": ("group_collapse", True),
    "convertColors": ("simple_colors", True),
    "convertStyleToAttrs": ("style_to_xml", True),
    "removeComments": ("strip_comments", True),
    "removeDesc": ("remove_descriptions", True),
    "removeMetadata": ("remove_metadata", True),
    "removeXMLProcInst": ("strip_xml_prolog", True),
}

_LENGTH = re.compile(r"^\s*(?P<number>[-+]?(?:\d+\.?\d*|\.\d+))(?:px)?\s*$")
# Anything allowed before the root element, then the root start tag itself.
_ROOT_TAG = re.compile(
    r"^(?P<prolog>(?:\s|<\?.*?\?>|<!--.*?-->|<!DOCTYPE[^>]*>)*)(?P<tag><svg\b[^>]*?)(?P<end>\s*/?>)",
    re.DOTALL,
)
_VIEWBOX_ATTR = re.compile(r"""\sviewBox\s*=\s*(?:"[^"]*"|'[^']*')""")

logger = get_logger("transforms.vector")


@dataclass(frozen=True)
class OptimizerOptions:
    """Options for the SVG optimiser; `precision` counts significant digits."""

    multipass: bool = True
    precision: int = 2
    disabled_plugins: Tuple[str, ...] = ("removeViewBox",)

    def enabled(self, plugin: str) -> bool:
        return plugin not in self.disabled_plugins


def _scour_options(options: OptimizerOptions):
    values = scour.sanitizeOptions()
    values.digits = options.precision
    values.quiet = True
    values.indent_type = "none"
    values.newlines = False
    values.enable_viewboxing = False
    for plugin, (attribute, enabled_value) in _SCOUR_PLUGINS.items():
        setattr(values, attribute, enabled_value if options.enabled(plugin) else not enabled_value)
    return values


def _remove_redundant_viewbox(text: str) -> str:
    """Drop a viewBox that only repeats `0 0 width height`."""
    document = minidom.parseString(text)
    root = document.documentElement
    view_box = root.getAttribute("viewBox").replace(",", " ").split()
    width = _LENGTH.match(root.getAttribute("width"))
    height = _LENGTH.match(root.getAttribute("height"))
    if len(view_box) != 4 or width is None or height is None:
        return text
    try:
        numbers = [float(part) for part in view_box]
    except ValueError:
        return text
    if numbers == [0.0, 0.0, float(width.group("number")), float(height.group("number"))]:
        root.removeAttribute("viewBox")
        return root.toxml()
    return text


def _source_viewbox(text: str) -> Optional[str]:
    root = minidom.parseString(text).documentElement
    if not root.hasAttribute("viewBox"):
        return None
    return root.getAttribute("viewBox")


def _restore_viewbox(text: str, view_box: str) -> str:
    """Put `view_box` back on the root start tag, replacing any rounded copy."""
    match = _ROOT_TAG.match(text)
    if match is None:
        return text
    tag = _VIEWBOX_ATTR.sub("", match.group("tag"))
    restored = f"{tag} viewBox={quoteattr(view_box)}"
    return text[: match.start("tag")] + restored + text[match.end("tag") :]


def optimize_svg(text: str, options: OptimizerOptions | None = None) -> str:
    """Optimise an SVG document, repeating passes until the output settles.

    Numbers are rounded to `options.precision` significant digits everywhere
    except the root viewBox, which is carried over from the source unchanged.
    """
    options = options or OptimizerOptions()
    scour_options = _scour_options(options)
    passes = MAX_PASSES if options.multipass else 1
    current = text
    try:
        view_box = _source_viewbox(text)
        for _ in range(passes):
            optimized = scour.scourString(current, scour_options)
            if optimized == current:
                break
            current = optimized
        if view_box is not None:
            current = _restore_viewbox(current, view_box)
        if options.enabled("removeViewBox"):
            current = _remove_redundant_viewbox(current)
    except ExpatError as exc:
        raise SvgParseError(f"Malformed SVG: {exc}") from exc
    except (ValueError, AttributeError, IndexError) as exc:
        raise SvgParseError(f"Unable to optimise SVG: {exc}") from exc
    return current


class VectorTransform(Transform):
    """Optimises stale SVG sources; a malformed file fails alone."""

    name = "vector"
    asset_class = AssetClass.VECTOR
    uses_staleness = True

    def __init__(self, paths, options: OptimizerOptions | None = None) -> None:
        super().__init__(paths)
        self.options = options or OptimizerOptions()

    def run(self, batch: Sequence[SourceFile], mode: BuildMode) -> TransformResult:
        result = TransformResult(transform=self.name)
        for source in batch:
            key = self.source_key(source)
            try:
                text = source.read_bytes().decode("utf-8")
            except UnicodeDecodeError as exc:
                error: Exception = SvgParseError(f"SVG is not valid UTF-8: {exc}")
            except OSError as exc:
                error = exc
            else:
                try:
                    optimized = optimize_svg(text, self.options)
                except SvgParseError as exc:
                    error = exc
                else:
                    result.produced.append(
                        DestFile(relative_path=self.output_name(source), content=optimized.encode("utf-8"))
                    )
                    continue
            logger.warning("Skipping %s: %s", key, error)
            result.errors[key] = error
        return result


__all__ = ["OptimizerOptions", "VectorTransform", "optimize_svg"]
