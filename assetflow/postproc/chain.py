"""Ordered CSS post-processing (autoprefix, minify)."""

from __future__ import annotations

from typing import Callable, Dict, List, Sequence

import rcssmin

from ..models import BuildMode
from .autoprefix import Autoprefixer


def minify_css(css: str) -> str:
    """Strip comments and whitespace; never grows the input."""
    minified = rcssmin.cssmin(css)
    return minified if len(minified) <= len(css) else css


_PROCESSORS: Dict[str, Callable[[], Callable[[str], str]]] = {
    "autoprefix": lambda: Autoprefixer().process,
    "minify": lambda: minify_css,
}


class PostProcessorChain:
    """Applies named CSS transforms in the order given."""

    def __init__(self, names: Sequence[str]) -> None:
        unknown = [name for name in names if name not in _PROCESSORS]
        if unknown:
            raise ValueError(f"Unknown CSS post-processors: {', '.join(unknown)}")
        self.names: List[str] = list(names)
        self._steps = [_PROCESSORS[name]() for name in self.names]

    @classmethod
    def for_mode(cls, mode: BuildMode) -> "PostProcessorChain":
        names = ["autoprefix"]
        if mode.minify:
            names.append("minify")
        return cls(names)

    def process(self, css: str) -> str:
        for step in self._steps:
            css = step(css)
        return css


__all__ = ["PostProcessorChain", "minify_css"]
