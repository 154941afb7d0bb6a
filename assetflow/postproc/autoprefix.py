"""Vendor prefixing for expanded-format CSS."""

from __future__ import annotations

import re
from typing import Dict, List, Sequence, Set, Tuple

# Properties that still need a vendor-prefixed copy for the supported browser range.
_PROPERTY_PREFIXES: Dict[str, Tuple[str, ...]] = {
    "appearance": ("-webkit-", "-moz-"),
    "backdrop-filter": ("-webkit-",),
    "box-decoration-break": ("-webkit-",),
    "clip-path": ("-webkit-",),
    "hyphens": ("-webkit-",),
    "mask": ("-webkit-",),
    "mask-image": ("-webkit-",),
    "mask-position": ("-webkit-",),
    "mask-repeat": ("-webkit-",),
    "mask-size": ("-webkit-",),
    "print-color-adjust": ("-webkit-",),
    "tab-size": ("-moz-",),
    "text-size-adjust": ("-webkit-", "-moz-"),
    "user-select": ("-webkit-",),
}

# (property, value) pairs where only that value needs a prefixed property.
_CONDITIONAL_PROPERTIES: Dict[Tuple[str, str], Tuple[str, ...]] = {
    ("background-clip", "text"): ("-webkit-",),
}

# (property, value) pairs where the value itself takes a prefix.
_VALUE_PREFIXES: Dict[Tuple[str, str], Tuple[str, ...]] = {
    ("position", "sticky"): ("-webkit-sticky",),
}

_DECLARATION = re.compile(
    r"^(?P<indent>\s*)(?P<prop>-?[A-Za-z][A-Za-z-]*)\s*:\s*(?P<value>.+?)"
    r"(?P<important>\s*!important)?\s*;\s*$"
)


class Autoprefixer:
    """Adds vendor-prefixed declarations next to the standard ones.

    Works line by line on expanded output (one declaration per line). Prefixed
    copies are written on the same line as the original declaration so line
    numbers in an accompanying source map stay valid. A block that already
    contains a prefixed declaration is left alone for that property.
    """

    def process(self, css: str) -> str:
        lines = css.split("\n")
        stack: List[Tuple[List[int], Set[str]]] = [([], set())]
        for index, line in enumerate(lines):
            stripped = line.strip()
            if stripped.endswith("{"):
                stack.append(([], set()))
                continue
            match = _DECLARATION.match(line)
            if match is not None:
                prop = match.group("prop").lower()
                value = match.group("value").strip().lower()
                stack[-1][0].append(index)
                stack[-1][1].add(prop)
                stack[-1][1].add(f"{prop}:{value}")
            if stripped.startswith("}"):
                declarations, present = stack.pop() if len(stack) > 1 else stack[0]
                self._rewrite(lines, declarations, present)
        for declarations, present in stack:
            self._rewrite(lines, declarations, present)
        return "\n".join(lines)

    def _rewrite(self, lines: List[str], declarations: Sequence[int], present: Set[str]) -> None:
        for index in declarations:
            match = _DECLARATION.match(lines[index])
            if match is None:
                continue
            additions = self._prefixed(match, present)
            if additions:
                indent = match.group("indent")
                lines[index] = indent + " ".join(additions + [lines[index].strip()])
        del declarations[:]

    @staticmethod
    def _prefixed(match: "re.Match[str]", present: Set[str]) -> List[str]:
        prop = match.group("prop").lower()
        raw_value = match.group("value").strip()
        value = raw_value.lower()
        important = " !important" if match.group("important") else ""
        additions: List[str] = []

        prefixes = _PROPERTY_PREFIXES.get(prop, ()) + _CONDITIONAL_PROPERTIES.get((prop, value), ())
        for prefix in prefixes:
            name = f"{prefix}{prop}"
            if name in present:
                continue
            additions.append(f"{name}: {raw_value}{important};")

        for prefixed_value in _VALUE_PREFIXES.get((prop, value), ()):
            if f"{prop}:{prefixed_value}" in present:
                continue
            additions.append(f"{prop}: {prefixed_value}{important};")
        return additions


__all__ = ["Autoprefixer"]
