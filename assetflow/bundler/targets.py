"""Browser-support query -> esbuild target identifiers."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..logging import get_logger

DEFAULT_QUERY = "chrome >= 109, edge >= 109, firefox >= 115, safari >= 15.6, ios_saf >= 15.6"

# browserslist names -> esbuild engine names
_ENGINE_ALIASES: Dict[str, str] = {
    "and_chr": "chrome",
    "and_ff": "firefox",
    "chrome": "chrome",
    "edge": "edge",
    "explorer": "ie",
    "ff": "firefox",
    "firefox": "firefox",
    "ie": "ie",
    "ios": "ios",
    "ios_saf": "ios",
    "node": "node",
    "opera": "opera",
    "safari": "safari",
}

_CLAUSE = re.compile(
    r"^(?P<browser>[a-z_]+)\s*(?P<op>>=|>|<=|<)?\s*(?P<version>\d+(?:\.\d+)*)$"
)
_SPLIT = re.compile(r"\s*,\s*|\s+or\s+", re.IGNORECASE)

logger = get_logger("bundler.targets")


def _parse_version(text: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in text.split("."))


def _format_version(version: Tuple[int, ...]) -> str:
    return ".".join(str(part) for part in version)


def resolve_targets(query: str | None) -> Tuple[str, ...]:
    """Return esbuild targets (e.g. ``("chrome87", "safari14")``) for a browserslist query.

    Understands the ``defaults`` preset and explicit ``<browser> >= <version>``
    clauses. Clauses that need usage statistics (``> 0.5%``, ``last 2 versions``,
    ``not dead``) are skipped. The lowest version per engine wins and the result
    is sorted by engine name so identical queries give identical targets.
    """
    minimums: Dict[str, Tuple[int, ...]] = {}
    pending = [clause for clause in _SPLIT.split(query or "") if clause.strip()]
    if not pending:
        pending = _SPLIT.split(DEFAULT_QUERY)

    expanded_defaults = False
    while pending:
        clause = pending.pop(0).strip().lower()
        if clause == "defaults":
            if not expanded_defaults:
                pending.extend(_SPLIT.split(DEFAULT_QUERY))
                expanded_defaults = True
            continue
        match = _CLAUSE.match(clause)
        if match is None:
            logger.debug("Ignoring unsupported browserslist clause: %s", clause)
            continue
        engine = _ENGINE_ALIASES.get(match.group("browser"))
        op = match.group("op") or ">="
        if engine is None or op in ("<", "<="):
            logger.debug("Ignoring browserslist clause without a lower bound: %s", clause)
            continue
        version = _parse_version(match.group("version"))
        if op == ">":
            version = (version[0] + 1,)
        current = minimums.get(engine)
        if current is None or version < current:
            minimums[engine] = version

    if not minimums and query:
        logger.debug("No usable clauses in %r; using defaults", query)
        return resolve_targets(None)
    return tuple(f"{engine}{_format_version(minimums[engine])}" for engine in sorted(minimums))


def load_browserslist_query(root: Path, configured: Optional[str] = None) -> str:
    """Find the project's browser-support query.

    Precedence: ``assetflow.yml`` ``browserslist`` key, ``.browserslistrc``,
    ``package.json`` ``browserslist`` field, then ``defaults``.
    """
    if configured:
        return configured

    rc_path = root / ".browserslistrc"
    if rc_path.is_file():
        clauses: List[str] = []
        for raw_line in rc_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.split("#", 1)[0].strip()
            if not line:
                continue
            if line.startswith("["):
                # Environment sections ([production], [development]) are not supported.
                break
            clauses.append(line)
        if clauses:
            return ", ".join(clauses)

    package_json = root / "package.json"
    if package_json.is_file():
        try:
            payload = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            payload = {}
        value = payload.get("browserslist") if isinstance(payload, dict) else None
        if isinstance(value, dict):
            value = value.get("production") or value.get("defaults")
        if isinstance(value, str) and value.strip():
            return value
        if isinstance(value, list):
            items = [str(item) for item in value if isinstance(item, str) and item.strip()]
            if items:
                return ", ".join(items)

    return "defaults"


__all__ = ["DEFAULT_QUERY", "load_browserslist_query", "resolve_targets"]
