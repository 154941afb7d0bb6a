"""Script bundling collaborators."""

from .esbuild import BundleOutput, BundleRequest, Bundler, EsbuildBundler
from .targets import load_browserslist_query, resolve_targets

__all__ = [
    "BundleOutput",
    "BundleRequest",
    "Bundler",
    "EsbuildBundler",
    "load_browserslist_query",
    "resolve_targets",
]
