"""Transform implementations and the built-in registry."""

from __future__ import annotations

from typing import Callable, Dict, List, Sequence, Set

from ..bundler import EsbuildBundler
from ..config import AssetflowConfig
from .base import Transform
from .copy import MarkupTransform, StaticTransform
from .raster import RasterTransform
from .script import ScriptTransform
from .style import StyleTransform
from .vector import VectorTransform

_BUILTIN_FACTORIES: Dict[str, Callable[[AssetflowConfig], Transform]] = {
    "markup": lambda config: MarkupTransform(config.paths),
    "style": lambda config: StyleTransform(config.paths),
    "script": lambda config: ScriptTransform(
        config.paths,
        browserslist=config.browserslist,
        bundler=_esbuild_for(config),
    ),
    "static": lambda config: StaticTransform(config.paths),
    "raster": lambda config: RasterTransform(config.paths, workers=config.workers),
    "vector": lambda config: VectorTransform(config.paths),
}


def _esbuild_for(config: AssetflowConfig) -> EsbuildBundler:
    return EsbuildBundler(config.tools.esbuild, cwd=config.root)


def build_transforms(config: AssetflowConfig, enabled: Sequence[str] | None = None) -> List[Transform]:
    """Instantiate the built-in transforms, optionally restricted to `enabled` names."""
    enabled_set: Set[str] | None = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}
        unknown = enabled_set.difference(_BUILTIN_FACTORIES)
        if unknown:
            raise ValueError(f"Unknown transforms requested: {', '.join(sorted(unknown))}")

    transforms: List[Transform] = []
    for name, factory in _BUILTIN_FACTORIES.items():
        if enabled_set is not None and name not in enabled_set:
            continue
        instance = factory(config)
        if not isinstance(instance, Transform):
            raise TypeError(f"Transform factory for '{name}' did not return a Transform instance")
        transforms.append(instance)
    return transforms


__all__ = [
    "MarkupTransform",
    "RasterTransform",
    "ScriptTransform",
    "StaticTransform",
    "StyleTransform",
    "Transform",
    "VectorTransform",
    "build_transforms",
]
