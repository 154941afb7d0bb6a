"""Configuration loading for assetflow (assetflow.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from .models import AssetClass
from .paths import is_beneath

CONFIG_FILENAMES = ("assetflow.yml", "assetflow.yaml")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or is inconsistent."""


@dataclass(frozen=True)
class PathSpec:
    """Where one asset class is read from and written to (paths relative to the project root)."""

    asset_class: AssetClass
    source_globs: Tuple[str, ...]
    source_base: str
    dest_dir: str
    watch_globs: Tuple[str, ...] = ()
    entry: Optional[str] = None

    @property
    def watch(self) -> Tuple[str, ...]:
        return self.watch_globs or self.source_globs


@dataclass
class ServerConfig:
    """Development server binding."""

    host: str = "127.0.0.1"
    port: int = 3000


@dataclass
class WatchConfig:
    """Watcher behaviour; a debounce of 0 dispatches every event immediately."""

    debounce_ms: int = 0


@dataclass
class ToolsConfig:
    """External executables used by transforms."""

    esbuild: Optional[str] = None


@dataclass
class PathConfig:
    """Static mapping of asset classes to source globs and destination directories."""

    root: Path
    source_root: str = "src"
    output_root: str = "dist"
    specs: Dict[AssetClass, PathSpec] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.specs:
            self.specs = default_path_specs(self.source_root, self.output_root)

    def spec(self, asset_class: AssetClass) -> PathSpec:
        return self.specs[asset_class]

    def resolve(self, relative: str) -> Path:
        return self.root / relative

    @property
    def source_dir(self) -> Path:
        return self.resolve(self.source_root)

    @property
    def output_dir(self) -> Path:
        return self.resolve(self.output_root)

    def dest_dir(self, asset_class: AssetClass) -> Path:
        return self.resolve(self.specs[asset_class].dest_dir)

    def base_dir(self, asset_class: AssetClass) -> Path:
        return self.resolve(self.specs[asset_class].source_base)

    def validate(self) -> None:
        output_dir = self.output_dir
        if output_dir.resolve() == self.root.resolve():
            raise ConfigError("output_root must not be the project root")
        if is_beneath(self.source_dir, output_dir):
            raise ConfigError("source_root must not live inside output_root")
        for asset_class, spec in self.specs.items():
            if not is_beneath(self.resolve(spec.dest_dir), output_dir):
                raise ConfigError(
                    f"{asset_class.value}.dest ({spec.dest_dir}) must be beneath output_root ({self.output_root})"
                )
            if asset_class in (AssetClass.STYLE, AssetClass.SCRIPT) and not spec.entry:
                raise ConfigError(f"{asset_class.value} requires an entry file")


@dataclass
class AssetflowConfig:
    """Represents the settings defined in assetflow.yml."""

    root: Path
    paths: PathConfig
    workers: int = field(default_factory=lambda: min(8, os.cpu_count() or 1))
    browserslist: Optional[str] = None
    server: ServerConfig = field(default_factory=ServerConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)


def default_path_specs(source_root: str = "src", output_root: str = "dist") -> Dict[AssetClass, PathSpec]:
    """Return the stock layout: src/{styles,js,img,fonts,...} -> dist/{css,js,img,...}."""
    src = source_root.rstrip("/")
    dist = output_root.rstrip("/")
    return {
        AssetClass.MARKUP: PathSpec(
            asset_class=AssetClass.MARKUP,
            source_globs=(f"{src}/**/*.html",),
            source_base=src,
            dest_dir=dist,
        ),
        AssetClass.STYLE: PathSpec(
            asset_class=AssetClass.STYLE,
            source_globs=(f"{src}/styles/main.scss",),
            source_base=f"{src}/styles",
            dest_dir=f"{dist}/css",
            watch_globs=(f"{src}/styles/**/*.scss",),
            entry=f"{src}/styles/main.scss",
        ),
        AssetClass.SCRIPT: PathSpec(
            asset_class=AssetClass.SCRIPT,
            source_globs=(f"{src}/js/index.js",),
            source_base=f"{src}/js",
            dest_dir=f"{dist}/js",
            watch_globs=(f"{src}/js/**/*.js",),
            entry=f"{src}/js/index.js",
        ),
        AssetClass.RASTER: PathSpec(
            asset_class=AssetClass.RASTER,
            source_globs=(f"{src}/img/**/*.{{jpg,jpeg,png,JPG,JPEG,PNG}}",),
            source_base=f"{src}/img",
            dest_dir=f"{dist}/img",
        ),
        AssetClass.VECTOR: PathSpec(
            asset_class=AssetClass.VECTOR,
            source_globs=(f"{src}/img/**/*.svg",),
            source_base=f"{src}/img",
            dest_dir=f"{dist}/img",
        ),
        AssetClass.STATIC: PathSpec(
            asset_class=AssetClass.STATIC,
            source_globs=(
                f"{src}/img/**/*.{{gif,webp,ico}}",
                f"{src}/fonts/**/*",
                f"{src}/favicons/**/*",
                f"{src}/site.webmanifest",
                f"{src}/favicon.ico",
            ),
            source_base=src,
            dest_dir=dist,
        ),
    }


def load_config(config_path: Path) -> AssetflowConfig:
    """Load configuration from disk, falling back to defaults when no file exists."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        paths = PathConfig(root=root)
        paths.validate()
        return AssetflowConfig(root=root, paths=paths)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    source_root = _as_str(data.get("source_root")) or "src"
    output_root = _as_str(data.get("output_root")) or "dist"
    specs = default_path_specs(source_root, output_root)

    paths_data = _as_dict(data.get("paths"))
    for key, raw in paths_data.items():
        try:
            asset_class = AssetClass(str(key).lower())
        except ValueError as exc:
            known = ", ".join(item.value for item in AssetClass)
            raise ConfigError(f"Unknown asset class '{key}' under paths (expected one of: {known})") from exc
        specs[asset_class] = _merge_spec(specs[asset_class], _as_dict(raw))

    paths = PathConfig(root=root, source_root=source_root, output_root=output_root, specs=specs)
    paths.validate()

    config = AssetflowConfig(root=root, paths=paths)

    workers = _as_int(data.get("workers"))
    if workers is not None:
        if workers < 1:
            raise ConfigError("workers must be a positive integer")
        config.workers = workers

    config.browserslist = _as_query(data.get("browserslist"))

    server_data = _as_dict(data.get("server"))
    if server_data:
        host = _as_str(server_data.get("host"))
        port = _as_int(server_data.get("port"))
        config.server = ServerConfig(
            host=host or ServerConfig.host,
            port=port if port is not None else ServerConfig.port,
        )

    watch_data = _as_dict(data.get("watch"))
    if watch_data:
        debounce = _as_int(watch_data.get("debounce_ms"))
        config.watch = WatchConfig(debounce_ms=max(0, debounce or 0))

    tools_data = _as_dict(data.get("tools"))
    if tools_data:
        config.tools = ToolsConfig(esbuild=_as_str(tools_data.get("esbuild")))

    return config


def _merge_spec(spec: PathSpec, data: Dict[str, Any]) -> PathSpec:
    if not data:
        return spec
    updates: Dict[str, Any] = {}
    entry = _as_str(data.get("entry"))
    if entry:
        updates["entry"] = entry
        updates["source_globs"] = (entry,)
    src = _as_str_list(data.get("src"))
    if src:
        updates["source_globs"] = tuple(src)
    base = _as_str(data.get("base"))
    if base:
        updates["source_base"] = base.rstrip("/")
    dest = _as_str(data.get("dest"))
    if dest:
        updates["dest_dir"] = dest.rstrip("/")
    watch = _as_str_list(data.get("watch"))
    if watch:
        updates["watch_globs"] = tuple(watch)
    return replace(spec, **updates)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        for name in CONFIG_FILENAMES:
            candidate = config_path / name
            if candidate.exists():
                return candidate.resolve()
        return (config_path / CONFIG_FILENAMES[0]).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


def _as_query(value: Any) -> Optional[str]:
    items = _as_str_list(value)
    if not items:
        return None
    return ", ".join(items)


__all__ = [
    "AssetflowConfig",
    "ConfigError",
    "PathConfig",
    "PathSpec",
    "ServerConfig",
    "ToolsConfig",
    "WatchConfig",
    "default_path_specs",
    "load_config",
]
