"""Development server for assetflow dev mode."""

from .app import LiveReloadServer, ReloadHub, create_app

__all__ = ["LiveReloadServer", "ReloadHub", "create_app"]
