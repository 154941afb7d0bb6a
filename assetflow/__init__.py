"""Incremental asset pipeline: build and dev-server modes for static front-end sources."""

__version__ = "0.1.0"
