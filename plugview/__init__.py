"""Redis key browser over HTTP and helpers for inspecting MySQL and checking SQL."""

__version__ = "0.1.0"