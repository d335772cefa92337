"""HTTP service for browsing, inspecting and deleting the keys of a Redis database."""

__all__ = ["app", "config", "data", "info", "models", "scanner"]