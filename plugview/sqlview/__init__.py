"""MySQL schema metadata, running-query tracking and checks for ad-hoc SQL."""

__all__ = ["countsql", "guards", "metadata", "queries"]