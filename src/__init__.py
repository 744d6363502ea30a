# src/__init__.py — v1
"""taskcache: output cache for task-graph build orchestrators."""

__version__ = "0.1.0"
