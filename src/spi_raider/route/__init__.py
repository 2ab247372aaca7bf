"""Route resolver."""

from .resolver import default_target, resolve_target

__all__ = ["default_target", "resolve_target"]
