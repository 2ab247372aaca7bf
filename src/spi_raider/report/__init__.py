"""Rich renderers for register state and scenario results."""

from .registers import format_register_map, format_route_config
from .results import format_results, summarize

__all__ = ["format_register_map", "format_results", "format_route_config", "summarize"]
