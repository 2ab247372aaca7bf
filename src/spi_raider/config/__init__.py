"""Configuration register file and its management channel."""

from .management import ManagementPort
from .registers import ControlState, Host, Mode, RangeConfig, RegisterFile, RouteConfig, Target

__all__ = [
    "ControlState", "Host", "ManagementPort", "Mode", "RangeConfig",
    "RegisterFile", "RouteConfig", "Target",
]
