"""Inline SPI router between two hosts and two storage targets."""

from .router import Router, RouterOutputs

__all__ = ["Router", "RouterOutputs"]
