"""Backing stores behind the router."""

from .device import BackingStore
from .store import FlashStore, TargetStores, default_byte

__all__ = ["BackingStore", "FlashStore", "TargetStores", "default_byte"]
