"""Base protocol for the storage collaborators behind the router."""

from typing import Protocol, runtime_checkable

from ..config.registers import Target


@runtime_checkable
class BackingStore(Protocol):
    """Protocol for the pair of targets the router forwards traffic to.

    Implementations must return the deterministic default fill for bytes
    that were never written (see ``store.default_byte``).
    """

    def get(self, target: Target, addr: int) -> int:
        """Read a single byte from a target."""
        ...

    def set(self, target: Target, addr: int, value: int) -> None:
        """Write a single byte to a target."""
        ...
