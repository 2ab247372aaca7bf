"""Return-path selector: sources response bytes from one target only."""

from __future__ import annotations

from collections.abc import Callable

from ..config.registers import Target
from ..memory.device import BackingStore

GateFn = Callable[[Target], bool]


class ReturnPathSelector:
    """Holds the frozen route of the open transaction.

    While a target is selected every response byte is read from it alone;
    the other target is never touched. With nothing selected, or with the
    selected target gated off, fetches return None and commits are
    dropped, so the port keeps driving its idle level.

    Args:
        stores: The pair of backing stores.
        enabled: Whether the target mux currently drives a target's
            chip-select. Defaults to always.
    """

    def __init__(self, stores: BackingStore, enabled: GateFn | None = None) -> None:
        self._stores = stores
        self._enabled: GateFn = enabled if enabled is not None else (lambda target: True)
        self.selected: Target | None = None

    def select(self, target: Target) -> None:
        self.selected = target

    def release(self) -> None:
        self.selected = None

    def _reachable(self) -> Target | None:
        if self.selected is None or not self._enabled(self.selected):
            return None
        return self.selected

    def fetch(self, addr: int) -> int | None:
        target = self._reachable()
        if target is None:
            return None
        return self._stores.get(target, addr)

    def commit(self, addr: int, value: int) -> bool:
        """Write one byte to the selected target.

        Returns:
            True if the byte reached a store.
        """
        target = self._reachable()
        if target is None:
            return False
        self._stores.set(target, addr, value)
        return True
