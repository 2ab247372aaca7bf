"""Router top level: wires ports, arbiter, decoder and register file together."""

from __future__ import annotations

from dataclasses import dataclass

from .bus.decoder import TransactionDecoder
from .bus.signals import IDLE_LEVEL, IDLE_PINS, Pins, Synchronizer
from .bus.transaction import Observer, TargetAccess, Transaction
from .config.management import ManagementPort
from .config.registers import (
    STATUS_ACTIVE_HOST,
    STATUS_CONTENTION,
    STATUS_CONTENTION_SEEN,
    STATUS_HOST_PENDING,
    STATUS_TARGET_PENDING,
    Host,
    RegisterFile,
    Target,
)
from .memory.device import BackingStore
from .memory.store import TargetStores
from .route.resolver import resolve_target
from .switch.return_path import ReturnPathSelector
from .switch.safe_switch import HostArbiter, TargetMux


# Byte seen by a host while MISO is held at IDLE_LEVEL
IDLE_BYTE = 0xFF


@dataclass(frozen=True)
class RouterOutputs:
    """MISO levels driven back to each master after a step."""

    miso_a: int = IDLE_LEVEL
    miso_b: int = IDLE_LEVEL
    mgmt_miso: int = IDLE_LEVEL

    def for_host(self, host: Host) -> int:
        return self.miso_a if host == Host.HOST_A else self.miso_b


class Router:
    """Inline router between two hosts and two storage targets.

    Every call to ``step()`` is one tick of the single logical clock. All
    decisions in a step read the state committed by the previous step:
    the decoder routes with the snapshot the target mux committed at its
    last idle instant, and the switches commit only after the decoder has
    consumed the bus.

    Args:
        stores: Storage collaborator; defaults to a pair of FlashStores.
    """

    def __init__(self, stores: BackingStore | None = None) -> None:
        self.stores: BackingStore = stores if stores is not None else TargetStores()
        self.registers = RegisterFile()
        self.management = ManagementPort(self.registers)
        self.arbiter = HostArbiter()
        self.target_mux = TargetMux()
        self.return_path = ReturnPathSelector(self.stores, self.target_mux.enabled)
        self.decoder = TransactionDecoder(self._route, self._fetch, self._commit)
        self._host_sync = {Host.HOST_A: Synchronizer(), Host.HOST_B: Synchronizer()}
        self._mgmt_sync = Synchronizer()
        self.observers: list[Observer] = []
        self.now = 0

    def attach(self, observer: Observer) -> None:
        """Register a consumer of Transaction and TargetAccess records."""
        self.observers.append(observer)

    def reset(self) -> None:
        """Synchronous total reset. Store contents are left alone."""
        self.registers.reset()
        self.management.reset()
        self.arbiter.reset()
        self.target_mux.reset()
        self.return_path.release()
        self.decoder.reset()
        for sync in self._host_sync.values():
            sync.reset()
        self._mgmt_sync.reset()

    def step(
        self,
        host_a: Pins = IDLE_PINS,
        host_b: Pins = IDLE_PINS,
        mgmt: Pins = IDLE_PINS,
    ) -> RouterOutputs:
        """Advance the clock by one step.

        Args:
            host_a: Raw pins driven by HostA this step.
            host_b: Raw pins driven by HostB this step.
            mgmt: Raw pins on the management channel this step.

        Returns:
            MISO levels for all three masters.
        """
        a = self._host_sync[Host.HOST_A].sample(host_a)
        b = self._host_sync[Host.HOST_B].sample(host_b)
        m = self._mgmt_sync.sample(mgmt)
        visible = self.registers.visible

        shared = self.arbiter.forward(a, b)
        txn = self.decoder.step(shared, self.arbiter.committed, self.now)
        if txn is not None:
            self._emit(txn)
        self.management.step(m)

        self.arbiter.arbitrate(visible.control.active_host, a, b)
        self.target_mux.gate(visible, shared)
        self.registers.set_status(self.status())
        self.registers.tick()
        self.now += 1

        return RouterOutputs(
            miso_a=self.arbiter.miso(Host.HOST_A, self.decoder.miso),
            miso_b=self.arbiter.miso(Host.HOST_B, self.decoder.miso),
            mgmt_miso=self.management.miso,
        )

    def status(self) -> int:
        """Current STATUS byte built from the switch and contention flags."""
        value = 0
        if self.arbiter.pending:
            value |= STATUS_HOST_PENDING
        if self.target_mux.pending:
            value |= STATUS_TARGET_PENDING
        if self.arbiter.contention:
            value |= STATUS_CONTENTION
        if self.arbiter.contention_seen:
            value |= STATUS_CONTENTION_SEEN
        if self.arbiter.committed == Host.HOST_B:
            value |= STATUS_ACTIVE_HOST
        return value

    def _route(self, is_read: bool, addr: int) -> Target:
        # Route from the snapshot the target mux committed at the last idle
        # instant, never from a configuration that arrived mid-transaction.
        target = resolve_target(is_read, addr, self.target_mux.committed)
        self.return_path.select(target)
        return target

    def _fetch(self, addr: int) -> int:
        value = self.return_path.fetch(addr)
        return IDLE_BYTE if value is None else value

    def _commit(self, addr: int, value: int) -> None:
        self.return_path.commit(addr, value)

    def _emit(self, txn: Transaction) -> None:
        self.return_path.release()
        for observer in self.observers:
            observer.on_transaction(txn)
        if txn.target is None or txn.opcode is None or txn.address is None:
            return
        access = TargetAccess(
            target=txn.target,
            opcode=txn.opcode,
            address=txn.address,
            payload=tuple(txn.payload),
        )
        for observer in self.observers:
            observer.on_target_access(access)
