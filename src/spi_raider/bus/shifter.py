"""MSB-first byte shift registers for the slave side of a serial port."""

from __future__ import annotations

from .signals import IDLE_LEVEL


class ByteShifter:
    """Receive and transmit shift registers of one port.

    Bits are sampled on rising edges and assembled MSB-first; a byte is
    complete every 8 samples. The transmit side is loaded with a whole
    byte and emits its MSB first, one bit per falling edge.
    """

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        """Drop any partial byte in either direction."""
        self._rx_value = 0
        self._rx_bits = 0
        self._tx_value = 0
        self._tx_bits = 0
        self.miso = IDLE_LEVEL

    def shift_in(self, bit: int) -> int | None:
        """Sample one bit. Returns the byte once 8 bits have arrived."""
        self._rx_value = ((self._rx_value << 1) | (bit & 1)) & 0xFF
        self._rx_bits += 1
        if self._rx_bits < 8:
            return None
        value = self._rx_value
        self._rx_value = 0
        self._rx_bits = 0
        return value

    @property
    def tx_empty(self) -> bool:
        return self._tx_bits == 0

    def load(self, value: int) -> None:
        self._tx_value = value & 0xFF
        self._tx_bits = 8

    def shift_out(self) -> None:
        """Present the next transmit bit on MISO."""
        if self._tx_bits == 0:
            self.miso = IDLE_LEVEL
            return
        self.miso = (self._tx_value >> 7) & 1
        self._tx_value = (self._tx_value << 1) & 0xFF
        self._tx_bits -= 1

    def idle(self) -> None:
        """Stop driving data; discard anything left to transmit."""
        self._tx_bits = 0
        self.miso = IDLE_LEVEL
