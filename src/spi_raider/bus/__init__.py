"""Shared host bus: pins, shift registers and the transaction decoder."""

from .decoder import DecoderState, TransactionDecoder
from .signals import IDLE_LEVEL, IDLE_PINS, Pins, Synchronizer
from .transaction import Observer, TargetAccess, Transaction

__all__ = [
    "DecoderState", "IDLE_LEVEL", "IDLE_PINS", "Observer", "Pins",
    "Synchronizer", "TargetAccess", "Transaction", "TransactionDecoder",
]
