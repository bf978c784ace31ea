"""
Memory and Peripherals for the Bit-Serial CPU
=============================================

Word-level devices sitting behind the serial bus controller.

Memory Map (N = 16):
    $0000-$07FF  Word RAM (program and data)
    $0800-$0FFF  I/O block (I/O-select bit set)
    $1000-$FFFF  Mirrors of the above (the bus decodes only the low
                 N-4 address bits)

I/O Registers (offset from the I/O base):
    0  UART data  write: emit the low byte
                  read:  next received byte, or UART_EMPTY when none
    1  LEDs       write latch, readable
    2  Switches   read only

Copyright (c) 2026 bitserial Contributors
"""

import logging
from collections import deque
from typing import Iterable, Optional

from ..cpu.isa import io_bit, word_mask


logger = logging.getLogger(__name__)


class Memory:
    """
    Word-addressed RAM.

    Reads outside the populated range return 0 and writes there are
    dropped; both are logged as warnings.

    Attributes:
        width: Word width N
        size: Number of words
    """

    def __init__(self, width: int = 16, size: Optional[int] = None):
        """
        Initialize RAM.

        Args:
            width: Word width N
            size: Number of words (default: the whole space below the
                  I/O-select bit)
        """
        self.width = width
        self.size = size if size is not None else io_bit(width)
        self._mask = word_mask(width)
        self._data = [0] * self.size

    def read(self, address: int) -> int:
        """Read word at address."""
        if 0 <= address < self.size:
            return self._data[address]
        logger.warning("Read from unmapped memory address $%04X", address)
        return 0

    def write(self, address: int, value: int) -> None:
        """Write word to address."""
        if 0 <= address < self.size:
            self._data[address] = value & self._mask
            return
        logger.warning("Write to unmapped memory address $%04X dropped", address)

    def load_words(self, words: Iterable[int], start: int = 0) -> int:
        """
        Copy words into RAM.

        Returns:
            Number of words loaded

        Raises:
            ValueError: If the words do not fit
        """
        words = list(words)
        if start < 0 or start + len(words) > self.size:
            raise ValueError(
                f"{len(words)} words at ${start:04X} do not fit in {self.size}-word memory"
            )
        for offset, word in enumerate(words):
            self._data[start + offset] = word & self._mask
        return len(words)

    def dump(self, start: int = 0, count: Optional[int] = None) -> list[int]:
        """Return a copy of count words starting at start."""
        end = self.size if count is None else min(self.size, start + count)
        return self._data[start:end]

    def clear(self) -> None:
        self._data = [0] * self.size


class IoBlock:
    """
    Memory-mapped I/O block: UART byte port, LEDs and switches.

    Received bytes are queued with feed(); transmitted bytes accumulate
    in `output`.
    """

    UART = 0
    LEDS = 1
    SWITCHES = 2

    # Read value of the UART data register when nothing has been received
    UART_EMPTY = 0x100

    def __init__(self, width: int = 16):
        self.width = width
        self.output = bytearray()
        self.leds = 0
        self.switches = 0
        self._rx: deque[int] = deque()

    def feed(self, data: bytes) -> None:
        """Queue bytes for the program to read from the UART."""
        self._rx.extend(data)

    @property
    def pending_input(self) -> int:
        return len(self._rx)

    def read(self, offset: int) -> int:
        """Read I/O register at offset."""
        if offset == self.UART:
            if self._rx:
                return self._rx.popleft()
            return self.UART_EMPTY
        if offset == self.LEDS:
            return self.leds
        if offset == self.SWITCHES:
            return self.switches
        logger.warning("Read from unmapped I/O register %d", offset)
        return 0

    def write(self, offset: int, value: int) -> None:
        """Write I/O register at offset."""
        if offset == self.UART:
            byte = value & 0xFF
            self.output.append(byte)
            logger.debug("UART out $%02X", byte)
        elif offset == self.LEDS:
            self.leds = value & word_mask(self.width)
        elif offset == self.SWITCHES:
            logger.warning("Write to read-only switch register ignored")
        else:
            logger.warning("Write to unmapped I/O register %d", offset)

    def reset(self) -> None:
        """Clear output, LEDs and pending input."""
        self.output.clear()
        self.leds = 0
        self._rx.clear()
