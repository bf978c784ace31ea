"""
Serial Bus Controller for the Bit-Serial CPU
============================================

The Bus class is the central hub connecting the CPU to its collaborators:
- Memory (word-addressed RAM holding the program image)
- I/O block (UART byte port, LEDs, switches)

Bus Protocol:
    Signals driven by the CPU every cycle:
        a    serial address bit          ae   address enable
        o    serial output data bit      oe   output enable
                                         ie   input enable
        stop CPU is halted
    Signal driven back to the CPU:
        i    serial input data bit (only while ie is asserted)

    Word read:  ae for N cycles (address LSB first), then ie for N cycles.
    Word write: ae for N cycles, then oe for N cycles.

    At most one of ae/ie/oe may be asserted in any cycle.

Address Decode:
    Addresses with the I/O-select bit (bit N-5) set go to the I/O block,
    with the bits below it as the register offset. Everything else goes
    to memory.

Copyright (c) 2026 bitserial Contributors
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional, Protocol, TYPE_CHECKING

from ..cpu.isa import io_bit, word_mask
from ..errors import BusProtocolViolation
from .alu import shift_in

if TYPE_CHECKING:
    from .memory import Memory, IoBlock


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusSignals:
    """
    CPU-driven bus signals for one cycle.

    Attributes:
        a: Address bit (meaningful while ae is asserted)
        o: Output data bit (meaningful while oe is asserted)
        ae: Address enable
        ie: Input enable
        oe: Output enable
        stop: CPU is in HALT
    """
    a: int = 0
    o: int = 0
    ae: bool = False
    ie: bool = False
    oe: bool = False
    stop: bool = False

    @property
    def enables(self) -> int:
        """Number of strobes asserted this cycle."""
        return int(self.ae) + int(self.ie) + int(self.oe)

    def check(self) -> None:
        """
        Enforce the single-strobe rule.

        Raises:
            BusProtocolViolation: If more than one strobe is asserted
        """
        if self.enables > 1:
            asserted = [name for name in ("ae", "ie", "oe") if getattr(self, name)]
            raise BusProtocolViolation(
                f"bus protocol violation: {' and '.join(asserted)} asserted together"
            )


class BusProtocol(Protocol):
    """
    Protocol defining the serial bus interface.

    The CPU calls cycle() exactly once per clock with the signals it drives,
    and receives the input bit for that cycle.
    """
    def cycle(self, signals: BusSignals) -> int:
        """Clock one cycle of bus traffic and return the input bit."""
        ...

    def reset(self) -> None:
        """Return the bus to its idle state."""
        ...


class Device(Protocol):
    """Word-level device attached behind the serial bus."""
    def read(self, address: int) -> int:
        """Read word at address."""
        ...

    def write(self, address: int, value: int) -> None:
        """Write word to address."""
        ...


class Phase(Enum):
    """Which transfer the bus is in the middle of."""
    IDLE = auto()
    ADDRESS = auto()
    READ = auto()
    WRITE = auto()


@dataclass
class BusState:
    """
    Complete bus controller state for snapshotting.
    """
    address: int = 0          # Address shift register
    phase: Phase = Phase.IDLE
    bit_count: int = 0        # Bits transferred in the current phase
    read_latch: int = 0       # Word being shifted out to the CPU
    write_buffer: int = 0     # Word being shifted in from the CPU


class Bus:
    """
    Serial bus controller for the bit-serial CPU.

    Converts the CPU's one-bit-per-cycle traffic into word reads and writes
    on memory and on the I/O block:
    - ae cycles shift the address register
    - ie cycles latch the addressed word on the first bit, then shift it out
    - oe cycles collect bits and write the word after the N-th bit

    Hooks allow:
    - Watching word reads and writes (used for watchpoints)

    Example:
        >>> bus = Bus(16, memory, io)
        >>> bit = bus.cycle(BusSignals(ae=True, a=1))
    """

    def __init__(
        self,
        width: int,
        memory: "Memory",
        io: Optional["IoBlock"] = None,
    ):
        """
        Initialize bus controller.

        Args:
            width: CPU word width N
            memory: Memory device
            io: I/O block (or None to leave the I/O space unmapped)
        """
        self.width = width
        self._memory = memory
        self._io = io
        self._io_bit = io_bit(width)
        # Address bits above the I/O-select bit are not decoded
        self._decode_mask = (self._io_bit << 1) - 1
        self._state = BusState()

        # on_read(address, value) -> bool: return False to request a stop
        self.on_read: Optional[Callable[[int, int], bool]] = None
        # on_write(address, value) -> bool: return False to request a stop
        self.on_write: Optional[Callable[[int, int], bool]] = None

        # Set when a hook asks for execution to stop
        self.break_requested: bool = False

    @property
    def state(self) -> BusState:
        """Current bus controller state."""
        return self._state

    @property
    def address(self) -> int:
        """Current contents of the address shift register."""
        return self._state.address

    @property
    def memory(self) -> "Memory":
        return self._memory

    @property
    def io(self) -> Optional["IoBlock"]:
        return self._io

    def reset(self) -> None:
        """Clear the address register and abandon any partial transfer."""
        self._state = BusState()
        self.break_requested = False

    # =========================================================================
    # Word Access
    # =========================================================================

    def read(self, address: int) -> int:
        """
        Read word from the device decoded at address.

        Args:
            address: N-bit bus address

        Returns:
            Word value (0 when nothing is mapped)
        """
        address &= self._decode_mask
        if address & self._io_bit:
            if self._io is None:
                logger.warning("Read from unmapped I/O address $%04X", address)
                return 0
            return self._io.read(address & (self._io_bit - 1)) & word_mask(self.width)
        return self._memory.read(address) & word_mask(self.width)

    def write(self, address: int, value: int) -> None:
        """
        Write word to the device decoded at address.

        Args:
            address: N-bit bus address
            value: Word value
        """
        value &= word_mask(self.width)
        address &= self._decode_mask
        if address & self._io_bit:
            if self._io is None:
                logger.warning("Write to unmapped I/O address $%04X", address)
                return
            self._io.write(address & (self._io_bit - 1), value)
            return
        self._memory.write(address, value)

    # =========================================================================
    # Serial Interface
    # =========================================================================

    def cycle(self, signals: BusSignals) -> int:
        """
        Clock one cycle of bus traffic.

        Args:
            signals: Signals driven by the CPU this cycle

        Returns:
            Input bit for the CPU (0 unless ie is asserted)

        Raises:
            BusProtocolViolation: If more than one strobe is asserted
        """
        signals.check()
        state = self._state

        if signals.ae:
            if state.phase is not Phase.ADDRESS:
                state.phase = Phase.ADDRESS
                state.bit_count = 0
            state.address = shift_in(state.address, signals.a, self.width)
            state.bit_count += 1
            return 0

        if signals.ie:
            if state.phase is not Phase.READ:
                state.phase = Phase.READ
                state.bit_count = 0
                state.read_latch = self.read(state.address)
            bit = (state.read_latch >> state.bit_count) & 1
            state.bit_count += 1
            if state.bit_count == self.width:
                self._word_read(state.address & self._decode_mask, state.read_latch)
                state.phase = Phase.IDLE
            return bit

        if signals.oe:
            if state.phase is not Phase.WRITE:
                state.phase = Phase.WRITE
                state.bit_count = 0
                state.write_buffer = 0
            state.write_buffer |= (signals.o & 1) << state.bit_count
            state.bit_count += 1
            if state.bit_count == self.width:
                self.write(state.address, state.write_buffer)
                self._word_written(state.address & self._decode_mask, state.write_buffer)
                state.phase = Phase.IDLE
            return 0

        return 0

    def _word_read(self, address: int, value: int) -> None:
        """Notify hooks that a complete word was read."""
        logger.debug("bus read $%04X from $%04X", value, address)
        if self.on_read and not self.on_read(address, value):
            self.break_requested = True

    def _word_written(self, address: int, value: int) -> None:
        """Notify hooks that a complete word was written."""
        logger.debug("bus write $%04X to $%04X", value, address)
        if self.on_write and not self.on_write(address, value):
            self.break_requested = True
