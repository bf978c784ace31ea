"""
Bit-Serial Simulator Error Hierarchy
====================================

This module defines the exception hierarchy for the whole package.
All exceptions inherit from BitSerialError, allowing callers to catch every
simulator-related error with a single except clause if desired.

Exception Hierarchy
-------------------
BitSerialError (base)
├── SimulationFault (fatal, carries a register snapshot)
│   ├── StructuralInvariantViolation - cycle counter or state graph broken
│   └── BusProtocolViolation - more than one strobe, or stray input data
└── ImageError (program image handling)
    └── ImageFormatError - malformed binary or hex image

Design Philosophy
-----------------
A simulation fault means the model itself is broken, not that the
simulated program misbehaved. Faults are never recovered from: the CPU
records the fault, reports the register snapshot and refuses to step
further until it is reset.

Entering HALT is not an error and has no exception; it is reported
through the per-cycle step status.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from bitserial.emulator.cpu import Registers


# =============================================================================
# Base Exception Class
# =============================================================================

class BitSerialError(Exception):
    """
    Base exception for all bit-serial simulator errors.

    All exceptions in the package inherit from this class, allowing callers
    to catch all simulator-related errors with a single except clause:

        try:
            emu.load_image("program.hex")
        except BitSerialError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Simulation Faults
# =============================================================================

class SimulationFault(BitSerialError):
    """
    Fatal internal-consistency fault raised by the CPU core.

    Attributes:
        message: The fault description
        snapshot: Register record at the cycle the fault was detected
        cycle: Total cycle count at the time of the fault (if known)
    """

    def __init__(
        self,
        message: str,
        snapshot: Optional["Registers"] = None,
        cycle: Optional[int] = None,
    ):
        self.message = message
        self.snapshot = snapshot
        self.cycle = cycle
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the fault with the cycle number and register snapshot.

        Example output:
            cycle 1234: bus protocol violation: ae and ie asserted together
                state=EXECUTE counter=3 acc=$0041 pc=$0007 op=$0800 flags=$0000
        """
        parts = []
        if self.cycle is not None:
            parts.append(f"cycle {self.cycle}: {self.message}")
        else:
            parts.append(self.message)
        if self.snapshot is not None:
            parts.append(f"    {self.snapshot.describe()}")
        return "\n".join(parts)

    def with_context(self, snapshot: "Registers", cycle: int) -> "SimulationFault":
        """Return a copy of this fault with snapshot and cycle filled in."""
        return type(self)(self.message, snapshot, cycle)


class StructuralInvariantViolation(SimulationFault):
    """
    The sequencer or the state graph is in an impossible configuration.

    Raised when:
        - The cycle counter leaves the 0..N range
        - The registered first/last4 markers disagree with the counter
        - A state commits to a successor its transition table does not allow
    """
    pass


class BusProtocolViolation(SimulationFault):
    """
    The serial bus was used outside its protocol.

    Raised when:
        - More than one of ae/ie/oe is asserted in the same cycle
        - A device drives the input line while ie is not asserted
    """
    pass


# =============================================================================
# Program Image Exceptions
# =============================================================================

class ImageError(BitSerialError):
    """
    Base exception for program image handling.

    Attributes:
        message: The error description
        filename: Image file the error relates to (optional)
        line: 1-indexed line number for text images (optional)
    """

    def __init__(
        self,
        message: str,
        filename: Optional[str] = None,
        line: Optional[int] = None,
    ):
        self.message = message
        self.filename = filename
        self.line = line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format as 'filename:line: message' when location is known."""
        if self.filename and self.line is not None:
            return f"{self.filename}:{self.line}: {self.message}"
        if self.filename:
            return f"{self.filename}: {self.message}"
        return self.message


class ImageFormatError(ImageError):
    """
    Malformed program image.

    Examples:
        - Binary image whose length is not a multiple of the word size
        - Hex line that is not a valid hexadecimal word
        - Word value wider than the configured CPU width
        - Image larger than the target memory
    """
    pass
