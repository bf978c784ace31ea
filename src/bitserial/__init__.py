"""
bitserial - Cycle-Accurate Bit-Serial CPU Simulator
===================================================

This package models a minimal bit-serial CPU: one bit of address, data
and control moves per clock cycle, and every instruction is fetched,
decoded and executed by a small finite-state machine driving a one-bit
ALU and a serial bus.

Main Components
---------------
- **cpu**: Instruction set tables for the base and extended variants
- **emulator**: The cycle-accurate core, bus, memory/I/O models and
  debugging support
- **disassembler**: Program listings for both variants
- **image**: Binary and hex program image I/O
- **cli**: `bitsim` (run an image) and `bitdis` (disassemble an image)

Quick Start
-----------
Run a program image:
    >>> from bitserial import Emulator
    >>> emu = Emulator()
    >>> emu.load_image("hello.hex")
    >>> emu.reset()
    >>> emu.run_until_halt()
    True

Or use the command-line tools:
    $ bitsim hello.hex
    $ bitdis hello.hex
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from bitserial.errors import (
    BitSerialError,
    SimulationFault,
    StructuralInvariantViolation,
    BusProtocolViolation,
    ImageError,
    ImageFormatError,
)
from bitserial.cpu import Variant, Operation, encode, decode
from bitserial.emulator import (
    Emulator,
    EmulatorConfig,
    BitSerialCPU,
    CpuConfig,
    StepStatus,
)
from bitserial.image import ImageFormat, load_image, save_image
from bitserial.disassembler import BitCpuDisassembler

__all__ = [
    "__version__",
    # Errors
    "BitSerialError",
    "SimulationFault",
    "StructuralInvariantViolation",
    "BusProtocolViolation",
    "ImageError",
    "ImageFormatError",
    # Instruction set
    "Variant",
    "Operation",
    "encode",
    "decode",
    # Emulator
    "Emulator",
    "EmulatorConfig",
    "BitSerialCPU",
    "CpuConfig",
    "StepStatus",
    # Images
    "ImageFormat",
    "load_image",
    "save_image",
    # Disassembly
    "BitCpuDisassembler",
]
