"""
Bit-Serial CPU Emulator
=======================

A cycle-accurate model of a minimal bit-serial CPU, where one bit of
address, data and control moves per clock cycle.

This package provides:

- **CPU core**: the RESET/FETCH/EXECUTE/... state machine, base and
  extended instruction sets, one cycle per step
- **Serial ALU**: a single shared full adder plus a shift/rotate unit
- **Serial bus**: address/data lines with the ae/ie/oe strobes
- **Memory and I/O**: word RAM, UART byte port, LEDs and switches
- **Debugging**: breakpoints, watchpoints, register conditions

Quick Start
-----------

Basic usage::

    >>> from bitserial.emulator import Emulator
    >>> emu = Emulator()
    >>> emu.load_image("hello.hex")
    >>> emu.reset()
    >>> emu.run_until_halt()
    True
    >>> emu.uart_output
    b'HELLO\\r\\n'

With debugging::

    >>> emu.reset()
    >>> emu.add_breakpoint(0x0007)
    >>> event = emu.run()
    >>> if event.reason == BreakReason.PC_BREAKPOINT:
    ...     print(f"Stopped at ${event.address:04X}")

Module Structure
----------------

- `emulator.py`: Main Emulator class (high-level API)
- `cpu.py`: State machine, register record, BitSerialCPU
- `sequencer.py`: Cycle counter and first/last4/last markers
- `alu.py`: Full adder and shift unit
- `bus.py`: Serial bus controller
- `memory.py`: Word RAM and I/O block
- `breakpoints.py`: Debugging support

Copyright (c) 2026 bitserial Contributors
"""

# Main entry point
from .emulator import Emulator, EmulatorConfig

# CPU components
from .cpu import (
    BitSerialCPU,
    CpuConfig,
    Registers,
    State,
    StepStatus,
    SUCCESSORS,
    drive,
    transition,
)
from .sequencer import CycleMarkers
from .alu import full_add, shift_left, shift_right

# Bus and devices
from .bus import Bus, BusProtocol, BusSignals, BusState
from .memory import Memory, IoBlock

# Debugging support
from .breakpoints import (
    BreakpointManager,
    BreakEvent,
    BreakReason,
    RegisterCondition,
)

__all__ = [
    # Main API
    "Emulator",
    "EmulatorConfig",

    # CPU
    "BitSerialCPU",
    "CpuConfig",
    "Registers",
    "State",
    "StepStatus",
    "SUCCESSORS",
    "drive",
    "transition",
    "CycleMarkers",
    "full_add",
    "shift_left",
    "shift_right",

    # Bus
    "Bus",
    "BusProtocol",
    "BusSignals",
    "BusState",

    # Devices
    "Memory",
    "IoBlock",

    # Debugging
    "BreakpointManager",
    "BreakEvent",
    "BreakReason",
    "RegisterCondition",
]
