"""
Bit-Serial CPU Emulator - Main Orchestrator
===========================================

This module provides the main `Emulator` class that wires the emulator
components together behind a high-level API for running and testing
programs.

The Emulator class:
- Builds the CPU, serial bus, word memory and I/O block
- Loads program images (binary or hex) or raw word lists
- Provides execution control (step, step_instruction, run, run_until_pc,
  run_until_halt)
- Integrates breakpoints and watchpoints for debugging
- Exposes UART output and register state for inspection

Example usage:
    >>> from bitserial.emulator import Emulator, EmulatorConfig
    >>> emu = Emulator()
    >>> emu.load_image("hello.hex")
    >>> emu.reset()
    >>> emu.run_until_halt(max_cycles=1_000_000)
    >>> print(emu.uart_output)

Copyright (c) 2026 bitserial Contributors
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..cpu.isa import Variant
from ..disassembler import BitCpuDisassembler
from ..errors import ImageFormatError
from ..image import ImageFormat, load_image
from .breakpoints import BreakEvent, BreakpointManager, BreakReason
from .bus import Bus
from .cpu import BitSerialCPU, CpuConfig, StepStatus
from .memory import IoBlock, Memory


logger = logging.getLogger(__name__)


_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EmulatorConfig:
    """
    Configuration for emulator initialization.

    Attributes:
        cpu: CPU build options (width, variant, JUMPZ polarity)
        memory_words: RAM size in words (default: everything below the
                      I/O-select bit)
        trace: Log every instruction fetch at DEBUG level

    Example:
        >>> config = EmulatorConfig(cpu=CpuConfig(variant=Variant.EXTENDED))
    """
    cpu: CpuConfig = field(default_factory=CpuConfig)
    memory_words: Optional[int] = None
    trace: bool = False

    @classmethod
    def from_env(cls) -> "EmulatorConfig":
        """
        Create EmulatorConfig from environment variables.

        Environment variables (all optional):
            BITSERIAL_WIDTH: Word width N (integer, at least 8)
            BITSERIAL_VARIANT: "base" or "extended"
            BITSERIAL_JUMPZ_NONZERO: JUMPZ taken on non-zero (1/true/yes/on)
            BITSERIAL_TRACE: Trace instruction fetches (1/true/yes/on)

        Raises:
            ValueError: If a variable holds an invalid value
        """
        width = 16
        if raw := os.environ.get("BITSERIAL_WIDTH"):
            try:
                width = int(raw)
            except ValueError:
                raise ValueError(f"BITSERIAL_WIDTH must be an integer, got '{raw}'") from None

        variant = Variant.parse(os.environ.get("BITSERIAL_VARIANT", "base"))
        jumpz = os.environ.get("BITSERIAL_JUMPZ_NONZERO", "").strip().lower() in _TRUE_VALUES
        trace = os.environ.get("BITSERIAL_TRACE", "").strip().lower() in _TRUE_VALUES

        return cls(
            cpu=CpuConfig(width=width, variant=variant, jumpz_on_nonzero=jumpz),
            trace=trace,
        )


class Emulator:
    """
    Bit-serial CPU emulator with instrumentation support.

    The emulator integrates with the BreakpointManager to support:
    - PC breakpoints (stop when a fetch begins at an address)
    - Word watchpoints (stop after a bus read or write of an address)
    - Register conditions (checked at every fetch)

    Attributes:
        config: The EmulatorConfig used to initialize this instance
        cpu: The BitSerialCPU instance (accessible for low-level control)
        bus: The serial bus controller
        memory: Word RAM
        io: I/O block (UART, LEDs, switches)
        breakpoints: The breakpoint/watchpoint manager

    Example:
        >>> emu = Emulator()
        >>> emu.load_words([0xA005, 0x3006, 0xA080, 0xE001])
        >>> emu.reset()
        >>> event = emu.run(10_000)
        >>> print(event.reason, f"acc=${emu.cpu.acc:04X}")
    """

    def __init__(self, config: Optional[EmulatorConfig] = None):
        """
        Initialize the emulator with given configuration.

        Args:
            config: EmulatorConfig; defaults to a 16-bit base-variant CPU
        """
        self.config = config or EmulatorConfig()
        width = self.config.cpu.width

        self.memory = Memory(width, self.config.memory_words)
        self.io = IoBlock(width)
        self.bus = Bus(width, self.memory, self.io)
        self.cpu = BitSerialCPU(self.bus, self.config.cpu)
        self.breakpoints = BreakpointManager(self.config.cpu.variant)
        self._disassembler = BitCpuDisassembler(self.config.cpu.variant, width)

        self.cpu.on_fetch = self._fetch_hook
        self.bus.on_read = self.breakpoints.check_read
        self.bus.on_write = self.breakpoints.check_write

        self._is_running = False

    def _fetch_hook(self, pc: int) -> bool:
        """
        Called on the first cycle of every instruction fetch.

        Returns:
            True to continue execution, False to stop (breakpoint hit)
        """
        if self.config.trace:
            instr = self._disassembler.disassemble_one(self.memory.read(pc), pc)
            logger.debug(
                "$%04X  %-8s %-8s acc=$%04X flags=$%04X",
                pc,
                instr.mnemonic,
                instr.operand_str,
                self.cpu.acc,
                self.cpu.flags,
            )
        return self.breakpoints.check_fetch(self.cpu, pc)

    # =========================================================================
    # Program Loading
    # =========================================================================

    def load_words(self, words: Iterable[int], start: int = 0) -> int:
        """
        Load raw words into memory.

        Returns:
            Number of words loaded

        Raises:
            ValueError: If the words do not fit in memory
        """
        return self.memory.load_words(words, start)

    def load_image(
        self,
        path: Union[str, Path],
        fmt: Optional[ImageFormat] = None,
        start: int = 0,
    ) -> int:
        """
        Load a program image file into memory.

        Args:
            path: Image file (.bin or .hex)
            fmt: Image format (default: guessed from the extension)
            start: Address of the first image word

        Returns:
            Number of words loaded

        Raises:
            FileNotFoundError: If the image file doesn't exist
            ImageFormatError: If the image is malformed or too large
        """
        words = load_image(path, self.config.cpu.width, fmt)
        try:
            return self.load_words(words, start)
        except ValueError as e:
            raise ImageFormatError(str(e), str(path)) from e

    def feed_input(self, data: bytes) -> None:
        """Queue bytes for the program to read from the UART."""
        self.io.feed(data)

    # =========================================================================
    # Execution Control
    # =========================================================================

    def reset(self) -> None:
        """
        Reset to power-on state.

        CPU and bus return to RESET, the I/O block is cleared and the
        cycle counter restarts. Memory contents are kept.
        """
        self.cpu.reset()
        self.io.reset()
        self._is_running = False
        self.breakpoints.clear_break_request()

    def step(self) -> StepStatus:
        """Execute a single clock cycle."""
        return self.cpu.step()

    def step_instruction(self) -> BreakEvent:
        """
        Execute until the next instruction fetch begins.

        Returns:
            BreakEvent with reason STEP, HALTED or FAULT
        """
        cycles = self.cpu.step_instruction()
        if self.cpu.fault is not None:
            return BreakEvent(BreakReason.FAULT, address=self.cpu.pc, cycles=cycles,
                              message=str(self.cpu.fault))
        if self.cpu.halted:
            return BreakEvent(BreakReason.HALTED, address=self.cpu.pc, cycles=cycles)
        return BreakEvent(
            BreakReason.STEP,
            address=self.cpu.pc,
            cycles=cycles,
            message=f"Step at ${self.cpu.pc:04X}",
        )

    def run(self, max_cycles: int = 1_000_000) -> BreakEvent:
        """
        Run until a stop condition or max cycles reached.

        Execution continues until:
        - A breakpoint, watchpoint or register condition triggers
        - The CPU halts
        - A simulation fault occurs
        - max_cycles are consumed

        Returns:
            BreakEvent describing why execution stopped
        """
        self._is_running = True
        self.cpu.break_requested = False
        self.bus.break_requested = False
        executed = 0
        event: Optional[BreakEvent] = None

        try:
            while executed < max_cycles:
                status = self.cpu.step()
                if status is StepStatus.FAULTED:
                    event = BreakEvent(
                        BreakReason.FAULT,
                        address=self.cpu.pc,
                        message=str(self.cpu.fault),
                    )
                    break
                executed += 1
                if status is StepStatus.HALTED:
                    event = BreakEvent(
                        BreakReason.HALTED,
                        address=self.cpu.pc,
                        message=f"CPU halted at ${self.cpu.pc:04X}",
                    )
                    break
                if self.cpu.break_requested or self.bus.break_requested:
                    event = self.breakpoints.last_event
                    break
        finally:
            self._is_running = False

        if event is None:
            event = BreakEvent(
                BreakReason.MAX_CYCLES,
                message=f"Reached max cycles ({max_cycles})",
            )
        event.cycles = executed
        if event.reason in (BreakReason.HALTED, BreakReason.FAULT, BreakReason.MAX_CYCLES):
            self.breakpoints.record(event)
        return event

    def run_until_pc(self, address: int, max_cycles: int = 10_000_000) -> bool:
        """
        Run until an instruction fetch begins at address.

        Creates a temporary breakpoint at the address and runs until hit.

        Returns:
            True if address was reached, False otherwise
        """
        was_set = self.breakpoints.has_breakpoint(address)
        if not was_set:
            self.breakpoints.add_breakpoint(address)
        try:
            event = self.run(max_cycles)
            return event.reason == BreakReason.PC_BREAKPOINT and event.address == address
        finally:
            if not was_set:
                self.breakpoints.remove_breakpoint(address)

    def run_until_halt(self, max_cycles: int = 10_000_000) -> bool:
        """
        Run until the CPU halts, ignoring breakpoints.

        Returns:
            True if the CPU halted, False on fault or cycle limit
        """
        remaining = max_cycles
        while remaining > 0:
            event = self.run(remaining)
            remaining -= event.cycles
            if event.reason is BreakReason.HALTED:
                return True
            if event.reason in (BreakReason.FAULT, BreakReason.MAX_CYCLES):
                return False
        return False

    # =========================================================================
    # Breakpoint Management (delegates to BreakpointManager)
    # =========================================================================

    def add_breakpoint(self, address: int) -> None:
        """Stop when an instruction fetch begins at address."""
        self.breakpoints.add_breakpoint(address)

    def remove_breakpoint(self, address: int) -> None:
        self.breakpoints.remove_breakpoint(address)

    def add_watchpoint(self, address: int, on_read: bool = False, on_write: bool = True) -> None:
        """Stop after a word transfer to or from address."""
        self.breakpoints.add_watchpoint(address, on_read, on_write)

    def clear_breakpoints(self) -> None:
        """Remove all breakpoints and watchpoints."""
        self.breakpoints.clear_breakpoints()
        self.breakpoints.clear_watchpoints()

    # =========================================================================
    # Memory Access
    # =========================================================================

    def read_word(self, address: int) -> int:
        """Read a word through the bus address decoder (memory or I/O)."""
        return self.bus.read(address)

    def write_word(self, address: int, value: int) -> None:
        """Write a word through the bus address decoder (memory or I/O)."""
        self.bus.write(address, value)

    # =========================================================================
    # State Inspection
    # =========================================================================

    @property
    def irq(self) -> bool:
        """External interrupt line level (extended variant)."""
        return self.cpu.irq

    @irq.setter
    def irq(self, level: bool) -> None:
        self.cpu.irq = level

    @property
    def uart_output(self) -> bytes:
        """Bytes the program has written to the UART since reset."""
        return bytes(self.io.output)

    @property
    def registers(self) -> dict:
        """
        Current register values as a dictionary.

        Returns:
            Dictionary with keys: state, acc, pc, op, flags, cmd, and for the
            extended variant shadow, tcount, compare
        """
        regs = {
            'state': self.cpu.state.name,
            'acc': self.cpu.acc,
            'pc': self.cpu.pc,
            'op': self.cpu.op,
            'flags': self.cpu.flags,
            'cmd': self.cpu.cmd,
        }
        if self.config.cpu.extended:
            regs.update(shadow=self.cpu.shadow, tcount=self.cpu.tcount, compare=self.cpu.compare)
        return regs

    @property
    def total_cycles(self) -> int:
        """Clock cycles executed since the last reset."""
        return self.cpu.cycles

    @property
    def halted(self) -> bool:
        return self.cpu.halted

    @property
    def is_running(self) -> bool:
        """True while inside run()."""
        return self._is_running

    def disassemble_at(self, address: int, count: int = 10) -> List[str]:
        """Disassemble count words of memory starting at address."""
        words = self.memory.dump(address, count)
        return [str(instr) for instr in self._disassembler.disassemble(words, address)]

    def __repr__(self) -> str:
        return (
            f"Emulator(width={self.config.cpu.width}, "
            f"variant={self.config.cpu.variant.value}, "
            f"pc=${self.cpu.pc:04X}, "
            f"cycles={self.total_cycles})"
        )
