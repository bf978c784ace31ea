"""
Breakpoints and Watchpoints
===========================

Debugging support for the bit-serial emulator:
- PC breakpoints (stop when an instruction fetch begins at an address)
- Word watchpoints (stop after a bus read or write of an address)
- Register conditions (stop when a register matches at a fetch)

The BreakpointManager plugs into two hooks: the CPU's on_fetch hook,
called on the first cycle of every instruction fetch, and the bus's
on_read/on_write hooks, called when a word transfer completes.

Example usage:

    >>> from bitserial.emulator import Emulator, BreakReason
    >>> emu = Emulator()
    >>> emu.breakpoints.add_breakpoint(0x0010)
    >>> event = emu.run(100_000)
    >>> if event.reason == BreakReason.PC_BREAKPOINT:
    ...     print(f"Stopped at ${event.address:04X}")

Copyright (c) 2026 bitserial Contributors
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional, Set, TYPE_CHECKING

from ..cpu.isa import Variant, flag_layout

if TYPE_CHECKING:
    from .cpu import BitSerialCPU


class BreakReason(Enum):
    """Why execution stopped."""
    NONE = auto()
    PC_BREAKPOINT = auto()
    MEMORY_READ = auto()
    MEMORY_WRITE = auto()
    REGISTER_CONDITION = auto()
    STEP = auto()
    USER_INTERRUPT = auto()
    MAX_CYCLES = auto()
    HALTED = auto()         # CPU entered HALT
    FAULT = auto()          # Simulation fault


@dataclass
class BreakEvent:
    """
    Information about why execution stopped.

    Attributes:
        reason: Why execution stopped
        address: PC or bus address involved (if applicable)
        value: Word read or written (if applicable)
        cycles: Cycles executed by the run that stopped
        message: Human-readable description
    """
    reason: BreakReason
    address: Optional[int] = None
    value: Optional[int] = None
    cycles: int = 0
    message: str = ""

    def __str__(self) -> str:
        if self.message:
            return self.message
        match self.reason:
            case BreakReason.PC_BREAKPOINT:
                return f"Breakpoint at ${self.address:04X}" if self.address is not None else "Breakpoint"
            case BreakReason.MEMORY_READ:
                return f"Read ${self.value:04X} from ${self.address:04X}"
            case BreakReason.MEMORY_WRITE:
                return f"Write ${self.value:04X} to ${self.address:04X}"
            case BreakReason.REGISTER_CONDITION:
                return "Register condition met"
            case BreakReason.STEP:
                return "Single step"
            case BreakReason.MAX_CYCLES:
                return "Maximum cycles reached"
            case BreakReason.HALTED:
                return "CPU halted"
            case BreakReason.FAULT:
                return "Simulation fault"
            case _:
                return "Unknown"


class RegisterCondition:
    """
    Condition on CPU registers, evaluated at each instruction fetch.

    Supported registers: acc, pc, op, flags, shadow, tcount, compare,
    and flag_<name> for any flag of the CPU's variant (flag_z, flag_cy,
    flag_hlt, ...).

    Supported operators: ==, !=, <, <=, >, >=, & (bit test)

    Examples:
        >>> RegisterCondition('acc', '==', 0x0041)
        >>> RegisterCondition('flag_z', '==', True)
        >>> RegisterCondition('acc', '&', 0x8000)
    """

    REGISTERS = {'acc', 'pc', 'op', 'flags', 'shadow', 'tcount', 'compare'}
    OPERATORS = {'==', '!=', '<', '<=', '>', '>=', '&'}

    def __init__(
        self,
        register: str,
        operator: str,
        value: int | bool,
        description: str = "",
        variant: Optional[Variant] = None,
    ):
        self.register = register.lower()
        self.operator = operator
        self.value = value
        self.description = description or f"{register} {operator} {value}"

        if self.register not in self.REGISTERS and not self.register.startswith('flag_'):
            raise ValueError(
                f"Unknown register '{register}'. Valid registers: "
                f"{', '.join(sorted(self.REGISTERS))}, flag_<name>"
            )
        if self.operator not in self.OPERATORS:
            raise ValueError(
                f"Unknown operator '{operator}'. Valid operators: {', '.join(sorted(self.OPERATORS))}"
            )
        if variant is not None:
            self.validate(variant)

    def validate(self, variant: Variant) -> None:
        """
        Check that a flag condition names a flag of the variant.

        Raises:
            ValueError: If the variant has no such flag
        """
        if not self.register.startswith('flag_'):
            return
        layout = flag_layout(variant)
        if self.register[len('flag_'):].upper() not in layout.__members__:
            valid = ", ".join(f"flag_{name.lower()}" for name in layout.__members__)
            raise ValueError(
                f"Unknown flag '{self.register}' for the {variant.value} variant. "
                f"Valid flags: {valid}"
            )

    def _read(self, cpu: "BitSerialCPU") -> int | bool:
        if self.register.startswith('flag_'):
            return cpu.flag(self.register[len('flag_'):])
        return getattr(cpu, self.register)

    def check(self, cpu: "BitSerialCPU") -> bool:
        """
        Check if condition is met against CPU state.

        Raises:
            KeyError: If a flag name does not exist in the CPU's variant
        """
        actual = self._read(cpu)
        match self.operator:
            case '==':
                return actual == self.value
            case '!=':
                return actual != self.value
            case '<':
                return actual < self.value
            case '<=':
                return actual <= self.value
            case '>':
                return actual > self.value
            case '>=':
                return actual >= self.value
            case '&':
                return (actual & self.value) != 0
        return False

    def __repr__(self) -> str:
        return f"RegisterCondition({self.register!r}, {self.operator!r}, {self.value!r})"


class BreakpointManager:
    """
    Central debugging controller.

    Holds breakpoints, watchpoints and register conditions, and records
    the event that caused the most recent stop.

    Example:
        >>> mgr = BreakpointManager()
        >>> mgr.add_breakpoint(0x0010)
        >>> cpu.on_fetch = lambda pc: mgr.check_fetch(cpu, pc)
        >>> bus.on_write = mgr.check_write
    """

    def __init__(self, variant: Optional[Variant] = None):
        # Flag conditions are checked against this variant when added
        self.variant = variant
        self._pc_breakpoints: Set[int] = set()
        self._read_watchpoints: Set[int] = set()
        self._write_watchpoints: Set[int] = set()
        # List with None holes so condition ids stay stable
        self._register_conditions: List[Optional[RegisterCondition]] = []
        self._last_event: Optional[BreakEvent] = None
        self._step_mode: bool = False
        self._break_requested: bool = False

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def last_event(self) -> Optional[BreakEvent]:
        """The event recorded by the most recent failed check."""
        return self._last_event

    @property
    def step_mode(self) -> bool:
        return self._step_mode

    @step_mode.setter
    def step_mode(self, value: bool) -> None:
        self._step_mode = value

    @property
    def breakpoint_count(self) -> int:
        return len(self._pc_breakpoints)

    @property
    def watchpoint_count(self) -> int:
        return len(self._read_watchpoints) + len(self._write_watchpoints)

    # =========================================================================
    # PC Breakpoints
    # =========================================================================

    def add_breakpoint(self, address: int) -> None:
        """
        Stop when an instruction fetch begins at address.

        The instruction at that address has not executed yet when the
        run stops.
        """
        self._pc_breakpoints.add(address)

    def remove_breakpoint(self, address: int) -> None:
        self._pc_breakpoints.discard(address)

    def has_breakpoint(self, address: int) -> bool:
        return address in self._pc_breakpoints

    def clear_breakpoints(self) -> None:
        self._pc_breakpoints.clear()

    def list_breakpoints(self) -> List[int]:
        """Sorted breakpoint addresses."""
        return sorted(self._pc_breakpoints)

    # =========================================================================
    # Watchpoints
    # =========================================================================

    def add_read_watchpoint(self, address: int) -> None:
        """Stop after a word is read from address."""
        self._read_watchpoints.add(address)

    def add_write_watchpoint(self, address: int) -> None:
        """Stop after a word is written to address."""
        self._write_watchpoints.add(address)

    def add_watchpoint(self, address: int, on_read: bool = False, on_write: bool = True) -> None:
        if on_read:
            self.add_read_watchpoint(address)
        if on_write:
            self.add_write_watchpoint(address)

    def remove_watchpoint(self, address: int) -> None:
        """Remove read and write watchpoints at address."""
        self._read_watchpoints.discard(address)
        self._write_watchpoints.discard(address)

    def clear_watchpoints(self) -> None:
        self._read_watchpoints.clear()
        self._write_watchpoints.clear()

    def list_read_watchpoints(self) -> List[int]:
        return sorted(self._read_watchpoints)

    def list_write_watchpoints(self) -> List[int]:
        return sorted(self._write_watchpoints)

    # =========================================================================
    # Register Conditions
    # =========================================================================

    def add_register_condition(self, condition: RegisterCondition) -> int:
        """
        Add register condition.

        Returns:
            Condition ID for later removal

        Raises:
            ValueError: If it names a flag the variant lacks
        """
        if self.variant is not None:
            condition.validate(self.variant)
        for index, existing in enumerate(self._register_conditions):
            if existing is None:
                self._register_conditions[index] = condition
                return index
        self._register_conditions.append(condition)
        return len(self._register_conditions) - 1

    def add_condition(
        self,
        register: str,
        operator: str,
        value: int | bool,
        description: str = ""
    ) -> int:
        """Build a RegisterCondition and add it; returns its ID."""
        return self.add_register_condition(
            RegisterCondition(register, operator, value, description)
        )

    def remove_register_condition(self, condition_id: int) -> None:
        if 0 <= condition_id < len(self._register_conditions):
            self._register_conditions[condition_id] = None

    def clear_register_conditions(self) -> None:
        self._register_conditions.clear()

    def list_register_conditions(self) -> List[tuple[int, RegisterCondition]]:
        """Active conditions as (id, condition) pairs."""
        return [
            (index, cond) for index, cond in enumerate(self._register_conditions)
            if cond is not None
        ]

    # =========================================================================
    # Break Control
    # =========================================================================

    def request_break(self) -> None:
        """Stop at the next instruction fetch."""
        self._break_requested = True

    def clear_break_request(self) -> None:
        self._break_requested = False

    def record(self, event: BreakEvent) -> None:
        """Record an event raised outside the hooks (halt, fault, limit)."""
        self._last_event = event

    def clear_all(self) -> None:
        """Remove all breakpoints, watchpoints and conditions."""
        self.clear_breakpoints()
        self.clear_watchpoints()
        self.clear_register_conditions()
        self._step_mode = False
        self._break_requested = False
        self._last_event = None

    # =========================================================================
    # Hook Checks
    # =========================================================================

    def check_fetch(self, cpu: "BitSerialCPU", pc: int) -> bool:
        """
        Check break conditions at the start of an instruction fetch.

        Returns:
            True to continue execution, False to break
        """
        if self._break_requested:
            self._break_requested = False
            self._last_event = BreakEvent(
                BreakReason.USER_INTERRUPT, address=pc, message="User interrupt"
            )
            return False

        if self._step_mode:
            self._step_mode = False
            self._last_event = BreakEvent(
                BreakReason.STEP, address=pc, message=f"Step at ${pc:04X}"
            )
            return False

        if pc in self._pc_breakpoints:
            self._last_event = BreakEvent(
                BreakReason.PC_BREAKPOINT, address=pc, message=f"Breakpoint at ${pc:04X}"
            )
            return False

        for cond in self._register_conditions:
            if cond is not None and cond.check(cpu):
                self._last_event = BreakEvent(
                    BreakReason.REGISTER_CONDITION,
                    address=pc,
                    message=f"Condition: {cond.description}",
                )
                return False

        return True

    def check_read(self, address: int, value: int) -> bool:
        """Bus read hook. Returns False to break."""
        if address in self._read_watchpoints:
            self._last_event = BreakEvent(
                BreakReason.MEMORY_READ,
                address=address,
                value=value,
                message=f"Read ${value:04X} from ${address:04X}",
            )
            return False
        return True

    def check_write(self, address: int, value: int) -> bool:
        """Bus write hook. Returns False to break."""
        if address in self._write_watchpoints:
            self._last_event = BreakEvent(
                BreakReason.MEMORY_WRITE,
                address=address,
                value=value,
                message=f"Write ${value:04X} to ${address:04X}",
            )
            return False
        return True
