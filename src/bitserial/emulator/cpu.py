"""
Bit-Serial CPU Core
===================

Cycle-accurate model of the bit-serial CPU state machine.

The CPU moves one bit of address, data and control per clock. Every state
lasts N+1 cycles (see sequencer.py): a setup cycle, then one data cycle per
word bit, with the next state committed on the last cycle.

States:
    RESET      shift zeros into every register, park the bus at address 0
    FETCH      read the instruction word at pc; recompute Z, PAR and Ng
    INDIRECT   (base) drive the operand as an address
    OPERAND    (base) read the dereferenced operand
    EXECUTE    the 16-way instruction dispatch
    LOAD       read a data word into the accumulator
    STORE      write the accumulator out
    ADVANCE    pc + 1 on the shared adder
    HALT       absorbing; `stop` is asserted every cycle

Each cycle is split into two halves:
    drive()       Moore outputs: bus signals from the current registers only
    transition()  pure next-state function of registers, input bit and irq

BitSerialCPU.step() runs drive, lets the bus resolve the input bit, runs
transition and commits the new register record. A fault raised by either
half stops the CPU until reset().

Copyright (c) 2026 bitserial Contributors
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Callable, Optional, Union

from ..cpu.isa import (
    BaseFlags,
    ExtendedFlags,
    LOAD_OPERATIONS,
    Operation,
    STORE_OPERATIONS,
    Target,
    Variant,
    exchange_target,
    flag_layout,
    opcode_table,
    word_mask,
)
from ..errors import BusProtocolViolation, SimulationFault, StructuralInvariantViolation
from . import sequencer
from .alu import full_add, rotate, shift_in, shift_left, shift_right
from .bus import BusProtocol, BusSignals


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class CpuConfig:
    """
    Build-time options of a CPU instance.

    Attributes:
        width: Word width N (at least 8)
        variant: Instruction-set variant
        jumpz_on_nonzero: JUMPZ is taken when Z is clear instead of set
    """
    width: int = 16
    variant: Variant = Variant.BASE
    jumpz_on_nonzero: bool = False

    def __post_init__(self) -> None:
        if self.width < 8:
            raise ValueError(f"Word width must be at least 8 bits, got {self.width}")
        object.__setattr__(self, "variant", Variant.parse(self.variant))

    @property
    def extended(self) -> bool:
        return self.variant is Variant.EXTENDED


# =============================================================================
# State Graph
# =============================================================================

class State(Enum):
    """CPU state machine states."""
    RESET = auto()
    FETCH = auto()
    INDIRECT = auto()
    OPERAND = auto()
    EXECUTE = auto()
    STORE = auto()
    LOAD = auto()
    ADVANCE = auto()
    HALT = auto()


# Legal successors of each state; a commit outside this table is a fault
SUCCESSORS: dict[State, frozenset[State]] = {
    State.RESET: frozenset({State.FETCH}),
    State.FETCH: frozenset({
        State.EXECUTE, State.HALT, State.RESET, State.INDIRECT, State.FETCH,
    }),
    State.INDIRECT: frozenset({State.OPERAND}),
    State.OPERAND: frozenset({State.EXECUTE}),
    State.EXECUTE: frozenset({State.ADVANCE, State.LOAD, State.STORE, State.FETCH}),
    State.LOAD: frozenset({State.ADVANCE}),
    State.STORE: frozenset({State.ADVANCE}),
    State.ADVANCE: frozenset({State.FETCH}),
    State.HALT: frozenset({State.HALT, State.FETCH}),
}

# States that only exist in one variant
BASE_ONLY_STATES = frozenset({State.INDIRECT, State.OPERAND})


class StepStatus(Enum):
    """Outcome of one clock cycle."""
    NORMAL = auto()
    HALTED = auto()
    FAULTED = auto()


# =============================================================================
# Register Record
# =============================================================================

# Register exchanged with the accumulator for each GET/SET/SHADOW target
_TARGET_FIELDS = {
    Target.PC: "pc",
    Target.FLAGS: "flags",
    Target.COMPARE: "compare",
    Target.COUNTER: "tcount",
    Target.SHADOW: "shadow",
}


@dataclass
class Registers:
    """
    Complete CPU register record for one cycle.

    A committed record is never mutated: transition() copies it and
    returns the copy.

    All values stored as Python ints but represent:
    - acc, pc, op, flags, shadow, tcount, compare: N-bit unsigned
    - cmd: 4-bit opcode nibble
    - c: one-bit carry latch
    """
    state: State = State.RESET
    choice: State = State.FETCH     # Next state, committed on the last cycle
    counter: int = 0                # Cycle within the state, 0..N
    first: bool = True
    last4: bool = False

    acc: int = 0
    pc: int = 0
    op: int = 0
    flags: int = 0
    cmd: int = 0
    c: int = 0

    # Extended variant
    shadow: int = 0
    tcount: int = 0                 # Counter register, +1 per FETCH
    compare: int = 0

    # Internal latches
    dispatch: bool = False          # This FETCH services an interrupt
    indirected: bool = False        # Operand came through INDIRECT/OPERAND
    target: Optional[Target] = None
    match: bool = False             # Running counter == compare during FETCH
    irq: bool = False               # Raw interrupt latch

    def describe(self) -> str:
        """One-line summary used in fault reports and traces."""
        return (
            f"state={self.state.name} counter={self.counter} "
            f"acc=${self.acc:04X} pc=${self.pc:04X} op=${self.op:04X} "
            f"flags=${self.flags:04X} cmd=${self.cmd:X}"
        )


# =============================================================================
# Helpers
# =============================================================================

def _set_flag(flags: int, mask: Union[BaseFlags, ExtendedFlags], on: bool) -> int:
    mask = int(mask)
    return flags | mask if on else flags & ~mask


def _operation(regs: Registers, config: CpuConfig) -> Operation:
    return opcode_table(config.variant)[regs.cmd]


def _jump_taken(regs: Registers, config: CpuConfig) -> bool:
    """JUMPZ condition under the configured polarity."""
    zero = bool(regs.flags & int(flag_layout(config.variant).Z))
    return zero != config.jumpz_on_nonzero


# =============================================================================
# Outputs
# =============================================================================

def drive(regs: Registers, config: CpuConfig) -> BusSignals:
    """
    Compute the bus signals for the current cycle.

    Depends only on the register record, never on the input bit, so the
    bus can resolve `i` from these signals within the same cycle.
    """
    if regs.state is State.HALT:
        return BusSignals(stop=True)
    if regs.first:
        return BusSignals()

    match regs.state:
        case State.RESET:
            return BusSignals(ae=True, a=0)
        case State.FETCH:
            if regs.dispatch:
                return BusSignals(ae=True, a=regs.shadow & 1)
            return BusSignals(ie=True)
        case State.INDIRECT:
            return BusSignals(ae=True, a=regs.op & 1)
        case State.OPERAND | State.LOAD:
            return BusSignals(ie=True)
        case State.STORE:
            return BusSignals(oe=True, o=regs.acc & 1)
        case State.ADVANCE:
            total, _ = full_add(regs.pc & 1, 0, regs.c)
            return BusSignals(ae=True, a=total)
        case State.EXECUTE:
            return _drive_execute(regs, config)
    return BusSignals()


def _drive_execute(regs: Registers, config: CpuConfig) -> BusSignals:
    operation = _operation(regs, config)
    if (
        operation in LOAD_OPERATIONS
        or operation in STORE_OPERATIONS
        or operation is Operation.JUMP
        or regs.target is Target.IO
        or (operation is Operation.JUMPZ and _jump_taken(regs, config))
    ):
        return BusSignals(ae=True, a=regs.op & 1)
    if operation in (Operation.GET, Operation.SET) and regs.target is Target.PC:
        # New pc bits come from the accumulator
        return BusSignals(ae=True, a=regs.acc & 1)
    return BusSignals()


# =============================================================================
# Next-State Function
# =============================================================================

def transition(regs: Registers, i: int, irq: bool, config: CpuConfig) -> Registers:
    """
    Compute the register record for the next cycle.

    Args:
        regs: Current committed registers (not modified)
        i: Input bit resolved by the bus this cycle
        irq: Level of the external interrupt line
        config: CPU build options

    Returns:
        The next register record

    Raises:
        StructuralInvariantViolation: If the sequencer markers are
            inconsistent or the commit would leave the state graph
    """
    width = config.width
    sequencer.check(regs.counter, regs.first, regs.last4, width)
    if regs.state in BASE_ONLY_STATES and config.extended:
        raise StructuralInvariantViolation(
            f"{regs.state.name} does not exist in the extended variant"
        )

    r = replace(regs)
    m = sequencer.markers(regs.counter, width)

    if config.extended and irq:
        r.irq = True

    _HANDLERS[regs.state](r, i & 1, m, config)

    if m.last:
        _commit(regs.state, r, config)
    else:
        r.counter = sequencer.next_counter(regs.counter, width)
        r.first = False
        r.last4 = sequencer.markers(r.counter, width).last4
    return r


def _commit(current: State, r: Registers, config: CpuConfig) -> None:
    nxt = r.choice
    if nxt not in SUCCESSORS[current]:
        raise StructuralInvariantViolation(f"illegal transition {current.name} -> {nxt.name}")
    if nxt in BASE_ONLY_STATES and config.extended:
        raise StructuralInvariantViolation(
            f"illegal transition {current.name} -> {nxt.name} in the extended variant"
        )
    if current is State.FETCH and nxt is State.FETCH and not config.extended:
        raise StructuralInvariantViolation("interrupt dispatch in the base variant")
    r.state = nxt
    r.counter = 0
    r.first = True
    r.last4 = False


# =============================================================================
# State Handlers
# =============================================================================

def _reset_cycle(r: Registers, i: int, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    if m.first:
        r.choice = State.FETCH
        r.cmd = 0
        r.c = 0
        r.dispatch = False
        r.indirected = False
        r.target = None
        r.match = False
        r.irq = False
        return
    width = config.width
    for name in ("acc", "pc", "op", "flags", "shadow", "tcount", "compare"):
        setattr(r, name, shift_in(getattr(r, name), 0, width))


def _fetch_cycle(r: Registers, i: int, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    if r.dispatch:
        _dispatch_cycle(r, m, config)
        return

    width = config.width
    layout = flag_layout(config.variant)

    if m.first:
        r.flags = _set_flag(r.flags, layout.Z, True)
        r.flags = _set_flag(r.flags, layout.PAR, False)
        r.flags = _set_flag(r.flags, layout.NG, bool((r.acc >> (width - 1)) & 1))
        r.indirected = False
        r.choice = State.EXECUTE
        if config.extended:
            r.c = 1
            r.match = True
        return

    bit = r.acc & 1
    if bit:
        r.flags = _set_flag(r.flags, layout.Z, False)
        r.flags ^= int(layout.PAR)
    r.acc = rotate(r.acc, width)

    if m.last4:
        r.op >>= 1
        r.cmd = (r.cmd >> 1) | (i << 3)
    else:
        r.op = shift_in(r.op, i, width)

    if config.extended:
        # Counter ticks once per instruction on the shared adder
        total, r.c = full_add(r.tcount & 1, 0, r.c)
        r.tcount = shift_in(r.tcount, total, width)
        r.match = r.match and total == (r.compare & 1)
        r.compare = rotate(r.compare, width)
        if m.last and r.match and r.flags & ExtendedFlags.TE:
            r.irq = True

    if m.last:
        r.choice = _fetch_choice(r, i, config)


def _fetch_choice(r: Registers, i: int, config: CpuConfig) -> State:
    layout = flag_layout(config.variant)
    if r.flags & layout.HLT:
        return State.HALT
    if r.flags & layout.R:
        return State.RESET
    if config.extended:
        if r.flags & ExtendedFlags.IE and r.irq:
            r.dispatch = True
            return State.FETCH
        return State.EXECUTE
    # i is the opcode's top bit on the commit cycle
    if r.flags & BaseFlags.IND and not i:
        return State.INDIRECT
    return State.EXECUTE


def _dispatch_cycle(r: Registers, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    if m.first:
        r.flags = _set_flag(r.flags, ExtendedFlags.IE | ExtendedFlags.HLT, False)
        r.irq = False
        r.choice = State.FETCH
        return
    pc_bit = r.pc & 1
    r.pc = shift_in(r.pc, r.shadow & 1, config.width)
    r.shadow = shift_in(r.shadow, pc_bit, config.width)
    if m.last:
        r.dispatch = False


def _indirect_cycle(r: Registers, i: int, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    if m.first:
        r.choice = State.OPERAND
        r.indirected = True
        return
    r.op = rotate(r.op, config.width)


def _operand_cycle(r: Registers, i: int, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    if m.first:
        r.choice = State.EXECUTE
        return
    r.op = shift_in(r.op, i, config.width)


def _execute_choice(r: Registers, operation: Operation, config: CpuConfig) -> State:
    if operation in LOAD_OPERATIONS or (operation is Operation.GET and r.target is Target.IO):
        return State.LOAD
    if operation in STORE_OPERATIONS or (operation is Operation.SET and r.target is Target.IO):
        return State.STORE
    if operation is Operation.JUMP:
        return State.FETCH
    if operation is Operation.JUMPZ:
        return State.FETCH if _jump_taken(r, config) else State.ADVANCE
    if operation in (Operation.GET, Operation.SET) and r.target is Target.PC:
        return State.FETCH
    return State.ADVANCE


def _exchange(r: Registers, target: Target, width: int) -> None:
    """Swap one bit of the accumulator with the target register."""
    name = _TARGET_FIELDS[target]
    other = getattr(r, name)
    setattr(r, name, shift_in(other, r.acc & 1, width))
    r.acc = shift_in(r.acc, other & 1, width)


def _execute_cycle(r: Registers, i: int, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    width = config.width
    operation = _operation(r, config)

    if m.first:
        r.target = exchange_target(operation, r.op, config.variant, width)
        r.c = 1 if operation is Operation.SUB else 0
        r.choice = _execute_choice(r, operation, config)
        return

    layout = flag_layout(config.variant)
    acc_bit = r.acc & 1
    op_bit = r.op & 1
    rotate_flag = bool(r.flags & layout.ROT)

    match operation:
        case Operation.OR:
            r.acc = shift_in(r.acc, acc_bit | op_bit, width)
            r.op = rotate(r.op, width)
        case Operation.AND:
            r.acc = shift_in(r.acc, acc_bit & op_bit, width)
            if not config.extended and (m.last4 or r.indirected):
                r.op >>= 1
            else:
                r.op = rotate(r.op, width)
        case Operation.XOR:
            r.acc = shift_in(r.acc, acc_bit ^ op_bit, width)
            r.op = rotate(r.op, width)
        case Operation.INVERT:
            r.acc = shift_in(r.acc, acc_bit ^ 1, width)
            r.op = rotate(r.op, width)
        case Operation.ADD:
            total, r.c = full_add(acc_bit, op_bit, r.c)
            r.acc = shift_in(r.acc, total, width)
            r.op = rotate(r.op, width)
            if m.last:
                r.flags = _set_flag(r.flags, layout.CY, bool(r.c))
        case Operation.SUB:
            total, r.c = full_add(acc_bit, op_bit ^ 1, r.c)
            r.acc = shift_in(r.acc, total, width)
            r.op = rotate(r.op, width)
            if m.last:
                r.flags = _set_flag(r.flags, ExtendedFlags.U, not r.c)
        case Operation.LSHIFT:
            if op_bit:
                r.acc = shift_left(r.acc, width, rotate_flag)
            r.op = rotate(r.op, width)
        case Operation.RSHIFT:
            if op_bit:
                r.acc = shift_right(r.acc, width, rotate_flag)
            r.op = rotate(r.op, width)
        case Operation.LITERAL:
            r.acc = shift_in(r.acc, op_bit, width)
            r.op = rotate(r.op, width)
        case Operation.JUMP | Operation.JUMPZ:
            if r.choice is State.FETCH:
                r.pc = shift_in(r.pc, op_bit, width)
            r.op = rotate(r.op, width)
        case Operation.GET | Operation.SET | Operation.SHADOW:
            if r.target is Target.IO:
                r.op = rotate(r.op, width)
            else:
                _exchange(r, r.target, width)
        case Operation.LOAD | Operation.STORE | Operation.LOADC | Operation.STOREC:
            r.op = rotate(r.op, width)
        case Operation.UNUSED:
            pass


def _load_cycle(r: Registers, i: int, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    if m.first:
        r.choice = State.ADVANCE
        return
    r.acc = shift_in(r.acc, i, config.width)


def _store_cycle(r: Registers, i: int, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    if m.first:
        r.choice = State.ADVANCE
        return
    r.acc = rotate(r.acc, config.width)


def _advance_cycle(r: Registers, i: int, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    if m.first:
        r.c = 1
        r.choice = State.FETCH
        return
    total, r.c = full_add(r.pc & 1, 0, r.c)
    r.pc = shift_in(r.pc, total, config.width)


def _halt_cycle(r: Registers, i: int, m: sequencer.CycleMarkers, config: CpuConfig) -> None:
    r.choice = State.HALT
    if m.last and config.extended and r.flags & ExtendedFlags.IE and r.irq:
        r.dispatch = True
        r.choice = State.FETCH


_HANDLERS: dict[State, Callable[[Registers, int, sequencer.CycleMarkers, CpuConfig], None]] = {
    State.RESET: _reset_cycle,
    State.FETCH: _fetch_cycle,
    State.INDIRECT: _indirect_cycle,
    State.OPERAND: _operand_cycle,
    State.EXECUTE: _execute_cycle,
    State.LOAD: _load_cycle,
    State.STORE: _store_cycle,
    State.ADVANCE: _advance_cycle,
    State.HALT: _halt_cycle,
}


# =============================================================================
# CPU
# =============================================================================

class BitSerialCPU:
    """
    Bit-serial CPU emulator with instrumentation support.

    One call to step() is one clock cycle. The register record is replaced
    atomically at the end of each cycle, so a fault never leaves the CPU
    half-updated.

    Instrumentation hooks allow:
    - Observing every instruction fetch (used for PC breakpoints)

    Example:
        >>> cpu = BitSerialCPU(bus)
        >>> cpu.reset()
        >>> cycles = cpu.execute(10000)
        >>> print(f"acc=${cpu.acc:04X} pc=${cpu.pc:04X}")
    """

    def __init__(self, bus: BusProtocol, config: Optional[CpuConfig] = None):
        """
        Initialize CPU on a serial bus.

        Args:
            bus: Bus implementing BusProtocol
            config: Build options (defaults to 16-bit base variant)
        """
        self.bus = bus
        self.config = config or CpuConfig()
        self.regs = Registers()
        self.cycles = 0
        self.fault: Optional[SimulationFault] = None
        self.last_signals = BusSignals()

        # External interrupt line level (extended variant)
        self.irq: bool = False

        # on_fetch(pc) -> bool: return False to stop execution
        self.on_fetch: Optional[Callable[[int], bool]] = None

        # Set by on_fetch to request execution stop
        self.break_requested: bool = False

    # ========================================
    # Register Properties
    # ========================================

    @property
    def width(self) -> int:
        return self.config.width

    @property
    def state(self) -> State:
        """Current state machine state."""
        return self.regs.state

    @property
    def acc(self) -> int:
        """Accumulator."""
        return self.regs.acc

    @property
    def pc(self) -> int:
        """Program counter."""
        return self.regs.pc

    @property
    def op(self) -> int:
        """Operand latch."""
        return self.regs.op

    @property
    def flags(self) -> int:
        """Flags register."""
        return self.regs.flags

    @property
    def cmd(self) -> int:
        """Opcode nibble of the current instruction."""
        return self.regs.cmd

    @property
    def shadow(self) -> int:
        return self.regs.shadow

    @property
    def tcount(self) -> int:
        return self.regs.tcount

    @property
    def compare(self) -> int:
        return self.regs.compare

    @property
    def halted(self) -> bool:
        return self.regs.state is State.HALT

    def flag(self, name: str) -> bool:
        """
        Read a flag by name in the configured variant's layout.

        Raises:
            KeyError: If the variant has no such flag
        """
        return bool(self.regs.flags & flag_layout(self.config.variant)[name.upper()])

    @property
    def flag_cy(self) -> bool:
        """Carry flag."""
        return self.flag("CY")

    @property
    def flag_z(self) -> bool:
        """Zero flag."""
        return self.flag("Z")

    @property
    def flag_hlt(self) -> bool:
        """Halt request flag."""
        return self.flag("HLT")

    # ========================================
    # Control
    # ========================================

    def reset(self) -> None:
        """
        Return to the power-on state.

        The CPU starts in RESET and spends N+1 cycles clearing the
        registers before the first FETCH from address 0.
        """
        self.regs = Registers()
        self.cycles = 0
        self.fault = None
        self.break_requested = False
        self.last_signals = BusSignals()
        self.bus.reset()
        logger.info("CPU reset (%d-bit %s variant)", self.width, self.config.variant.value)

    def set_registers(self, **values: int) -> None:
        """
        Overwrite architectural registers (test and debugger support).

        Values are masked to the word width.
        """
        mask = word_mask(self.width)
        self.regs = replace(self.regs, **{k: v & mask for k, v in values.items()})

    # ========================================
    # Main Execution Loop
    # ========================================

    def step(self) -> StepStatus:
        """
        Execute exactly one clock cycle.

        Returns:
            StepStatus of the cycle; FAULTED persists until reset()
        """
        if self.fault is not None:
            return StepStatus.FAULTED

        current = self.regs
        try:
            signals = drive(current, self.config)
            signals.check()
            bit = self.bus.cycle(signals)
            if bit and not signals.ie:
                raise BusProtocolViolation("input line driven outside an ie window")
            nxt = transition(current, bit, self.irq, self.config)
        except SimulationFault as e:
            self.fault = e.with_context(current, self.cycles)
            logger.error("Simulation fault: %s", self.fault)
            return StepStatus.FAULTED

        self.last_signals = signals
        self.regs = nxt
        self.cycles += 1

        if nxt.first:
            self._entered(current.state, nxt)

        return StepStatus.HALTED if nxt.state is State.HALT else StepStatus.NORMAL

    def _entered(self, previous: State, regs: Registers) -> None:
        """Bookkeeping when a new state begins."""
        if regs.state is State.HALT and previous is not State.HALT:
            logger.info("CPU halted at pc=$%04X after %d cycles", regs.pc, self.cycles)
        elif regs.state is State.FETCH and not regs.dispatch:
            if self.on_fetch and not self.on_fetch(regs.pc):
                self.break_requested = True
        elif regs.state is State.FETCH:
            logger.debug("Interrupt dispatch at pc=$%04X", regs.pc)

    def at_fetch(self) -> bool:
        """True on the first cycle of an instruction fetch."""
        return self.regs.state is State.FETCH and self.regs.first and not self.regs.dispatch

    def execute(self, max_cycles: int) -> int:
        """
        Execute up to max_cycles clock cycles.

        Args:
            max_cycles: Maximum number of cycles to run

        Returns:
            Actual number of cycles executed

        Note:
            Execution stops early if the CPU halts, faults, or a hook
            requests a stop.
        """
        executed = 0
        self.break_requested = False
        while executed < max_cycles:
            status = self.step()
            if status is StepStatus.FAULTED:
                break
            executed += 1
            if status is StepStatus.HALTED or self.break_requested:
                break
        return executed

    def step_instruction(self, limit: Optional[int] = None) -> int:
        """
        Run until the next instruction fetch begins.

        Args:
            limit: Safety bound on cycles (default: 16 states' worth)

        Returns:
            Number of cycles executed
        """
        limit = limit if limit is not None else 16 * (self.width + 1)
        saved_hook = self.on_fetch
        self.on_fetch = None
        executed = 0
        try:
            while executed < limit:
                status = self.step()
                if status is StepStatus.FAULTED:
                    break
                executed += 1
                if status is StepStatus.HALTED or self.at_fetch():
                    break
        finally:
            self.on_fetch = saved_hook
        return executed
