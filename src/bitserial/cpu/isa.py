"""
Bit-Serial CPU Instruction Set Definition
=========================================

This module defines both instruction-set variants of the bit-serial CPU:
opcode tables, flag register layouts, exchange targets, and the helpers
used to encode and decode instruction words.

Instruction Word
----------------
An N-bit instruction word (N = 16 by default) is split into:

    N-1 .. N-4   opcode nibble
    N-5 .. 0     operand (N-4 bits)

Operand bit N-5 is the I/O-select bit: addresses with it set are routed to
the peripheral block instead of memory, and GET/SET with it set perform an
I/O read/write instead of a register exchange.

Variants
--------
The two variants are mutually exclusive and not bit-compatible:

1. **BASE**: optional operand indirection through the INDIRECT/OPERAND
   states (IND flag, opcodes 0..7 only), LOADC/STOREC, an UNUSED slot.

2. **EXTENDED**: INVERT, SUB, SHADOW, interrupts, a counter/compare timer
   and a shadow register for fast context save. No indirection.

Reference
---------
Flag bit positions are part of the programming model: programs set HLT,
R, ROT, IND, IE and TE by exchanging a literal into the flags register.

Copyright (c) 2026 bitserial Contributors
"""

from dataclasses import dataclass
from enum import Enum, IntFlag, auto
from typing import Optional, Type, Union


# =============================================================================
# Variant Selection
# =============================================================================

class Variant(Enum):
    """Instruction-set variant implemented by a CPU instance."""
    BASE = "base"
    EXTENDED = "extended"

    @classmethod
    def parse(cls, name: Union[str, "Variant"]) -> "Variant":
        """
        Look up a variant by name (case-insensitive).

        Raises:
            ValueError: If the name is not a known variant
        """
        if isinstance(name, Variant):
            return name
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = ", ".join(v.value for v in cls)
            raise ValueError(f"Unknown variant '{name}'. Valid variants: {valid}") from None


# =============================================================================
# Flag Register Layouts
# =============================================================================

class BaseFlags(IntFlag):
    """
    Flags register of the base variant.

    Bit layout:
        7    6    5  4    3    2   1  0
        HLT  IND  R  ROT  PAR  Ng  Z  Cy
    """
    CY = 0x01   # Carry out of the last ADD
    Z = 0x02    # Accumulator was zero at fetch
    NG = 0x04   # Accumulator top bit at fetch
    PAR = 0x08  # Accumulator parity at fetch
    ROT = 0x10  # Shifts rotate instead of filling with zero
    R = 0x20    # Reset the CPU at the next fetch
    IND = 0x40  # Operands of opcodes 0..7 are fetched indirectly
    HLT = 0x80  # Halt the CPU at the next fetch


class ExtendedFlags(IntFlag):
    """
    Flags register of the extended variant.

    Bit layout:
        9    8   7   6  5    4    3   2  1  0
        HLT  TE  IE  R  ROT  PAR  Ng  Z  U  Cy
    """
    CY = 0x001   # Carry out of the last ADD
    U = 0x002    # Borrow out of the last SUB
    Z = 0x004    # Accumulator was zero at fetch
    NG = 0x008   # Accumulator top bit at fetch
    PAR = 0x010  # Accumulator parity at fetch
    ROT = 0x020  # Shifts rotate instead of filling with zero
    R = 0x040    # Reset the CPU at the next fetch
    IE = 0x080   # Interrupts enabled
    TE = 0x100   # Counter/compare match raises an interrupt
    HLT = 0x200  # Halt the CPU at the next fetch


FlagLayout = Type[Union[BaseFlags, ExtendedFlags]]


def flag_layout(variant: Variant) -> FlagLayout:
    """Return the flag class describing the variant's flags register."""
    return BaseFlags if variant is Variant.BASE else ExtendedFlags


# =============================================================================
# Operations
# =============================================================================

class Operation(Enum):
    """
    Every operation either variant can dispatch in EXECUTE.

    The value is the assembler mnemonic.
    """
    OR = "OR"
    AND = "AND"
    XOR = "XOR"
    INVERT = "INVERT"
    ADD = "ADD"
    SUB = "SUB"
    LSHIFT = "LSHIFT"
    RSHIFT = "RSHIFT"
    LOAD = "LOAD"
    STORE = "STORE"
    LOADC = "LOADC"
    STOREC = "STOREC"
    LITERAL = "LITERAL"
    UNUSED = "UNUSED"
    SHADOW = "SHADOW"
    JUMP = "JUMP"
    JUMPZ = "JUMPZ"
    SET = "SET"
    GET = "GET"

    def __str__(self) -> str:
        return self.value


class Target(Enum):
    """Register exchanged with the accumulator by GET, SET and SHADOW."""
    PC = auto()
    FLAGS = auto()
    COMPARE = auto()
    COUNTER = auto()
    SHADOW = auto()
    IO = auto()     # GET/SET with the I/O-select bit: bus transfer instead


# =============================================================================
# Opcode Tables
# =============================================================================
# Key: opcode nibble, Value: Operation
# =============================================================================

BASE_OPCODES: dict[int, Operation] = {
    0x0: Operation.OR,
    0x1: Operation.AND,
    0x2: Operation.XOR,
    0x3: Operation.ADD,
    0x4: Operation.LSHIFT,
    0x5: Operation.RSHIFT,
    0x6: Operation.LOAD,
    0x7: Operation.STORE,
    0x8: Operation.LOADC,
    0x9: Operation.STOREC,
    0xA: Operation.LITERAL,
    0xB: Operation.UNUSED,
    0xC: Operation.JUMP,
    0xD: Operation.JUMPZ,
    0xE: Operation.SET,
    0xF: Operation.GET,
}

EXTENDED_OPCODES: dict[int, Operation] = {
    0x0: Operation.OR,
    0x1: Operation.AND,
    0x2: Operation.XOR,
    0x3: Operation.INVERT,
    0x4: Operation.ADD,
    0x5: Operation.SUB,
    0x6: Operation.LSHIFT,
    0x7: Operation.RSHIFT,
    0x8: Operation.LOAD,
    0x9: Operation.STORE,
    0xA: Operation.LITERAL,
    0xB: Operation.SHADOW,
    0xC: Operation.JUMP,
    0xD: Operation.JUMPZ,
    0xE: Operation.SET,
    0xF: Operation.GET,
}

# Operations that hand the data phase to the LOAD state
LOAD_OPERATIONS = frozenset({Operation.LOAD, Operation.LOADC})

# Operations that hand the data phase to the STORE state
STORE_OPERATIONS = frozenset({Operation.STORE, Operation.STOREC})

# Operations whose operand is an address rather than a value
ADDRESS_OPERATIONS = frozenset({
    Operation.LOAD, Operation.STORE, Operation.LOADC, Operation.STOREC,
    Operation.JUMP, Operation.JUMPZ,
})


def opcode_table(variant: Variant) -> dict[int, Operation]:
    """Return the nibble-to-operation table for a variant."""
    return BASE_OPCODES if variant is Variant.BASE else EXTENDED_OPCODES


def get_opcode(variant: Variant, operation: Operation) -> Optional[int]:
    """
    Look up the opcode nibble for an operation.

    Returns:
        The nibble, or None if the variant has no such operation
    """
    for nibble, op in opcode_table(variant).items():
        if op is operation:
            return nibble
    return None


# =============================================================================
# Word Layout Helpers
# =============================================================================

def word_mask(width: int) -> int:
    """All-ones mask for an N-bit word."""
    return (1 << width) - 1


def operand_mask(width: int) -> int:
    """Mask of the N-4 operand bits."""
    return (1 << (width - 4)) - 1


def io_bit(width: int) -> int:
    """The I/O-select bit: the top operand bit (bit N-5)."""
    return 1 << (width - 5)


@dataclass(frozen=True)
class Instruction:
    """
    A decoded instruction word.

    Attributes:
        opcode: The 4-bit opcode nibble
        operand: The N-4 bit operand
        operation: The operation the nibble selects in the given variant
    """
    opcode: int
    operand: int
    operation: Operation

    def __str__(self) -> str:
        return f"{self.operation} ${self.operand:X}"


def encode(
    operation: Operation,
    operand: int = 0,
    variant: Variant = Variant.BASE,
    width: int = 16,
) -> int:
    """
    Encode an instruction word.

    Args:
        operation: Operation to encode
        operand: Operand value (must fit in N-4 bits)
        variant: Instruction-set variant
        width: CPU word width N

    Returns:
        The N-bit instruction word

    Raises:
        ValueError: If the variant lacks the operation or the operand is too wide
    """
    nibble = get_opcode(variant, operation)
    if nibble is None:
        raise ValueError(f"{operation} is not part of the {variant.value} instruction set")
    if not 0 <= operand <= operand_mask(width):
        raise ValueError(
            f"Operand ${operand:X} does not fit in {width - 4} bits"
        )
    return (nibble << (width - 4)) | operand


def decode(word: int, variant: Variant = Variant.BASE, width: int = 16) -> Instruction:
    """Split an instruction word into opcode, operand and operation."""
    word &= word_mask(width)
    nibble = word >> (width - 4)
    return Instruction(
        opcode=nibble,
        operand=word & operand_mask(width),
        operation=opcode_table(variant)[nibble],
    )


def exchange_target(
    operation: Operation,
    operand: int,
    variant: Variant,
    width: int,
) -> Optional[Target]:
    """
    Decode the register GET, SET or SHADOW exchanges with the accumulator.

    GET/SET with the I/O-select bit set return Target.IO. Other operations
    have no exchange target and return None.
    """
    if operation is Operation.SHADOW:
        return Target.COUNTER if operand & 1 else Target.SHADOW
    if operation not in (Operation.GET, Operation.SET):
        return None
    if operand & io_bit(width):
        return Target.IO
    if variant is Variant.BASE:
        return Target.FLAGS if operand & 1 else Target.PC
    return (Target.PC, Target.FLAGS, Target.COMPARE, Target.COUNTER)[operand & 3]
