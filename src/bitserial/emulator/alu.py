"""
Serial ALU
==========

The bit-serial CPU owns exactly one arithmetic element: a one-bit full
adder. ADD, SUB (with the operand inverted) and the program-counter
increment in ADVANCE all run through it, one bit per cycle, with the carry
held in the CPU's carry latch between cycles. The extended variant's
counter also ticks through it during FETCH. No two of these ever run in
the same cycle, so the adder is a plain function.

The shift unit moves the whole accumulator one place when the operand bit
tested in the current cycle is set; the rotate flag selects whether the
bit falling off one end re-enters at the other.

Copyright (c) 2026 bitserial Contributors
"""


def full_add(x: int, y: int, carry_in: int) -> tuple[int, int]:
    """
    One-bit full adder.

    Args:
        x: First input bit
        y: Second input bit
        carry_in: Carry from the previous bit position

    Returns:
        (sum, carry_out)
    """
    total = x ^ y ^ carry_in
    carry_out = (x & y) | (x & carry_in) | (y & carry_in)
    return total, carry_out


def shift_left(value: int, width: int, rotate: bool) -> int:
    """Shift an N-bit word left one place, rotating the top bit if asked."""
    top = (value >> (width - 1)) & 1
    result = (value << 1) & ((1 << width) - 1)
    if rotate:
        result |= top
    return result


def shift_right(value: int, width: int, rotate: bool) -> int:
    """Shift an N-bit word right one place, rotating the low bit if asked."""
    low = value & 1
    result = value >> 1
    if rotate:
        result |= low << (width - 1)
    return result


def shift_in(value: int, bit: int, width: int) -> int:
    """
    Shift a register right one place, inserting `bit` at the top.

    This is how every register takes one bit per cycle: LSB leaves first,
    and after N cycles the N inserted bits form the new word.
    """
    return (value >> 1) | ((bit & 1) << (width - 1))


def rotate(value: int, width: int) -> int:
    """Rotate a register right one place (non-destructive shift-out)."""
    return shift_in(value, value & 1, width)
