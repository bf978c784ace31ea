"""
Shared test fixtures: small hand-assembled programs.
"""

import pytest

from bitserial.cpu import Operation, Variant, encode


# Base variant, N = 16. Prints HELLO\r\n through the UART, then halts.
HELLO_LAYOUT = {
    0x00: 0xA005,   # LITERAL 5
    0x01: 0x3006,   # ADD 6            acc = 11
    0x02: 0x903F,   # STOREC $3F
    0x03: 0xA040,   # LITERAL $40      (IND)
    0x04: 0xE001,   # SET flags
    0x05: 0x6030,   # LOAD [$30]       indirect through the string pointer
    0x06: 0xD00F,   # JUMPZ $0F        end of string
    0x07: 0xE800,   # SET io $800      UART out
    0x08: 0xA000,   # LITERAL 0
    0x09: 0xE001,   # SET flags        IND off
    0x0A: 0x8030,   # LOADC $30
    0x0B: 0x3001,   # ADD 1
    0x0C: 0x9030,   # STOREC $30
    0x0D: 0xC003,   # JUMP $03
    0x0E: 0xB000,   # UNUSED
    0x0F: 0xA080,   # LITERAL $80      (HLT)
    0x10: 0xE001,   # SET flags
    0x11: 0xC011,   # JUMP $11
    0x30: 0x0040,   # string pointer
    **{0x40 + i: ch for i, ch in enumerate(b"HELLO\r\n\x00")},
}


def assemble(layout: dict[int, int]) -> list[int]:
    """Turn an {address: word} layout into a flat word list."""
    words = [0] * (max(layout) + 1)
    for address, word in layout.items():
        words[address] = word
    return words


def halt_sequence(address: int, variant: Variant = Variant.BASE) -> dict[int, int]:
    """Set HLT and spin; the CPU halts on the fetch after the SET."""
    hlt = 0x80 if variant is Variant.BASE else 0x200
    return {
        address: encode(Operation.LITERAL, hlt, variant),
        address + 1: encode(Operation.SET, 1, variant),
        address + 2: encode(Operation.JUMP, address + 2, variant),
    }


@pytest.fixture
def hello_words():
    """The HELLO program as a word list."""
    return assemble(HELLO_LAYOUT)


@pytest.fixture
def program():
    """
    Build a word list from an {address: word} layout, appending a halt
    sequence at halt_at.
    """
    def _program(layout, halt_at=None, variant=Variant.BASE):
        layout = dict(layout)
        if halt_at is not None:
            layout.update(halt_sequence(halt_at, variant))
        return assemble(layout)
    return _program
