"""
Bit-Serial CPU Instruction Set Package
======================================

This package contains the instruction-set definitions shared by the
emulator core, the disassembler and the command-line tools.

Modules:
    isa: Opcode tables for both variants, flag register layouts,
         exchange targets, and instruction encode/decode helpers.

Usage:
    from bitserial.cpu import (
        Operation,
        Variant,
        encode,
        decode,
    )

Copyright (c) 2026 bitserial Contributors
"""

# =============================================================================
# Public API Exports
# =============================================================================

from bitserial.cpu.isa import (
    # Core types
    Variant,
    Operation,
    Target,
    Instruction,
    BaseFlags,
    ExtendedFlags,
    # Opcode tables
    BASE_OPCODES,
    EXTENDED_OPCODES,
    LOAD_OPERATIONS,
    STORE_OPERATIONS,
    ADDRESS_OPERATIONS,
    # Lookup functions
    flag_layout,
    opcode_table,
    get_opcode,
    exchange_target,
    # Word helpers
    word_mask,
    operand_mask,
    io_bit,
    encode,
    decode,
)

__all__ = [
    # Core types
    "Variant",
    "Operation",
    "Target",
    "Instruction",
    "BaseFlags",
    "ExtendedFlags",
    # Opcode tables
    "BASE_OPCODES",
    "EXTENDED_OPCODES",
    "LOAD_OPERATIONS",
    "STORE_OPERATIONS",
    "ADDRESS_OPERATIONS",
    # Lookup functions
    "flag_layout",
    "opcode_table",
    "get_opcode",
    "exchange_target",
    # Word helpers
    "word_mask",
    "operand_mask",
    "io_bit",
    "encode",
    "decode",
]
