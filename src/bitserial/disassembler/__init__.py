"""
Bit-Serial Disassembler Module
==============================

Disassembly of program images for both instruction-set variants, used by
the `bitdis` command and by the emulator's instruction trace.

Usage:
    from bitserial.disassembler import BitCpuDisassembler

    disasm = BitCpuDisassembler()
    print(disasm.disassemble_to_text(words, start_address=0))

Copyright (c) 2026 bitserial Contributors
"""

from .bitcpu import BitCpuDisassembler, DisassembledInstruction, IO_REGISTER_NAMES

__all__ = [
    "BitCpuDisassembler",
    "DisassembledInstruction",
    "IO_REGISTER_NAMES",
]
