"""
Bit-Serial CPU Disassembler
===========================

Turns program image words back into readable instructions for either
instruction-set variant.

Every word decodes to some instruction (all 16 opcode nibbles are
assigned in both variants), so the listing is a straight word-by-word
walk. Data words in an image therefore show up as instructions too; the
comment column helps tell them apart.

Annotations:
    - GET/SET/SHADOW: the register exchanged, or the I/O register
    - JUMP/JUMPZ/LOAD/STORE: symbol name of the address, if known

Usage:
    disasm = BitCpuDisassembler(Variant.BASE)
    for instr in disasm.disassemble(words, start_address=0):
        print(instr)

Copyright (c) 2026 bitserial Contributors
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..cpu.isa import (
    ADDRESS_OPERATIONS,
    Operation,
    Target,
    Variant,
    decode,
    exchange_target,
    io_bit,
)


# Names of I/O registers by offset from the I/O base
IO_REGISTER_NAMES = {0: "UART", 1: "LEDS", 2: "SWITCHES"}


@dataclass
class DisassembledInstruction:
    """
    A single disassembled instruction word.

    Attributes:
        address: Word address of the instruction
        word: The raw instruction word
        opcode: 4-bit opcode nibble
        operation: Decoded operation
        operand: N-4 bit operand
        operand_str: Formatted operand
        comment: Annotation (exchange target, symbol), may be empty
    """
    address: int
    word: int
    opcode: int
    operation: Operation
    operand: int
    operand_str: str
    comment: str = ""

    @property
    def mnemonic(self) -> str:
        return self.operation.value

    def __str__(self) -> str:
        """Format as listing line: ADDRESS: WORD  MNEMONIC OPERAND ; COMMENT"""
        asm = f"{self.mnemonic} {self.operand_str}"
        if self.comment:
            return f"${self.address:04X}: {self.word:04X}  {asm:<16} ; {self.comment}"
        return f"${self.address:04X}: {self.word:04X}  {asm}"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "address": f"${self.address:04X}",
            "address_int": self.address,
            "word": f"${self.word:04X}",
            "opcode": self.opcode,
            "mnemonic": self.mnemonic,
            "operand": self.operand_str,
            "comment": self.comment,
        }


class BitCpuDisassembler:
    """
    Disassembler for bit-serial CPU images.

    Attributes:
        variant: Instruction-set variant used to decode opcode nibbles
        width: Word width N
    """

    def __init__(
        self,
        variant: Variant = Variant.BASE,
        width: int = 16,
        symbol_table: Optional[Dict[int, str]] = None,
    ):
        """
        Args:
            variant: Instruction-set variant
            width: Word width N
            symbol_table: Optional address-to-name map for annotations
        """
        self.variant = variant
        self.width = width
        self._symbol_table = symbol_table or {}
        self._digits = (width - 4 + 3) // 4

    def disassemble_one(self, word: int, address: int = 0) -> DisassembledInstruction:
        """Disassemble a single instruction word."""
        instr = decode(word, self.variant, self.width)
        return DisassembledInstruction(
            address=address,
            word=word,
            opcode=instr.opcode,
            operation=instr.operation,
            operand=instr.operand,
            operand_str=f"${instr.operand:0{self._digits}X}",
            comment=self._comment(instr.operation, instr.operand),
        )

    def _comment(self, operation: Operation, operand: int) -> str:
        target = exchange_target(operation, operand, self.variant, self.width)
        if target is Target.IO:
            offset = operand & (io_bit(self.width) - 1)
            return f"io {IO_REGISTER_NAMES.get(offset, f'+{offset}')}"
        if target is not None:
            return target.name.lower()
        if operation in ADDRESS_OPERATIONS:
            if operand & io_bit(self.width):
                offset = operand & (io_bit(self.width) - 1)
                return f"io {IO_REGISTER_NAMES.get(offset, f'+{offset}')}"
            return self._symbol_table.get(operand, "")
        return ""

    def disassemble(
        self,
        words: Sequence[int],
        start_address: int = 0,
        count: Optional[int] = None,
    ) -> List[DisassembledInstruction]:
        """
        Disassemble consecutive words.

        Args:
            words: Image words; words[0] lives at start_address
            start_address: Address of the first word
            count: Maximum number of instructions (None = all)
        """
        if count is not None:
            words = words[:count]
        return [
            self.disassemble_one(word, start_address + index)
            for index, word in enumerate(words)
        ]

    def disassemble_to_text(
        self,
        words: Sequence[int],
        start_address: int = 0,
        count: Optional[int] = None,
    ) -> str:
        """Disassemble and return a multi-line listing."""
        return "\n".join(str(i) for i in self.disassemble(words, start_address, count))

    def add_symbol(self, address: int, name: str) -> None:
        self._symbol_table[address] = name

    def add_symbols(self, symbols: Dict[int, str]) -> None:
        self._symbol_table.update(symbols)
