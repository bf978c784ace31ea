"""
Program Image I/O
=================

Reading and writing the two program image formats accepted by the
simulator.

Binary (.bin)
-------------
Flat sequence of words, little-endian, ceil(N/8) bytes per word. For the
default N = 16 that is two bytes per word, low byte first. Word k of the
file is loaded at address k.

Hex (.hex)
----------
Text, one word per line in hexadecimal (4 digits for N = 16). Blank lines
are skipped, and everything after `#` or `;` on a line is a comment:

    # hello world
    A005    ; LITERAL 5
    3006    ; ADD 6
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from bitserial.cpu.isa import word_mask
from bitserial.errors import ImageFormatError


logger = logging.getLogger(__name__)


class ImageFormat(Enum):
    """Program image file format."""
    BINARY = "bin"
    HEX = "hex"

    @classmethod
    def for_path(cls, path: Union[str, Path]) -> "ImageFormat":
        """Guess the format from a file extension (.hex is text, else binary)."""
        return cls.HEX if Path(path).suffix.lower() == ".hex" else cls.BINARY


def word_bytes(width: int) -> int:
    """Bytes per word in the binary format."""
    return (width + 7) // 8


# =============================================================================
# Binary Format
# =============================================================================

def parse_binary(data: bytes, width: int = 16, filename: Optional[str] = None) -> list[int]:
    """
    Decode a binary image.

    Raises:
        ImageFormatError: If the length is not a whole number of words or
            a word is wider than N bits
    """
    size = word_bytes(width)
    if len(data) % size:
        raise ImageFormatError(
            f"image length {len(data)} is not a multiple of the {size}-byte word size",
            filename,
        )
    mask = word_mask(width)
    words = []
    for offset in range(0, len(data), size):
        word = int.from_bytes(data[offset:offset + size], "little")
        if word & ~mask:
            raise ImageFormatError(
                f"word ${word:X} at offset {offset} exceeds {width} bits", filename
            )
        words.append(word)
    return words


def format_binary(words: Iterable[int], width: int = 16) -> bytes:
    """Encode words as a binary image."""
    size = word_bytes(width)
    mask = word_mask(width)
    return b"".join((word & mask).to_bytes(size, "little") for word in words)


# =============================================================================
# Hex Format
# =============================================================================

def parse_hex(text: str, width: int = 16, filename: Optional[str] = None) -> list[int]:
    """
    Decode a hex text image.

    Raises:
        ImageFormatError: If a line is not a single hex word or a word is
            wider than N bits
    """
    mask = word_mask(width)
    words = []
    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw
        for marker in ("#", ";"):
            line = line.split(marker, 1)[0]
        line = line.strip()
        if not line:
            continue
        try:
            word = int(line, 16)
        except ValueError:
            raise ImageFormatError(f"invalid hex word '{line}'", filename, line_no) from None
        if word < 0 or word & ~mask:
            raise ImageFormatError(f"word ${word:X} exceeds {width} bits", filename, line_no)
        words.append(word)
    return words


def format_hex(words: Iterable[int], width: int = 16) -> str:
    """Encode words as a hex text image, one word per line."""
    digits = (width + 3) // 4
    mask = word_mask(width)
    return "".join(f"{word & mask:0{digits}X}\n" for word in words)


# =============================================================================
# File Access
# =============================================================================

def load_image(
    path: Union[str, Path],
    width: int = 16,
    fmt: Optional[ImageFormat] = None,
) -> list[int]:
    """
    Read a program image from disk.

    Args:
        path: Image file
        width: CPU word width N
        fmt: Image format (default: guessed from the extension)

    Returns:
        The image words, word 0 first

    Raises:
        FileNotFoundError: If the file does not exist
        ImageFormatError: If the file is malformed
    """
    path = Path(path)
    fmt = fmt or ImageFormat.for_path(path)
    if fmt is ImageFormat.HEX:
        words = parse_hex(path.read_text(), width, str(path))
    else:
        words = parse_binary(path.read_bytes(), width, str(path))
    logger.info("Loaded %d words from %s (%s)", len(words), path, fmt.value)
    return words


def save_image(
    path: Union[str, Path],
    words: Iterable[int],
    width: int = 16,
    fmt: Optional[ImageFormat] = None,
) -> None:
    """Write a program image to disk in the given (or guessed) format."""
    path = Path(path)
    fmt = fmt or ImageFormat.for_path(path)
    words = list(words)
    if fmt is ImageFormat.HEX:
        path.write_text(format_hex(words, width))
    else:
        path.write_bytes(format_binary(words, width))
    logger.info("Saved %d words to %s (%s)", len(words), path, fmt.value)
