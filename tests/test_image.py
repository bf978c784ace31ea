"""
Program Image Tests
===================

Tests for the binary and hex image formats and file loading.
"""

import pytest

from bitserial.errors import ImageFormatError
from bitserial.image import (
    ImageFormat,
    format_binary,
    format_hex,
    load_image,
    parse_binary,
    parse_hex,
    save_image,
    word_bytes,
)


class TestBinary:
    """Test the little-endian binary format."""

    def test_parse(self):
        assert parse_binary(bytes([0x05, 0xA0, 0x06, 0x30])) == [0xA005, 0x3006]

    def test_format(self):
        assert format_binary([0xA005]) == b"\x05\xa0"

    def test_width_8(self):
        assert word_bytes(8) == 1
        assert parse_binary(b"\xa5\x36", width=8) == [0xA5, 0x36]

    def test_word_bytes_rounds_up(self):
        assert word_bytes(12) == 2

    def test_odd_length(self):
        with pytest.raises(ImageFormatError, match="not a multiple"):
            parse_binary(b"\x00\x01\x02", filename="prog.bin")

    def test_word_too_wide(self):
        with pytest.raises(ImageFormatError, match="exceeds 12 bits"):
            parse_binary(b"\xff\xff", width=12)


class TestHex:
    """Test the text hex format."""

    def test_parse_with_comments(self):
        text = "# hello\nA005    ; LITERAL 5\n\n3006\n"
        assert parse_hex(text) == [0xA005, 0x3006]

    def test_bad_word_reports_line(self):
        with pytest.raises(ImageFormatError) as exc_info:
            parse_hex("A005\nXYZ\n", filename="prog.hex")
        assert exc_info.value.line == 2
        assert str(exc_info.value) == "prog.hex:2: invalid hex word 'XYZ'"

    def test_word_too_wide(self):
        with pytest.raises(ImageFormatError, match="exceeds 16 bits"):
            parse_hex("12345\n")

    def test_format(self, hello_words):
        text = format_hex(hello_words[:2])
        assert text == "A005\n3006\n"
        assert parse_hex(format_hex(hello_words)) == hello_words

    def test_format_width_8(self):
        assert format_hex([0xA5], width=8) == "A5\n"


class TestFiles:
    """Test loading and saving image files."""

    def test_format_from_extension(self):
        assert ImageFormat.for_path("prog.HEX") is ImageFormat.HEX
        assert ImageFormat.for_path("prog.bin") is ImageFormat.BINARY
        assert ImageFormat.for_path("prog") is ImageFormat.BINARY

    def test_save_and_load_hex(self, tmp_path, hello_words):
        path = tmp_path / "hello.hex"
        save_image(path, hello_words)
        assert path.read_text().startswith("A005\n")
        assert load_image(path) == hello_words

    def test_save_and_load_bin(self, tmp_path, hello_words):
        path = tmp_path / "hello.bin"
        save_image(path, hello_words)
        assert path.stat().st_size == 2 * len(hello_words)
        assert load_image(path) == hello_words

    def test_explicit_format(self, tmp_path):
        path = tmp_path / "prog.img"
        path.write_text("A005\n")
        assert load_image(path, fmt=ImageFormat.HEX) == [0xA005]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_image(tmp_path / "nope.hex")
