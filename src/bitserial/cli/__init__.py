"""
Bit-Serial Simulator Command-Line Interface
===========================================

This package provides the command-line tools:

- **bitsim**: run a program image on the cycle-accurate core
- **bitdis**: disassemble a program image

Each tool is a Click application sharing the exit codes and exception
handling in `errors.py`.
"""

__all__ = ["bitsim", "bitdis"]
