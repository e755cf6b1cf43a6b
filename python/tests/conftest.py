"""
Pytest configuration and fixtures for specasm tests.
"""
import copy
import sys
from pathlib import Path

import pytest

PYTHON_SRC = Path(__file__).resolve().parents[1]
if str(PYTHON_SRC) not in sys.path:
    sys.path.insert(0, str(PYTHON_SRC))

from specasm import Assembler, MemoryLoader  # noqa: E402

TINY_ARCH = {
    "width": 8,
    "vars": {
        "reg": {"bits": 2, "toks": ["a", "b", "c", "d"]},
        "imm4": {"bits": 4},
        "imm8": {"bits": 8},
        "rel8": {"bits": 8, "iprel": True, "ipofs": 2},
    },
    "rules": [
        {"fmt": "nop", "bits": ["00000000"]},
        {"fmt": "ld ~reg,~imm4", "bits": ["0001", 0, 1]},
        {"fmt": "mov ~reg,~imm8", "bits": ["000100", 0, 1]},
        {"fmt": "jmp ~imm8", "bits": ["00100000", 0]},
        {"fmt": "br ~rel8", "bits": ["00110000", 0]},
        {"fmt": "pack ~imm4,~imm4", "bits": ["01000000", 0, 1]},
        {"fmt": "ldi ~imm4", "bits": ["01110000", "0000", 0]},
        {"fmt": "ldi ~imm8", "bits": ["01111000", 0]},
        {"fmt": "inc ~reg", "bits": ["100000", 0]},
        {"fmt": "inc ~imm8", "bits": ["10000100", 0]},
        {"fmt": "st ~imm8,~reg", "bits": ["101000", 0, 1]},
        {"fmt": "ld [~reg+~imm4]", "bits": ["1100", 0, "000000", 1]},
    ],
}


@pytest.fixture
def tiny_arch():
    return copy.deepcopy(TINY_ARCH)


@pytest.fixture
def asm(tiny_arch):
    return Assembler(tiny_arch)


@pytest.fixture
def assemble_tiny(tiny_arch):
    """Assemble source text against the tiny test architecture."""

    def _assemble(text, *, loader=None):
        return Assembler(tiny_arch, loader=loader).assemble(text)

    return _assemble


@pytest.fixture
def memory_loader(tiny_arch):
    return MemoryLoader(archs={"tiny": tiny_arch})
